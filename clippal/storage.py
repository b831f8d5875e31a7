"""SQLite database setup and schema migration."""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

from .errors import DatabaseError

log = logging.getLogger(__name__)

CLIP_RECORD_TABLE = "clip_record"

_INDEX_SQLS = (
    "CREATE INDEX IF NOT EXISTS idx_clip_record_md5_str ON clip_record(md5_str)",
    "CREATE INDEX IF NOT EXISTS idx_clip_record_created ON clip_record(created)",
    "CREATE INDEX IF NOT EXISTS idx_clip_record_sort ON clip_record(sort)",
    "CREATE INDEX IF NOT EXISTS idx_clip_record_pinned ON clip_record(pinned_flag)",
)


@dataclass(frozen=True)
class ColumnInfo:
    """Definition of one table column."""

    name: str
    sql_type: str
    not_null: bool = False
    default_value: Optional[str] = None
    primary_key: bool = False

    def definition(self) -> str:
        """Column definition as used in ``CREATE TABLE``."""
        parts = [f"{self.name} {self.sql_type}"]
        if self.not_null:
            parts.append("NOT NULL")
        if self.primary_key:
            parts.append("PRIMARY KEY")
        if self.default_value is not None:
            parts.append(f"DEFAULT {self.default_value}")
        return " ".join(parts)


@dataclass
class TableSchema:
    """A table with its columns in declaration order."""

    name: str
    columns: list[ColumnInfo] = field(default_factory=list)


def expected_schema() -> dict[str, TableSchema]:
    """Tables and columns the application expects to find."""
    columns = [
        ColumnInfo("id", "TEXT", not_null=True, primary_key=True),
        ColumnInfo("type", "TEXT"),
        ColumnInfo("content", "TEXT"),
        ColumnInfo("md5_str", "TEXT"),
        ColumnInfo("created", "INTEGER"),
        ColumnInfo("user_id", "INTEGER"),
        ColumnInfo("os_type", "TEXT"),
        ColumnInfo("sort", "INTEGER"),
        ColumnInfo("pinned_flag", "INTEGER"),
        ColumnInfo("sync_flag", "INTEGER"),
        ColumnInfo("sync_time", "INTEGER"),
        ColumnInfo("device_id", "TEXT"),
    ]
    return {CLIP_RECORD_TABLE: TableSchema(CLIP_RECORD_TABLE, columns)}


def _quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def actual_schema(conn: sqlite3.Connection) -> dict[str, TableSchema]:
    """Read the tables and columns present in the database."""
    try:
        tables = [
            row[0]
            for row in conn.execute(
                "SELECT name FROM sqlite_master "
                "WHERE type='table' AND name NOT LIKE 'sqlite_%'"
            )
        ]
        schema = {}
        for table in tables:
            rows = conn.execute(f"PRAGMA table_info({_quote_identifier(table)})")
            columns = [
                ColumnInfo(
                    name=name,
                    sql_type=sql_type,
                    not_null=bool(notnull),
                    default_value=default,
                    primary_key=bool(pk),
                )
                for _cid, name, sql_type, notnull, default, pk in rows
            ]
            schema[table] = TableSchema(table, columns)
        return schema
    except sqlite3.Error as exc:
        raise DatabaseError(str(exc)) from exc


def compare_schemas(
    expected: dict[str, TableSchema], actual: dict[str, TableSchema]
) -> list[str]:
    """Return the SQL statements that bring ``actual`` up to ``expected``.

    Missing tables are created and missing columns are added; nothing is
    ever dropped or altered.
    """
    migrations = []
    for table_name, expected_table in expected.items():
        actual_table = actual.get(table_name)
        if actual_table is None:
            definitions = ", ".join(col.definition() for col in expected_table.columns)
            migrations.append(f"CREATE TABLE {table_name} ({definitions})")
            continue
        present = {col.name for col in actual_table.columns}
        migrations.extend(
            f"ALTER TABLE {table_name} ADD COLUMN {col.name} {col.sql_type}"
            for col in expected_table.columns
            if col.name not in present
        )
    return migrations


def execute_migrations(conn: sqlite3.Connection, migrations: list[str]) -> None:
    """Run migration statements in one transaction."""
    try:
        with conn:
            for migration in migrations:
                log.debug("执行数据库迁移: %s", migration)
                conn.execute(migration)
    except sqlite3.Error as exc:
        raise DatabaseError(str(exc)) from exc


def create_indexes(conn: sqlite3.Connection) -> None:
    """Create the lookup indexes of the record table if missing."""
    try:
        with conn:
            for sql in _INDEX_SQLS:
                conn.execute(sql)
    except sqlite3.Error as exc:
        raise DatabaseError(str(exc)) from exc


def check_and_fix_schema(conn: sqlite3.Connection) -> list[str]:
    """Migrate the database to the expected schema; return what was run."""
    log.debug("检查数据库结构...")
    migrations = compare_schemas(expected_schema(), actual_schema(conn))
    if migrations:
        log.debug("发现 %d 个需要执行的迁移操作", len(migrations))
        execute_migrations(conn, migrations)
        log.debug("数据库迁移完成")
    else:
        log.debug("数据库结构检查完成，无需迁移")
    create_indexes(conn)
    return migrations


def open_database(path: Union[str, Path]) -> sqlite3.Connection:
    """Open the record database at ``path`` and bring its schema up to date."""
    try:
        conn = sqlite3.connect(str(path), check_same_thread=False)
    except sqlite3.Error as exc:
        raise DatabaseError(f"数据库连接初始化失败: {exc}") from exc
    try:
        check_and_fix_schema(conn)
    except DatabaseError:
        conn.close()
        raise
    log.info("数据库初始化完成")
    return conn