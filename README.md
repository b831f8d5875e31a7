# clippal

A clipboard history service. It takes clipboard changes from a clipboard
backend, keeps every text, image and file-list entry in a local SQLite
database, and offers operations to search, pin, re-copy, export and delete
past entries.

- Text entries are stored encrypted with AES-256-GCM. Duplicates are found
  by the MD5 digest of the plain content, so copying the same thing again
  moves the existing entry to the top instead of adding a new row.
- Images are written as PNG files into a `resources/` directory; file copies
  are stored as their list of paths joined by `:::`.
- Text is split into word tokens (NFKC-normalised, case-folded, each Han
  ideograph a word of its own) and kept in an inverted index on disk, so a
  search finds the records that share words with the query.
- The history is capped (200 entries by default, configurable between 50
  and 1000). After each change, entries beyond the cap in display order
  (pinned first, then most recently copied) are deleted, together with their
  index entries and saved image files.

## Installation

```
pip install clippal
```

For the test suite:

```
pip install "clippal[test]"
pytest
```

## Running

```
clippal [--root DIR] [--autostart]
```

This starts the service and runs until interrupted (Ctrl+C). Its data lives
under the per-user application directory, or under `--root DIR` if given, in
these sub-directories:

- `data/` – the database `clip_record.db` and the search index
  `clip_tokens.bin` (JSON, written about two seconds after a change and on
  shutdown);
- `resources/` – saved images;
- `config/` – `settings.json` and `content.key`, the encryption key, which
  is generated on first start;
- `logs/` – `clip_pal.log`, rotated at 12 MB with four old files kept; logs
  also go to the console.

`--autostart` only notes in the log that the service was started at login.

## What it does not do

- It has no backend for the operating system's clipboard. The only backend
  provided is `clippal.clipboard.MemoryClipboard`, which keeps the clipboard
  in process memory; `clippal` on the command line uses it, so on its own it
  records nothing from other programs. To record a real clipboard, implement
  `clippal.clipboard.ClipboardBackend` and pass it to `ClipPalApp`.
- It has no window, tray icon or graphical front end, and it does not
  register global shortcuts: shortcut strings are validated and parsed, and
  `SettingsManager` hands changes to callbacks you supply.
- It does not paste into other windows by itself. `ClipCommands` accepts an
  `auto_paste` callable for that; `ClipPalApp` passes none.
- It does not set up starting at login; `SettingsManager` hands the
  `auto_start` switch to a callback you supply.

## Using it as a library

```python
from clippal.app import ClipPalApp
from clippal.clipboard import MemoryClipboard

backend = MemoryClipboard()
with ClipPalApp("/tmp/clippal-demo", backend) as app:
    app.clipboard.write_text("hello world")
    # events are stored on a background thread
    ...
    for record in app.commands.get_clip_records(page=1, size=20, search="hello"):
        print(record.id, record.type, record.content)
```

`ClipPalApp.start()` opens storage, loads the index (rebuilding it when
unsaved changes are detected), and begins recording; `stop()` stops
recording, flushes the index and closes the database. Set
`app.on_records_changed` to a callable to be told after each stored change.

The building blocks can be used on their own:

- `clippal.events` – `ClipType`, `ClipboardEvent`, `ClipboardEventListener`
  and `EventManager`, a bounded queue whose events are handed to listeners on
  worker threads.
- `clippal.clipboard` – `ContentFormat`, `ClipboardBackend`,
  `MemoryClipboard`, `ClipboardMonitor` (turns a change into one event:
  image, else files, else text) and `ClipboardPal` (`write_text`,
  `write_html`, `write_html_and_text`, `write_rtf`, `write_image_base64`,
  `write_image_binary`, `write_files_uris`, `start_monitor`,
  `stop_monitor`, `is_monitor_running`). `write_files_uris` requires
  `file://` URIs on Linux and macOS and rejects them on Windows.
- `clippal.storage` – `open_database`, `check_and_fix_schema`,
  `compare_schemas` and friends; missing tables are created and missing
  columns added, nothing is dropped.
- `clippal.records` – `ClipRecord` and `ClipRecordStore`, the queries on the
  `clip_record` table.
- `clippal.crypto` – `ContentCipher` (base64 of nonce, ciphertext and tag),
  `generate_key`, `load_or_create_key`.
- `clippal.content` – `ContentProcessor`, turning stored content into what
  is shown: decrypted text, images as `data:` URLs, file lists as JSON
  arrays.
- `clippal.tokens` and `clippal.token_index` – `tokenize`, `TokenIndex` and
  `PersistentTokenIndex`.
- `clippal.sync` – `ClipboardSyncListener`, which stores events.
- `clippal.cleanup` – `clean_records`, which enforces the cap.
- `clippal.settings` – `Settings`, `validate_settings` and
  `SettingsManager`, which saves `settings.json` and rolls back applied
  shortcut or autostart changes when a later step fails.
- `clippal.shortcut` – `parse_shortcut` and `is_valid_shortcut_format`.
- `clippal.window` – `WindowFocusCount`, `WindowHideFlag`, `hide_guard`,
  `window_geometry` and `should_hide_on_blur`: the state and placement rules
  a front end needs for a window docked to the right screen edge.
- `clippal.commands` – `ClipCommands`: `get_clip_records`,
  `copy_clip_record`, `copy_clip_record_no_paste`, `set_pinned` (at most one
  record is pinned), `del_record`, `image_save_as` and `copy_single_file`.
- `clippal.errors` – `AppError` and its subclasses (`ConfigError`,
  `CryptoError`, `ClipboardError`, `DatabaseError`, …).

### Settings

| field                | default       | meaning                                |
|----------------------|---------------|----------------------------------------|
| `max_records`        | `200`         | history size, 50–1000                  |
| `auto_start`         | `0`           | start at login switch (0/1)            |
| `shortcut_key`       | ``Ctrl+` ``   | shortcut that shows the window         |
| `cloud_sync`         | `0`           | cloud sync switch (0/1), stored only   |
| `auto_paste`         | `1`           | paste after copying (0/1)              |
| `tutorial_completed` | `0`           | first-run guide finished (0/1)         |

A shortcut must have two or three `+`-separated parts, at least one of them
a modifier (`Ctrl`, `Shift`, `Alt` or `Meta`). Invalid settings are rejected
with `clippal.errors.ConfigError`. A settings file that cannot be read is
replaced by the defaults.