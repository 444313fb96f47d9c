# resticwatch

`resticwatch` watches OneDrive folders that hold restic repositories. It checks
that every client repository has a new snapshot from the last 24 hours and
reports the result to a Telegram chat.

## How it checks

Each monitored top-level OneDrive folder holds one subfolder per backup client.
Each client folder holds a restic repository with a `snapshots` folder. A client
passes when at least one file in `snapshots` was created in the last 24 hours.
A client whose folder has no `snapshots` subfolder, or that cannot be read,
counts as failed.

Each client without a recent snapshot gets its own Telegram alert, which shows
the creation time of its newest snapshot (or `Unknown`). Every check then sends
a summary report with the total number of clients, the number that passed and
failed, and the names of the failed clients.

## Installation

```
pip install .
```

This installs the command under two names, `resticwatch` and
`restic-backup-checker`; they are the same program. Messages printed by the
program refer to it as `restic-backup-checker`.

## Getting started

1. Sign in to OneDrive. This uses the device code flow: open the address that
   is printed in a browser and type in the code shown next to it.

   ```
   resticwatch login
   ```

2. Run the setup. If you are not signed in yet, it offers to sign you in. It
   lists the top-level folders of your drive and asks which ones to monitor
   (comma-separated numbers; invalid numbers are skipped, and the chosen folders
   are added to any already monitored). It then asks for the Telegram bot token
   and chat ID and sends a test message. Last it asks for the check interval in
   minutes; leave it empty to keep the current value. The configuration is
   saved only when every step succeeds.

   ```
   resticwatch setup
   ```

3. Start monitoring. The first check runs at once and the next ones follow at
   the configured interval until you press Ctrl-C:

   ```
   resticwatch
   ```

## Commands

| Command                    | What it does                                               |
|----------------------------|------------------------------------------------------------|
| `resticwatch`              | Start monitoring (needs a bot token and a OneDrive sign-in) |
| `resticwatch login`        | Sign in to OneDrive and store the tokens                   |
| `resticwatch logout`       | Delete the stored tokens and the list of monitored folders |
| `resticwatch setup`        | Set up folders, Telegram and the check interval            |
| `resticwatch check`        | Run a single check and send the notifications              |
| `resticwatch config show`  | Print the current configuration, with the bot token masked |
| `resticwatch config reset` | Clear every setting after you confirm with `y` or `yes`    |
| `resticwatch version`      | Print the installed version                                |

Log messages go to standard error, each tagged `INFO`, `ERROR` or `DEBUG`.

The access token is refreshed on its own when it expires within ten minutes,
and the new token is saved.

`config reset` also sets the check interval to 0 and turns monitoring off.
After a reset, enter an interval during `setup`, or monitoring stops after its
first check with the error that the check interval must be positive.

## Configuration storage

The configuration is stored as JSON encrypted with AES-GCM in
`~/.config/restic-backup-checker/config.enc`, and the file is written with mode
0600. The key is derived with PBKDF2-SHA256 from the host name and the current
user name (`USER`, or `USERNAME` when that is unset). A configuration file
copied to another machine or another account cannot be read there, and the
program stops with an error when the file cannot be decrypted.

## Using it as a library

The modules can also be used directly:

- `resticwatch.config`: `load(path, key)` returns a `Config`. `Config.save()`
  writes it, `Config.reset()` clears it and `Config.is_configured()` reports
  whether it is usable. `encrypt`, `decrypt` and `derive_key` do the file
  encryption.
- `resticwatch.onedrive`: `OneDriveClient` lists folders
  (`get_top_level_folders`, `get_subfolders`), files (`get_folder_contents`),
  snapshots (`get_all_snapshots`) and recent snapshots (`check_today_backups`).
- `resticwatch.auth`: `Authenticator` runs the device code flow
  (`authenticate`) and refreshes tokens (`refresh_token`).
- `resticwatch.telegram`: `TelegramClient` sends messages, and
  `format_backup_alert`, `format_backup_success` and `format_summary_report`
  build their text.
- `resticwatch.monitor`: `Monitor.check_once()` runs one check and returns a
  list of `BackupStatus`; `Monitor.start()` and `Monitor.stop()` run checks in a
  loop and end it.

## What it does not do

- It reads only the first page of each OneDrive folder listing. Folders with
  more entries than the service returns in one page are not seen in full.
- It judges a backup only by the creation time of files in `snapshots`. It does
  not open or verify restic repositories.
- It does not install itself as a system service. Run `resticwatch` under a
  service manager or in a terminal session that stays open.
- The exit status is 0 even when a command logs an error. It is 1 only when the
  configuration cannot be loaded or the command line is invalid.