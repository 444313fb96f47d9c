"""Command line interface: login, setup, manual checks and continuous monitoring."""

from __future__ import annotations

import argparse
import re
import sys
from collections.abc import Callable, Sequence
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as distribution_version

from resticwatch import config as config_store
from resticwatch import logger
from resticwatch.auth import AuthError, Authenticator
from resticwatch.config import Config, ConfigError
from resticwatch.monitor import Monitor
from resticwatch.onedrive import Folder, OneDriveClient, OneDriveError
from resticwatch.telegram import TelegramClient, TelegramError

PROG = "restic-backup-checker"
DESCRIPTION = (
    "Restic Backup Checker monitors OneDrive folders for daily restic backup "
    "snapshots and sends notifications via Telegram."
)
TEST_MESSAGE = "Backup checker setup completed successfully!"

_INTEGER = re.compile(r"[+-]?[0-9]+")
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


class CommandError(Exception):
    """Raised when an interactive step of a command cannot be completed."""


def _parse_int(text: str) -> int | None:
    """Parse a signed decimal 64-bit integer, or return None."""
    if not _INTEGER.fullmatch(text):
        return None
    value = int(text)
    if not _INT64_MIN <= value <= _INT64_MAX:
        return None
    return value


def mask_token(token: str) -> str:
    """Hide all but the first and last four characters of a secret."""
    if len(token) <= 8:
        return "****"
    return token[:4] + "****" + token[-4:]


def parse_folder_selection(selection: str, folders: Sequence[Folder]) -> list[str]:
    """Turn a comma-separated list of 1-based numbers into folder IDs, skipping bad entries."""
    selection = selection.strip()
    if not selection:
        return []
    chosen = []
    for part in selection.split(","):
        number = _parse_int(part.strip())
        if number is not None and 0 < number <= len(folders):
            chosen.append(folders[number - 1].id)
    return chosen


def parse_check_interval(text: str) -> int | None:
    """Return the interval in minutes, or None when the text is empty or not a positive number."""
    text = text.strip()
    if not text:
        return None
    value = _parse_int(text)
    if value is None or value <= 0:
        return None
    return value


def is_yes(response: str) -> bool:
    return response.strip().lower() in ("y", "yes")


def _prompt(text: str) -> str:
    print(text, end="", flush=True)
    return sys.stdin.readline()


def _go_bool(value: bool) -> str:
    return "true" if value else "false"


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:  # type: ignore[override]
        self.print_usage(sys.stderr)
        self.exit(1, f"Error: {message}\n")


def build_parser(version: str) -> argparse.ArgumentParser:
    """Build the argument parser with every subcommand."""
    parser = _ArgumentParser(
        prog=PROG,
        description=DESCRIPTION,
    )
    parser.set_defaults(version=version, command=None)
    commands = parser.add_subparsers(dest="command", metavar="command")
    commands.add_parser(
        "login",
        help="Authenticate with OneDrive",
        description="Authenticate with OneDrive using device code flow.",
    )
    commands.add_parser(
        "logout",
        help="Clear OneDrive authentication",
        description="Clear stored OneDrive authentication tokens.",
    )
    commands.add_parser(
        "setup",
        help="Set up folder monitoring and Telegram notifications",
        description=(
            "Interactive setup for folder monitoring and Telegram notifications. "
            f"Run '{PROG} login' first to authenticate with OneDrive."
        ),
    )
    commands.add_parser(
        "check",
        help="Manually check backup status",
        description="Manually check if backups are up to date and send notifications if needed.",
    )
    config_parser = commands.add_parser(
        "config",
        help="Manage configuration",
        description="View and modify application configuration.",
    )
    config_parser.set_defaults(config_command=None, config_parser=config_parser)
    config_commands = config_parser.add_subparsers(dest="config_command", metavar="command")
    config_commands.add_parser("show", help="Show current configuration")
    config_commands.add_parser("reset", help="Reset configuration")
    commands.add_parser(
        "version",
        help="Show version information",
        description=f"Display the current version of {PROG}.",
    )
    return parser


def _login(cfg: Config, authenticator: Authenticator | None = None) -> None:
    auth = authenticator if authenticator is not None else Authenticator()
    try:
        token = auth.authenticate()
    except AuthError as exc:
        raise CommandError(f"failed to authenticate with OneDrive: {exc}") from exc
    cfg.onedrive.access_token = token.access_token
    cfg.onedrive.refresh_token = token.refresh_token
    cfg.onedrive.token_expiry = int(token.expiry.timestamp()) if token.expiry else 0
    try:
        cfg.save()
    except ConfigError as exc:
        raise CommandError(f"failed to save configuration: {exc}") from exc


def _logout(cfg: Config) -> None:
    cfg.onedrive.access_token = ""
    cfg.onedrive.refresh_token = ""
    cfg.onedrive.token_expiry = 0
    cfg.onedrive.monitor_paths = []
    try:
        cfg.save()
    except ConfigError as exc:
        raise CommandError(f"failed to save configuration: {exc}") from exc


def _setup_onedrive(cfg: Config) -> None:
    print("=== OneDrive Setup ===")
    if not cfg.onedrive.access_token:
        print(f"Please login to OneDrive first using: {PROG} login")
        if not is_yes(_prompt("Would you like to login now? (y/N): ")):
            raise CommandError("OneDrive login required")
        try:
            _login(cfg)
        except CommandError as exc:
            raise CommandError(f"failed to login to OneDrive: {exc}") from exc

    client = OneDriveClient(cfg.onedrive.access_token)
    try:
        folders = client.get_top_level_folders()
    except OneDriveError as exc:
        raise CommandError(f"failed to get OneDrive folders: {exc}") from exc

    print("\nAvailable top-level folders:")
    for number, folder in enumerate(folders, start=1):
        print(f"{number}. {folder.name}")

    selection = _prompt("\nEnter folder numbers to monitor (comma-separated): ")
    cfg.onedrive.monitor_paths.extend(parse_folder_selection(selection, folders))


def _setup_telegram(cfg: Config) -> None:
    print("\n=== Telegram Setup ===")
    print("Create a bot with @BotFather on Telegram and get the bot token.")
    print()
    cfg.telegram.bot_token = _prompt("Enter Telegram Bot Token: ").strip()

    chat_text = _prompt("Enter Telegram Chat ID: ").strip()
    chat_id = _parse_int(chat_text)
    if chat_id is None:
        raise CommandError(f"invalid chat ID: {chat_text!r}")
    cfg.telegram.chat_id = chat_id

    telegram = TelegramClient(cfg.telegram.bot_token, cfg.telegram.chat_id)
    try:
        telegram.send_message(TEST_MESSAGE)
    except TelegramError as exc:
        raise CommandError(f"failed to send test message: {exc}") from exc
    print("✓ Telegram test message sent successfully!")


def _setup_monitoring(cfg: Config) -> None:
    print("\n=== Monitoring Setup ===")
    interval = parse_check_interval(_prompt("Enter check interval in minutes (default: 60): "))
    if interval is not None:
        cfg.monitoring.check_interval = interval
    cfg.monitoring.enabled = True


def _show_config(cfg: Config) -> None:
    print("=== Current Configuration ===")
    print(f"OneDrive Authenticated: {_go_bool(bool(cfg.onedrive.access_token))}")
    print(f"OneDrive Monitoring Paths: [{' '.join(cfg.onedrive.monitor_paths)}]")
    print(f"Telegram Bot Token: {mask_token(cfg.telegram.bot_token)}")
    print(f"Telegram Chat ID: {cfg.telegram.chat_id}")
    print(f"Check Interval: {cfg.monitoring.check_interval} minutes")
    print(f"Monitoring Enabled: {_go_bool(cfg.monitoring.enabled)}")


def _run_monitor(cfg: Config, args: argparse.Namespace) -> None:
    if not cfg.is_configured():
        logger.info(f"Configuration not found. Please run '{PROG} setup' first.")
        return
    monitor = Monitor(cfg)
    try:
        monitor.start()
    except (AuthError, ValueError) as exc:
        logger.error("Failed to start monitoring: %s", exc)
    except KeyboardInterrupt:
        monitor.stop()


def _run_login(cfg: Config, args: argparse.Namespace) -> None:
    try:
        _login(cfg)
    except CommandError as exc:
        logger.error("Failed to login to OneDrive: %s", exc)
        return
    logger.info("Successfully logged in to OneDrive!")


def _run_logout(cfg: Config, args: argparse.Namespace) -> None:
    try:
        _logout(cfg)
    except CommandError as exc:
        logger.error("Failed to logout from OneDrive: %s", exc)
        return
    logger.info("Successfully logged out from OneDrive!")


def _run_setup(cfg: Config, args: argparse.Namespace) -> None:
    steps = (
        (_setup_onedrive, "Failed to setup OneDrive: %s"),
        (_setup_telegram, "Failed to setup Telegram: %s"),
        (_setup_monitoring, "Failed to setup monitoring: %s"),
    )
    for step, failure in steps:
        try:
            step(cfg)
        except CommandError as exc:
            logger.error(failure, exc)
            return
    try:
        cfg.save()
    except ConfigError as exc:
        logger.error("Failed to save configuration: %s", exc)
        return
    logger.info("Setup completed successfully!")


def _run_check(cfg: Config, args: argparse.Namespace) -> None:
    if not cfg.is_configured():
        logger.error(f"Configuration not found. Please run '{PROG} setup' first.")
        return
    try:
        Monitor(cfg).check_once()
    except AuthError as exc:
        logger.error("Failed to check backups: %s", exc)
        return
    logger.info("Backup check completed.")


def _run_config(cfg: Config, args: argparse.Namespace) -> None:
    if args.config_command == "show":
        _show_config(cfg)
    elif args.config_command == "reset":
        if not is_yes(_prompt("Are you sure you want to reset the configuration? (y/N): ")):
            return
        cfg.reset()
        try:
            cfg.save()
        except ConfigError as exc:
            logger.error("Failed to reset configuration: %s", exc)
            return
        logger.info("Configuration reset successfully.")
    else:
        args.config_parser.print_help()


def _run_version(cfg: Config, args: argparse.Namespace) -> None:
    print(f"{PROG} version {args.version}")


_HANDLERS: dict[str | None, Callable[[Config, argparse.Namespace], None]] = {
    None: _run_monitor,
    "login": _run_login,
    "logout": _run_logout,
    "setup": _run_setup,
    "check": _run_check,
    "config": _run_config,
    "version": _run_version,
}


def _package_version() -> str:
    try:
        return distribution_version("resticwatch")
    except PackageNotFoundError:
        return "dev"


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command line and return the exit status."""
    logger.init()
    try:
        cfg = config_store.load()
    except ConfigError as exc:
        logger.fatal("Failed to load configuration: %s", exc)
    args = build_parser(_package_version()).parse_args(argv)
    _HANDLERS[args.command](cfg, args)
    return 0


if __name__ == "__main__":
    sys.exit(main())