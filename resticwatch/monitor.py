"""Periodic checks that every backup client wrote a snapshot in the last day."""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from resticwatch import logger
from resticwatch.auth import AuthError, Authenticator, Token
from resticwatch.config import Config, ConfigError
from resticwatch.onedrive import OneDriveClient, OneDriveError
from resticwatch.telegram import TelegramClient, TelegramError

TIME_FORMAT = "%Y-%m-%d %H:%M:%S"
REFRESH_MARGIN = timedelta(minutes=10)


def _format_time(moment: datetime | None) -> str:
    return moment.strftime(TIME_FORMAT) if moment is not None else "Unknown"


@dataclass
class BackupStatus:
    """Outcome of checking one backup client folder."""

    client_name: str
    folder_path: str
    has_backup: bool = False
    file_count: int = 0
    last_backup: datetime | None = None
    error: Exception | None = None


class Monitor:
    """Checks the monitored folders and reports through Telegram."""

    def __init__(
        self,
        config: Config,
        authenticator: Authenticator | None = None,
        telegram: TelegramClient | None = None,
        client_factory: Callable[[str], OneDriveClient] | None = None,
    ) -> None:
        self.config = config
        self.authenticator = authenticator if authenticator is not None else Authenticator()
        self.telegram = (
            telegram
            if telegram is not None
            else TelegramClient(config.telegram.bot_token, config.telegram.chat_id)
        )
        self.client_factory = client_factory if client_factory is not None else OneDriveClient
        self._stop = threading.Event()

    def start(self) -> None:
        """Check now, then every check interval until :meth:`stop` is called."""
        if not self.config.monitoring.enabled:
            logger.info("Monitoring is disabled")
            return

        logger.info("Starting backup monitoring service...")
        try:
            self.check_once()
        except AuthError as exc:
            logger.error("Initial backup check failed: %s", exc)

        interval = self.config.monitoring.check_interval * 60
        if interval <= 0:
            raise ValueError("check interval must be positive")

        logger.info("Backup monitoring service started")
        while not self._stop.wait(interval):
            try:
                self.check_once()
            except AuthError as exc:
                logger.error("Periodic backup check failed: %s", exc)

    def stop(self) -> None:
        logger.info("Stopping backup monitoring service...")
        self._stop.set()
        logger.info("Backup monitoring service stopped")

    def check_once(self) -> list[BackupStatus]:
        """Check every client folder once and send notifications; return the statuses."""
        logger.info("Starting backup check...")
        try:
            self.refresh_token_if_needed()
        except AuthError as exc:
            raise AuthError(f"failed to refresh token: {exc}") from exc

        client = self.client_factory(self.config.onedrive.access_token)
        statuses: list[BackupStatus] = []
        success_count = 0
        failed_count = 0
        failed_clients: list[str] = []

        paths = self.config.onedrive.monitor_paths
        for number, folder_id in enumerate(paths, start=1):
            logger.debug("Checking monitored path %d/%d: %s", number, len(paths), folder_id)
            try:
                subfolders = client.get_subfolders(folder_id)
            except OneDriveError as exc:
                logger.error("Failed to get subfolders for %s: %s", folder_id, exc)
                continue

            logger.debug(
                "Found %d client folders in monitored path: %s", len(subfolders), folder_id
            )
            for subfolder in subfolders:
                logger.debug("Checking client: %s (ID: %s)", subfolder.name, subfolder.id)
                status = self.check_client_backup(client, subfolder.id, subfolder.name)
                statuses.append(status)

                if status.error is not None:
                    logger.error(
                        "Error checking client %s: %s", status.client_name, status.error
                    )
                    failed_count += 1
                    failed_clients.append(status.client_name)
                elif status.has_backup:
                    success_count += 1
                    logger.info(
                        "✅ Client %s: Backup found in last 24 hours (%d files)",
                        status.client_name,
                        status.file_count,
                    )
                else:
                    failed_count += 1
                    failed_clients.append(status.client_name)
                    logger.error(
                        "❌ Client %s: No backup in last 24 hours, last backup: %s",
                        status.client_name,
                        _format_time(status.last_backup),
                    )

        try:
            self.send_notifications(statuses, success_count, failed_count, failed_clients)
        except TelegramError as exc:
            logger.error("Failed to send notifications: %s", exc)

        logger.info(
            "Backup check completed. Success: %d, Failed: %d", success_count, failed_count
        )
        return statuses

    def check_client_backup(
        self, client: OneDriveClient, folder_id: str, client_name: str
    ) -> BackupStatus:
        status = BackupStatus(client_name=client_name, folder_path=folder_id)
        try:
            has_backup, recent = client.check_today_backups(folder_id)
        except OneDriveError as exc:
            status.error = exc
            logger.error("Failed to check backup for client %s: %s", client_name, exc)
            return status

        status.has_backup = has_backup
        status.file_count = len(recent)

        try:
            files = client.get_all_snapshots(folder_id)
        except OneDriveError as exc:
            logger.error("Failed to get all snapshots for client %s: %s", client_name, exc)
            return status

        status.last_backup = max(
            (f.created_time for f in files if f.created_time is not None), default=None
        )
        if status.last_backup is not None:
            logger.debug(
                "Client %s: Last backup was %s, Recent backup (24h): %s",
                client_name,
                _format_time(status.last_backup),
                has_backup,
            )
        else:
            logger.debug(
                "Client %s: No backups found, Recent backup (24h): %s", client_name, has_backup
            )
        return status

    def send_notifications(
        self,
        statuses: Iterable[BackupStatus],
        success_count: int,
        failed_count: int,
        failed_clients: Iterable[str],
    ) -> None:
        """Alert for every client without a recent backup, then send the summary."""
        if self.telegram is None:
            raise TelegramError("telegram client not initialized")

        statuses = list(statuses)
        for status in statuses:
            if status.has_backup:
                continue
            try:
                self.telegram.send_backup_alert(
                    status.client_name, status.folder_path, _format_time(status.last_backup)
                )
            except TelegramError as exc:
                logger.error("Failed to send backup alert for %s: %s", status.client_name, exc)

        try:
            self.telegram.send_summary_report(
                len(statuses), success_count, failed_count, list(failed_clients)
            )
        except TelegramError as exc:
            logger.error("Failed to send summary report: %s", exc)
            raise

    def refresh_token_if_needed(self) -> None:
        """Refresh the OneDrive token when it expires within ten minutes."""
        onedrive = self.config.onedrive
        if onedrive.token_expiry == 0:
            raise AuthError("no token expiry set")

        expiry = datetime.fromtimestamp(onedrive.token_expiry, timezone.utc)
        if datetime.now(timezone.utc) < expiry - REFRESH_MARGIN:
            return

        logger.info("Refreshing OneDrive token...")
        current = Token(
            access_token=onedrive.access_token,
            refresh_token=onedrive.refresh_token,
            expiry=expiry,
        )
        try:
            fresh = self.authenticator.refresh_token(current)
        except AuthError as exc:
            raise AuthError(f"failed to refresh token: {exc}") from exc

        onedrive.access_token = fresh.access_token
        onedrive.refresh_token = fresh.refresh_token
        onedrive.token_expiry = int(fresh.expiry.timestamp()) if fresh.expiry else 0

        try:
            self.config.save()
        except ConfigError as exc:
            logger.error("Failed to save updated token: %s", exc)

        logger.info("OneDrive token refreshed successfully")