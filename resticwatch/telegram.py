"""Telegram bot notifications about backup status."""

from __future__ import annotations

from collections.abc import Iterable

import requests

API_BASE = "https://api.telegram.org"
REQUEST_TIMEOUT = 30


class TelegramError(Exception):
    """Raised when a message cannot be delivered."""


def format_backup_alert(client_name: str, folder_path: str, last_backup_time: str) -> str:
    return (
        "🚨 *Backup Alert*\n\n"
        f"*Client:* {client_name}\n"
        f"*Folder:* {folder_path}\n"
        "*Issue:* No backup found for today\n"
        f"*Last Backup:* {last_backup_time}\n\n"
        "Please check the backup client immediately."
    )


def format_backup_success(client_name: str, folder_path: str, file_count: int) -> str:
    return (
        "✅ *Backup Success*\n\n"
        f"*Client:* {client_name}\n"
        f"*Folder:* {folder_path}\n"
        f"*Files:* {file_count} backup files found for today\n\n"
        "All backups are up to date."
    )


def format_summary_report(
    total_clients: int,
    success_count: int,
    failed_count: int,
    failed_clients: Iterable[str],
) -> str:
    status = "🚨 Issues Found" if failed_count > 0 else "✅ All Good"
    message = (
        "📊 *Daily Backup Report*\n\n"
        f"*Status:* {status}\n"
        f"*Total Clients:* {total_clients}\n"
        f"*Successful:* {success_count}\n"
        f"*Failed:* {failed_count}\n"
    )
    failed = list(failed_clients)
    if failed:
        message += "\n*Failed Clients:*\n"
        message += "".join(f"• {client}\n" for client in failed)
    return message


class TelegramClient:
    """Sends Markdown messages to one chat through the Bot API."""

    def __init__(
        self,
        bot_token: str,
        chat_id: int,
        session: requests.Session | None = None,
    ) -> None:
        self.bot_token = bot_token
        self.chat_id = chat_id
        self._session = session if session is not None else requests.Session()

    def send_message(self, message: str) -> None:
        if not self.bot_token:
            raise TelegramError("telegram bot not initialized")
        url = f"{API_BASE}/bot{self.bot_token}/sendMessage"
        body = {"chat_id": self.chat_id, "text": message, "parse_mode": "Markdown"}
        try:
            response = self._session.post(url, json=body, timeout=REQUEST_TIMEOUT)
            payload = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise TelegramError(f"failed to send telegram message: {exc}") from exc
        if not isinstance(payload, dict) or not payload.get("ok"):
            detail = (
                payload.get("description") if isinstance(payload, dict) else None
            ) or f"status {response.status_code}"
            raise TelegramError(f"failed to send telegram message: {detail}")

    def send_backup_alert(
        self, client_name: str, folder_path: str, last_backup_time: str
    ) -> None:
        self.send_message(format_backup_alert(client_name, folder_path, last_backup_time))

    def send_backup_success(self, client_name: str, folder_path: str, file_count: int) -> None:
        self.send_message(format_backup_success(client_name, folder_path, file_count))

    def send_summary_report(
        self,
        total_clients: int,
        success_count: int,
        failed_count: int,
        failed_clients: Iterable[str],
    ) -> None:
        self.send_message(
            format_summary_report(total_clients, success_count, failed_count, failed_clients)
        )