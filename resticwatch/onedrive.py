"""Minimal Microsoft Graph client for OneDrive folders and snapshot files."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import requests

DEFAULT_BASE_URL = "https://graph.microsoft.com/v1.0"
REQUEST_TIMEOUT = 30
SNAPSHOTS_FOLDER = "snapshots"
RECENT_WINDOW = timedelta(hours=24)

_RFC3339 = re.compile(
    r"^(\d{4}-\d{2}-\d{2})[Tt](\d{2}:\d{2}:\d{2})(\.\d+)?([Zz]|[+-]\d{2}:\d{2})$"
)


class OneDriveError(Exception):
    """Raised when a OneDrive API call fails."""


@dataclass
class Folder:
    id: str
    name: str
    size: int = 0


@dataclass
class FileInfo:
    id: str
    name: str
    size: int = 0
    created_time: datetime | None = None
    modified_time: datetime | None = None


def _parse_time(value: Any) -> datetime | None:
    if not isinstance(value, str):
        return None
    match = _RFC3339.match(value)
    if not match:
        return None
    date, clock, fraction, zone = match.groups()
    micros = (fraction[1:] + "000000")[:6] if fraction else "000000"
    if zone in ("Z", "z"):
        zone = "+00:00"
    try:
        return datetime.fromisoformat(f"{date}T{clock}.{micros}{zone}")
    except ValueError:
        return None


def _size(item: dict) -> int:
    size = item.get("size")
    if isinstance(size, (int, float)) and not isinstance(size, bool):
        return int(size)
    return 0


def _folders(items: list[dict]) -> list[Folder]:
    return [
        Folder(id=str(item.get("id", "")), name=str(item.get("name", "")), size=_size(item))
        for item in items
        if item.get("folder") is not None
    ]


class OneDriveClient:
    """Reads folder listings from the signed-in user's drive."""

    def __init__(
        self,
        access_token: str,
        base_url: str = DEFAULT_BASE_URL,
        session: requests.Session | None = None,
    ) -> None:
        self.access_token = access_token
        self.base_url = base_url.rstrip("/")
        self._session = session if session is not None else requests.Session()

    def _children(self, url: str) -> list[dict]:
        headers = {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
        }
        try:
            response = self._session.get(url, headers=headers, timeout=REQUEST_TIMEOUT)
        except requests.RequestException as exc:
            raise OneDriveError(f"request failed: {exc}") from exc
        if response.status_code >= 400:
            raise OneDriveError(f"API request failed with status {response.status_code}")
        try:
            payload = response.json()
        except ValueError as exc:
            raise OneDriveError(f"failed to decode response: {exc}") from exc
        if not isinstance(payload, dict):
            raise OneDriveError("failed to decode response: expected a JSON object")
        value = payload.get("value") or []
        if not isinstance(value, list):
            raise OneDriveError("failed to decode response: 'value' is not a list")
        return [item for item in value if isinstance(item, dict)]

    def get_top_level_folders(self) -> list[Folder]:
        return _folders(self._children(f"{self.base_url}/me/drive/root/children"))

    def get_subfolders(self, folder_id: str) -> list[Folder]:
        return _folders(self._children(f"{self.base_url}/me/drive/items/{folder_id}/children"))

    def get_folder_contents(self, folder_id: str) -> list[FileInfo]:
        """Return the files (not folders) directly inside a folder."""
        items = self._children(f"{self.base_url}/me/drive/items/{folder_id}/children")
        return [
            FileInfo(
                id=str(item.get("id", "")),
                name=str(item.get("name", "")),
                size=_size(item),
                created_time=_parse_time(item.get("createdDateTime")),
                modified_time=_parse_time(item.get("lastModifiedDateTime")),
            )
            for item in items
            if "file" in item
        ]

    def get_all_snapshots(self, folder_id: str) -> list[FileInfo]:
        """Return every file in the 'snapshots' subfolder of a repository folder."""
        try:
            subfolders = self.get_subfolders(folder_id)
        except OneDriveError as exc:
            raise OneDriveError(
                f"failed to get subfolders for folder {folder_id}: {exc}"
            ) from exc
        snapshots = next((f for f in subfolders if f.name == SNAPSHOTS_FOLDER), None)
        if snapshots is None or not snapshots.id:
            names = " ".join(f.name for f in subfolders)
            raise OneDriveError(
                f"snapshots folder not found in folder {folder_id}. "
                f"Available subfolders: [{names}]"
            )
        try:
            return self.get_folder_contents(snapshots.id)
        except OneDriveError as exc:
            raise OneDriveError(
                f"failed to get snapshot files from folder {snapshots.id}: {exc}"
            ) from exc

    def check_today_backups(
        self, folder_id: str, now: datetime | None = None
    ) -> tuple[bool, list[FileInfo]]:
        """Return whether any snapshot was created in the last 24 hours, and those snapshots."""
        files = self.get_all_snapshots(folder_id)
        current = now if now is not None else datetime.now(timezone.utc)
        cutoff = current - RECENT_WINDOW
        recent = [f for f in files if f.created_time is not None and f.created_time > cutoff]
        return bool(recent), recent