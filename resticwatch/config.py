"""Application configuration stored as AES-GCM encrypted JSON."""

from __future__ import annotations

import hashlib
import json
import os
import socket
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

APP_NAME = "restic-backup-checker"
KEY_SALT = b"restic-backup-checker-salt"
KEY_ITERATIONS = 100_000
KEY_LENGTH = 32
NONCE_SIZE = 12
DEFAULT_CHECK_INTERVAL = 60


class ConfigError(Exception):
    """Raised when the configuration cannot be read, decrypted or written."""


@dataclass
class OneDriveConfig:
    access_token: str = ""
    refresh_token: str = ""
    token_expiry: int = 0
    monitor_paths: list[str] = field(default_factory=list)


@dataclass
class TelegramConfig:
    bot_token: str = ""
    chat_id: int = 0


@dataclass
class MonitoringConfig:
    check_interval: int = DEFAULT_CHECK_INTERVAL  # minutes
    enabled: bool = True


def default_config_path() -> Path:
    """Return the location of the encrypted configuration file."""
    try:
        home = Path.home()
    except RuntimeError as exc:
        raise ConfigError(f"failed to get config path: {exc}") from exc
    return home / ".config" / APP_NAME / "config.enc"


def derive_key(hostname: str, user: str) -> bytes:
    """Derive a 32-byte key from a host name and user name."""
    material = f"{hostname}:{user}".encode()
    return hashlib.pbkdf2_hmac("sha256", material, KEY_SALT, KEY_ITERATIONS, KEY_LENGTH)


def machine_key() -> bytes:
    """Derive the key for this machine and user."""
    user = os.environ.get("USER") or os.environ.get("USERNAME") or ""
    return derive_key(socket.gethostname(), user)


def encrypt(key: bytes, data: bytes) -> bytes:
    """Encrypt data; the result is the nonce followed by ciphertext and tag."""
    try:
        aead = AESGCM(key)
    except (TypeError, ValueError) as exc:
        raise ConfigError(str(exc)) from exc
    nonce = os.urandom(NONCE_SIZE)
    return nonce + aead.encrypt(nonce, data, None)


def decrypt(key: bytes, data: bytes) -> bytes:
    """Decrypt data produced by :func:`encrypt`."""
    try:
        aead = AESGCM(key)
    except (TypeError, ValueError) as exc:
        raise ConfigError(str(exc)) from exc
    if len(data) < NONCE_SIZE:
        raise ConfigError("ciphertext too short")
    nonce, ciphertext = data[:NONCE_SIZE], data[NONCE_SIZE:]
    try:
        return aead.decrypt(nonce, ciphertext, None)
    except InvalidTag as exc:
        raise ConfigError("message authentication failed") from exc


def _merge(section: Any, data: Any, name: str) -> None:
    """Overwrite the fields of a section with those present in data."""
    if data is None:
        return
    if not isinstance(data, dict):
        raise ConfigError(f"section {name!r} must be an object")
    for f in fields(section):
        if f.name not in data:
            continue
        value = data[f.name]
        current = getattr(section, f.name)
        if isinstance(current, list):
            if value is None:
                value = []
            elif not (isinstance(value, list) and all(isinstance(v, str) for v in value)):
                raise ConfigError(f"{name}.{f.name} must be a list of strings")
            setattr(section, f.name, list(value))
        elif value is None:
            continue
        elif type(value) is not type(current):
            raise ConfigError(
                f"{name}.{f.name} must be of type {type(current).__name__}"
            )
        else:
            setattr(section, f.name, value)


@dataclass
class Config:
    """All settings together with where and how they are stored."""

    onedrive: OneDriveConfig = field(default_factory=OneDriveConfig)
    telegram: TelegramConfig = field(default_factory=TelegramConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)
    path: Path = field(default_factory=default_config_path)
    key: bytes = field(default_factory=machine_key, repr=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "onedrive": asdict(self.onedrive),
            "telegram": asdict(self.telegram),
            "monitoring": asdict(self.monitoring),
        }

    def update_from_dict(self, data: Any) -> None:
        """Apply the settings present in data, leaving the others untouched."""
        if not isinstance(data, dict):
            raise ConfigError("configuration must be a JSON object")
        for name in ("onedrive", "telegram", "monitoring"):
            if name in data:
                _merge(getattr(self, name), data[name], name)

    def save(self) -> None:
        """Encrypt and write the configuration, creating its directory."""
        payload = json.dumps(self.to_dict()).encode()
        try:
            blob = encrypt(self.key, payload)
        except ConfigError as exc:
            raise ConfigError(f"failed to encrypt config: {exc}") from exc
        path = Path(self.path)
        try:
            path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
        except OSError as exc:
            raise ConfigError(f"failed to create config directory: {exc}") from exc
        try:
            flags = os.O_WRONLY | os.O_CREAT | os.O_TRUNC | getattr(os, "O_BINARY", 0)
            fd = os.open(path, flags, 0o600)
            with os.fdopen(fd, "wb") as fh:
                fh.write(blob)
        except OSError as exc:
            raise ConfigError(f"failed to write config file: {exc}") from exc

    def reset(self) -> None:
        """Clear every setting to its zero value, keeping the file location and key."""
        self.onedrive = OneDriveConfig()
        self.telegram = TelegramConfig()
        self.monitoring = MonitoringConfig(check_interval=0, enabled=False)

    def is_configured(self) -> bool:
        return bool(self.onedrive.access_token) and bool(self.telegram.bot_token)


def load(path: str | os.PathLike | None = None, key: bytes | None = None) -> Config:
    """Load the configuration, falling back to defaults when no file exists."""
    cfg = Config(
        path=Path(path) if path is not None else default_config_path(),
        key=key if key is not None else machine_key(),
    )
    if not cfg.path.exists():
        return cfg
    try:
        blob = cfg.path.read_bytes()
    except OSError as exc:
        raise ConfigError(f"failed to load config: failed to read config file: {exc}") from exc
    try:
        plaintext = decrypt(cfg.key, blob)
    except ConfigError as exc:
        raise ConfigError(f"failed to load config: failed to decrypt config: {exc}") from exc
    try:
        cfg.update_from_dict(json.loads(plaintext))
    except (ValueError, ConfigError) as exc:
        raise ConfigError(f"failed to load config: failed to unmarshal config: {exc}") from exc
    return cfg