"""Check OneDrive folders for recent restic snapshots and report backup status to Telegram."""

__version__ = "0.1.0"