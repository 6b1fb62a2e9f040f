from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .models import SeriesEntry
from .utils import load_structured_file, load_yaml_file

LOGGER = logging.getLogger(__name__)

DEFAULT_NYAA_URL = "https://nyaa.si"
DEFAULT_BATCH_SIZE = 6
DEFAULT_METADATA_TIMEOUT = 5.0

DownloadList = Dict[str, List[SeriesEntry]]


@dataclass(slots=True)
class EmailSettings:
    host: Optional[str] = None
    port: int = 587
    secure: bool = False
    user: Optional[str] = None
    password: Optional[str] = None
    sender: Optional[str] = None
    sender_name: str = "Nyaa Downloader"
    recipients: List[str] = field(default_factory=list)
    timeout: int = 10

    @property
    def from_address(self) -> Optional[str]:
        if not self.sender:
            return None
        return f'"{self.sender_name}" <{self.sender}>'


@dataclass(slots=True)
class Settings:
    download_dir: Path
    download_list: Path
    nyaa_url: str = DEFAULT_NYAA_URL
    batch_size: int = DEFAULT_BATCH_SIZE
    metadata_timeout: float = DEFAULT_METADATA_TIMEOUT
    request_timeout: int = 15
    dry_run: bool = False


@dataclass(slots=True)
class AppConfig:
    settings: Settings
    email: EmailSettings = field(default_factory=EmailSettings)


def _build_settings(data: Dict[str, Any]) -> Settings:
    return Settings(
        download_dir=Path(data.get("download_dir", "/data/media")).expanduser(),
        download_list=Path(data.get("download_list", "/config/download_list.json")).expanduser(),
        nyaa_url=str(data.get("nyaa_url", DEFAULT_NYAA_URL)).rstrip("/"),
        batch_size=int(data.get("batch_size", DEFAULT_BATCH_SIZE)),
        metadata_timeout=float(data.get("metadata_timeout", DEFAULT_METADATA_TIMEOUT)),
        request_timeout=int(data.get("request_timeout", 15)),
        dry_run=bool(data.get("dry_run", False)),
    )


def _build_email_settings(data: Dict[str, Any]) -> EmailSettings:
    smtp = data.get("smtp") or {}
    recipients = data.get("to") or []
    if isinstance(recipients, str):
        recipients = [recipients]
    return EmailSettings(
        host=smtp.get("host"),
        port=int(smtp.get("port", 587)),
        secure=bool(smtp.get("secure", False)),
        user=smtp.get("user"),
        password=smtp.get("password"),
        sender=data.get("from"),
        sender_name=str(data.get("from_name", "Nyaa Downloader")),
        recipients=[str(addr).strip() for addr in recipients if addr],
        timeout=int(smtp.get("timeout", 10)),
    )


def load_config(path: Path) -> AppConfig:
    data = load_yaml_file(path)
    return AppConfig(
        settings=_build_settings(data.get("settings", {})),
        email=_build_email_settings(data.get("email", {})),
    )


def build_series_entry(data: Dict[str, Any]) -> SeriesEntry:
    pattern = data.get("pattern")
    return SeriesEntry(
        folder=str(data["folder"]),
        uploader=str(data.get("uploader", "Anonymous")),
        query=str(data.get("query", "")),
        complete=bool(data.get("complete", False)),
        pattern=str(pattern) if pattern else None,
    )


def build_download_list(data: Dict[str, Any]) -> DownloadList:
    download_list: DownloadList = {}
    for root_key, entries in data.items():
        raw_entries: Iterable[Dict[str, Any]] = entries or []
        download_list[str(root_key)] = [build_series_entry(item) for item in raw_entries]
    return download_list


def load_download_list(path: Path) -> DownloadList:
    """Load the tracked series grouped by root folder.

    Unreadable or malformed files yield an empty mapping so a run simply has
    nothing to do.
    """
    try:
        data = load_structured_file(path)
        if not isinstance(data, dict):
            raise ValueError("download list must map root folders to series lists")
        return build_download_list(data)
    except Exception as exc:  # noqa: BLE001
        LOGGER.error("Error reading download list %s: %s", path, exc)
        return {}
