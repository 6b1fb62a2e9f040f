from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from .models import CleanupMap, EnhancedEntry, EntryFileList, EpisodeAttributes, SeriesEntry
from .utils import get_date_modified, remove_file, season_folder_name

LOGGER = logging.getLogger(__name__)


def stale_reason(file_path: Path, filename: str, attributes: EpisodeAttributes) -> Optional[str]:
    """Return why a file no longer matches the winning attributes, if it does not.

    Checks run in a fixed order and the first mismatch wins.
    """
    lowered = filename.lower()
    if attributes.version and f"v{attributes.version}" not in lowered:
        return "version"

    if attributes.resolution and f"{attributes.resolution}p" not in lowered:
        return "resolution"

    if attributes.encoding and attributes.encoding.lower() not in lowered:
        return "encoding"

    if attributes.timestamp:
        try:
            modified_ms = get_date_modified(file_path).timestamp() * 1000
        except FileNotFoundError:
            return None
        if modified_ms < attributes.timestamp * 1000:
            return "timestamp"

    return None


def cleanup_episodes(
    root_folder: Path | str,
    file_list: EntryFileList,
    entry: EnhancedEntry | SeriesEntry,
    cleanup: CleanupMap,
) -> List[Path]:
    """Remove files superseded by a better release and drain ``cleanup``."""
    removed: List[Path] = []
    if not file_list:
        cleanup.clear()
        return removed

    try:
        for episode_key, attributes in cleanup.items():
            season_folder = season_folder_name(attributes.season)
            files = file_list.get(season_folder)
            if not files:
                continue

            season_path = Path(root_folder) / entry.folder / season_folder
            for filename in files:
                if episode_key not in filename:
                    continue
                file_path = season_path / filename
                reason = stale_reason(file_path, filename, attributes)
                if reason is None:
                    continue
                LOGGER.info("Removing old %s: %s", reason, filename)
                if remove_file(file_path):
                    removed.append(file_path)
    finally:
        cleanup.clear()

    return removed
