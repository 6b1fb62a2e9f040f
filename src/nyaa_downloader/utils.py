from __future__ import annotations

import datetime as dt
import json
import os
import re
from pathlib import Path
from typing import Any, Dict, Iterator, List, Sequence, TypeVar

import yaml

from .models import EntryFileList, SeriesEntry

T = TypeVar("T")

EXTENSION_PATTERN = re.compile(r"\.[^/.]+$")


def ensure_directory(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def expand_env(value: Any) -> Any:
    if isinstance(value, str):
        return os.path.expandvars(value)
    if isinstance(value, list):
        return [expand_env(item) for item in value]
    if isinstance(value, dict):
        return {key: expand_env(val) for key, val in value.items()}
    return value


def load_yaml_file(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    return expand_env(data)


def load_structured_file(path: Path) -> Any:
    """Load a JSON or YAML document depending on the file suffix."""
    if path.suffix.lower() == ".json":
        with path.open("r", encoding="utf-8") as handle:
            return json.load(handle)
    with path.open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle)


def season_folder_name(season_number: int) -> str:
    return f"Season {season_number}"


def get_file_list(root_folder: Path, entry: SeriesEntry) -> EntryFileList:
    """Snapshot the season folders of a series and the files inside them.

    The series folder is created when missing so the snapshot is always taken
    from an existing directory.
    """
    folder_path = Path(root_folder) / entry.folder
    ensure_directory(folder_path)

    result: EntryFileList = {}
    for item in sorted(folder_path.iterdir()):
        if item.is_dir():
            result[item.name] = sorted(child.name for child in item.iterdir())
    return result


def remove_file(path: Path) -> bool:
    try:
        Path(path).unlink()
    except FileNotFoundError:
        return False
    return True


def rename_file(old_name: str, new_name: str, output_path: Path) -> Path:
    """Rename ``old_name`` to ``new_name`` keeping the original extension."""
    output_path = Path(output_path)
    original = output_path / old_name
    stem = EXTENSION_PATTERN.sub("", new_name)
    destination = output_path / f"{stem}{original.suffix}"
    if original == destination:
        return destination
    original.rename(destination)
    return destination


def get_date_modified(path: Path) -> dt.datetime:
    return dt.datetime.fromtimestamp(Path(path).stat().st_mtime, tz=dt.timezone.utc)


def chunked(items: Sequence[T], size: int) -> Iterator[List[T]]:
    if size <= 0:
        raise ValueError("Chunk size must be positive")
    for start in range(0, len(items), size):
        yield list(items[start : start + size])

