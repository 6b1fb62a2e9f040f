from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

EntryFileList = Dict[str, List[str]]


@dataclass(frozen=True, slots=True)
class TorrentData:
    title: str
    magnet_link: str = ""
    size: str = ""
    timestamp: int = 0


@dataclass(slots=True)
class SeriesEntry:
    folder: str
    uploader: str
    query: str
    complete: bool = False
    pattern: Optional[str] = None


@dataclass(frozen=True, slots=True)
class ResolvedPattern:
    """A season/episode extraction expression with two capturing groups."""

    expression: re.Pattern[str]
    season_group: int = 1
    episode_group: int = 2
    source: str = "default"

    def search(self, text: str) -> Optional[re.Match[str]]:
        return self.expression.search(text)


@dataclass(slots=True)
class EnhancedEntry:
    entry: SeriesEntry
    resolved_pattern: Optional[ResolvedPattern]

    @property
    def folder(self) -> str:
        return self.entry.folder


@dataclass(slots=True)
class ResolvedEpisode:
    torrent: TorrentData
    pattern: Optional[ResolvedPattern]
    season_number: int = 1
    episode_number: str = ""
    episode_key: Optional[str] = None
    is_valid: bool = False
    path: Optional[str] = None

    @property
    def title(self) -> str:
        return self.torrent.title

    @property
    def magnet_link(self) -> str:
        return self.torrent.magnet_link

    @property
    def size(self) -> str:
        return self.torrent.size

    @property
    def timestamp(self) -> int:
        return self.torrent.timestamp


@dataclass(slots=True)
class EpisodeAttributes:
    season: int
    version: Optional[int] = None
    resolution: Optional[int] = None
    encoding: Optional[str] = None
    timestamp: Optional[int] = None

    def merge(self, **attributes: object) -> None:
        for name, value in attributes.items():
            setattr(self, name, value)


@dataclass(slots=True)
class CleanupMap:
    """Winning quality attributes per episode key, collected for one series pass."""

    _entries: Dict[str, EpisodeAttributes] = field(default_factory=dict)

    def flag(self, episode_key: str, season: int, **attributes: object) -> EpisodeAttributes:
        existing = self._entries.get(episode_key)
        if existing is None:
            existing = EpisodeAttributes(season=season)
            self._entries[episode_key] = existing
        existing.merge(**attributes)
        return existing

    def get(self, episode_key: str) -> Optional[EpisodeAttributes]:
        return self._entries.get(episode_key)

    def items(self) -> List[tuple[str, EpisodeAttributes]]:
        return list(self._entries.items())

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, episode_key: object) -> bool:
        return episode_key in self._entries


@dataclass(slots=True)
class TrackerData:
    title: str
    new_episodes: int


TrackerGroup = Dict[str, List[TrackerData]]


@dataclass(slots=True)
class DownloadStats:
    queued: int = 0
    downloaded: int = 0
    failed: int = 0
    removed: int = 0
    errors: List[str] = field(default_factory=list)

    def register_queued(self, count: int) -> None:
        self.queued += count

    def register_downloaded(self, count: int = 1) -> None:
        self.downloaded += count

    def register_failure(self, reason: str) -> None:
        self.failed += 1
        self.errors.append(reason)

    def register_removed(self, count: int) -> None:
        self.removed += count
