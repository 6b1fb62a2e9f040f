from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Optional

from .models import EnhancedEntry, ResolvedEpisode, ResolvedPattern, TorrentData
from .patterns import DASH_SEASON_MARKER
from .utils import ensure_directory, season_folder_name

LOGGER = logging.getLogger(__name__)


def _parse_season(marker: Optional[str]) -> int:
    if marker is None or marker == DASH_SEASON_MARKER:
        return 1
    try:
        season = int(marker)
    except ValueError:
        return 1
    return season if season >= 1 else 1


def resolve_episode_info(torrent: TorrentData, pattern: Optional[ResolvedPattern]) -> ResolvedEpisode:
    if pattern is None:
        return ResolvedEpisode(torrent=torrent, pattern=None)

    match = pattern.search(torrent.title)
    if match is None or len(match.groups()) != 2:
        return ResolvedEpisode(torrent=torrent, pattern=pattern)

    episode_number = match.group(pattern.episode_group)
    if episode_number is None:
        return ResolvedEpisode(torrent=torrent, pattern=pattern)

    return ResolvedEpisode(
        torrent=torrent,
        pattern=pattern,
        season_number=_parse_season(match.group(pattern.season_group)),
        episode_number=episode_number,
        episode_key=match.group(0),
        is_valid=True,
    )


def resolve_all_episodes(entry: EnhancedEntry, torrents: Iterable[TorrentData]) -> List[ResolvedEpisode]:
    return [resolve_episode_info(torrent, entry.resolved_pattern) for torrent in torrents]


def set_episode_path(root_folder: Path | str, entry: EnhancedEntry, episode: ResolvedEpisode) -> ResolvedEpisode:
    """Assign ``<root>/<series>/Season N`` to a valid episode and create the folder."""
    if not episode.is_valid:
        return episode

    destination = Path(root_folder) / entry.folder / season_folder_name(episode.season_number)
    ensure_directory(destination)
    episode.path = destination.as_posix()
    LOGGER.debug("Assigned %s to %s", episode.title, episode.path)
    return episode
