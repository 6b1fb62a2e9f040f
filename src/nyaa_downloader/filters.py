"""Duplicate resolution and existing-file filtering for resolved episodes.

Duplicate releases of one episode share an ``episode_key``. They are narrowed
down by a fixed chain of quality filters where each stage only sees the
survivors of the previous one:

    resolution -> encoding (HEVC) -> version -> recency

Every stage records the winning value for a key in a :class:`CleanupMap` when
the duplicates disagreed on it, so stale files on disk can be removed later.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from .models import CleanupMap, EntryFileList, ResolvedEpisode
from .patterns import (
    DEFAULT_RESOLUTION,
    DEFAULT_VERSION,
    HEVC_ENCODING,
    HEVC_PATTERN,
    RESOLUTION_PATTERN,
    episode_number_pattern,
    versioned_pattern,
)
from .utils import season_folder_name

LOGGER = logging.getLogger(__name__)

EpisodeFilter = Callable[[Sequence[ResolvedEpisode], ResolvedEpisode, Optional[CleanupMap]], bool]


def _duplicates(pool: Iterable[ResolvedEpisode], episode: ResolvedEpisode) -> List[ResolvedEpisode]:
    return [item for item in pool if item.is_valid and item.episode_key == episode.episode_key]


def _record(cleanup: Optional[CleanupMap], episode: ResolvedEpisode, values: Iterable[object], **attributes: object) -> None:
    if cleanup is None or episode.episode_key is None:
        return
    if len(set(values)) <= 1:
        return
    cleanup.flag(episode.episode_key, episode.season_number, **attributes)


def _resolution_of(episode: ResolvedEpisode) -> Optional[int]:
    match = RESOLUTION_PATTERN.search(episode.title)
    return int(match.group(1)) if match else None


def _is_hevc(episode: ResolvedEpisode) -> bool:
    return HEVC_PATTERN.search(episode.title) is not None


def _version_of(episode: ResolvedEpisode) -> Optional[int]:
    if episode.episode_key is None:
        return None
    match = versioned_pattern(episode.episode_key).search(episode.title)
    return int(match.group(1)) if match else None


def filter_by_resolution(
    pool: Sequence[ResolvedEpisode],
    episode: ResolvedEpisode,
    cleanup: Optional[CleanupMap] = None,
) -> bool:
    if not episode.is_valid or not episode.episode_key:
        return False

    duplicates = _duplicates(pool, episode)
    if len(duplicates) <= 1:
        return True

    explicit = [_resolution_of(item) for item in duplicates]
    if all(value is None for value in explicit):
        return True

    resolutions = [DEFAULT_RESOLUTION if value is None else value for value in explicit]
    highest = max(resolutions)
    _record(cleanup, episode, resolutions, resolution=highest)

    own = _resolution_of(episode)
    return (DEFAULT_RESOLUTION if own is None else own) == highest


def filter_by_hevc(
    pool: Sequence[ResolvedEpisode],
    episode: ResolvedEpisode,
    cleanup: Optional[CleanupMap] = None,
) -> bool:
    if not episode.is_valid or not episode.episode_key:
        return False

    duplicates = _duplicates(pool, episode)
    if len(duplicates) <= 1:
        return True

    flags = [_is_hevc(item) for item in duplicates]
    if not any(flags):
        return True

    _record(cleanup, episode, flags, encoding=HEVC_ENCODING)
    return _is_hevc(episode)


def filter_by_version(
    pool: Sequence[ResolvedEpisode],
    episode: ResolvedEpisode,
    cleanup: Optional[CleanupMap] = None,
) -> bool:
    if not episode.is_valid or not episode.episode_key:
        return False

    duplicates = _duplicates(pool, episode)
    if len(duplicates) <= 1:
        return True

    explicit = [_version_of(item) for item in duplicates]
    if all(value is None for value in explicit):
        return True

    versions = [DEFAULT_VERSION if value is None else value for value in explicit]
    highest = max(versions)
    _record(cleanup, episode, versions, version=highest)

    own = _version_of(episode)
    return (DEFAULT_VERSION if own is None else own) == highest


def filter_by_latest_timestamp(
    pool: Sequence[ResolvedEpisode],
    episode: ResolvedEpisode,
    cleanup: Optional[CleanupMap] = None,
) -> bool:
    if not episode.is_valid or not episode.episode_key:
        return False

    duplicates = _duplicates(pool, episode)
    if len(duplicates) <= 1:
        return True

    timestamps = [item.timestamp for item in duplicates]
    latest = max(timestamps)
    _record(cleanup, episode, timestamps, timestamp=latest)
    return episode.timestamp == latest


DUPLICATE_FILTERS: Tuple[Tuple[str, EpisodeFilter], ...] = (
    ("resolution", filter_by_resolution),
    ("encoding", filter_by_hevc),
    ("version", filter_by_version),
    ("recency", filter_by_latest_timestamp),
)


def apply_filter(
    stage: EpisodeFilter,
    pool: Sequence[ResolvedEpisode],
    cleanup: Optional[CleanupMap] = None,
) -> List[ResolvedEpisode]:
    current = list(pool)
    return [episode for episode in current if stage(current, episode, cleanup)]


def select_best_episodes(
    episodes: Iterable[ResolvedEpisode],
    cleanup: Optional[CleanupMap] = None,
    *,
    stages: Sequence[Tuple[str, EpisodeFilter]] = DUPLICATE_FILTERS,
) -> List[ResolvedEpisode]:
    """Collapse duplicate releases to one winner per episode key."""
    pool = [episode for episode in episodes if episode.is_valid]
    for name, stage in stages:
        survivors = apply_filter(stage, pool, cleanup)
        if LOGGER.isEnabledFor(logging.DEBUG):
            kept = {id(item) for item in survivors}
            for episode in pool:
                if id(episode) not in kept:
                    LOGGER.debug("Dropped %s by %s filter", episode.title, name)
        pool = survivors
    return pool


def filter_existing_episodes(file_list: EntryFileList, episode: ResolvedEpisode) -> bool:
    """Return ``False`` when the episode already exists in its season folder."""
    if not episode.is_valid:
        return False

    files = file_list.get(season_folder_name(episode.season_number))
    if files is None:
        return True

    loose = episode_number_pattern(episode.episode_number)
    for filename in files:
        if episode.pattern is not None:
            match = episode.pattern.search(filename)
            if match is not None and match.group(episode.pattern.episode_group) == episode.episode_number:
                return False
        if loose.search(filename):
            return False
    return True
