from __future__ import annotations

import logging
import re
from functools import lru_cache
from typing import List, Optional, Tuple

from .models import EnhancedEntry, ResolvedPattern, SeriesEntry

LOGGER = logging.getLogger(__name__)

# Each default yields (season, episode). A lone dash in the season slot means season 1.
DEFAULT_PATTERNS: Tuple[ResolvedPattern, ...] = (
    ResolvedPattern(re.compile(r"S(\d+)E(\d+)", re.IGNORECASE), source="season-episode"),
    ResolvedPattern(re.compile(r"S(\d+)\s-\s(\d+)"), source="season-dash"),
    ResolvedPattern(re.compile(r"(?:\s)(-)(?:\s)(\d+)"), source="dash"),
)

DASH_SEASON_MARKER = "-"

UNESCAPED_GROUP_PATTERN = re.compile(r"(?<!\\)\(")

# Matches (720p), [1080p], [1080p AMZN WEBRip HEVC EAC3] and similar tags.
RESOLUTION_PATTERN = re.compile(r"[\[(](?:[^\])]* )?(\d+)p(?: [^\])]*)?[\])]", re.IGNORECASE)

HEVC_PATTERN = re.compile(r"\[[^\]]*HEVC[^\]]*\]|\bHEVC\b", re.IGNORECASE)

HEVC_ENCODING = "HEVC"
DEFAULT_RESOLUTION = 1080
DEFAULT_VERSION = 1


@lru_cache(maxsize=512)
def versioned_pattern(episode_key: str) -> re.Pattern[str]:
    return re.compile(rf"{re.escape(episode_key)}v(\d+)", re.IGNORECASE)


@lru_cache(maxsize=512)
def episode_number_pattern(episode_number: str) -> re.Pattern[str]:
    return re.compile(rf"-\s*{re.escape(episode_number)}\b")


def count_capture_groups(pattern: str) -> int:
    return len(UNESCAPED_GROUP_PATTERN.findall(pattern))


def validate_pattern(pattern: Optional[str]) -> Optional[re.Pattern[str]]:
    """Compile a custom pattern, returning ``None`` unless it has exactly two groups."""
    if not pattern:
        return None
    try:
        compiled = re.compile(pattern)
    except re.error as exc:
        LOGGER.debug("Custom pattern %r does not compile: %s", pattern, exc)
        return None
    if count_capture_groups(pattern) != 2:
        LOGGER.debug("Custom pattern %r must contain exactly two groups", pattern)
        return None
    return compiled


def candidate_patterns(custom_pattern: Optional[str]) -> List[ResolvedPattern]:
    candidates: List[ResolvedPattern] = []
    compiled = validate_pattern(custom_pattern)
    if compiled is not None:
        candidates.append(ResolvedPattern(compiled, source="custom"))
    candidates.extend(DEFAULT_PATTERNS)
    return candidates


def resolve_pattern(custom_pattern: Optional[str], sample_title: Optional[str] = None) -> Optional[ResolvedPattern]:
    for candidate in candidate_patterns(custom_pattern):
        if not sample_title or candidate.search(sample_title):
            return candidate
    return None


def resolve_series_pattern(entry: SeriesEntry, sample_title: Optional[str] = None) -> EnhancedEntry:
    resolved = resolve_pattern(entry.pattern, sample_title)
    if resolved is None:
        LOGGER.debug("No pattern matched sample title %r for %s", sample_title, entry.folder)
    elif entry.pattern and resolved.source != "custom":
        LOGGER.debug(
            "Custom pattern for %s skipped in favour of default %s",
            entry.folder,
            resolved.source,
        )
    return EnhancedEntry(entry=entry, resolved_pattern=resolved)
