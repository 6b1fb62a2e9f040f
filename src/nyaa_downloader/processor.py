from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, List, Mapping, Optional, Tuple

from rich.progress import BarColumn, DownloadColumn, Progress, TextColumn, TransferSpeedColumn

from .cleanup import cleanup_episodes
from .config import AppConfig, load_download_list
from .episodes import resolve_all_episodes, set_episode_path
from .filters import filter_existing_episodes, select_best_episodes
from .models import (
    CleanupMap,
    DownloadStats,
    EntryFileList,
    ResolvedEpisode,
    SeriesEntry,
    TrackerData,
    TrackerGroup,
)
from .notifications import EmailReporter
from .patterns import resolve_series_pattern
from .scraper import NyaaClient
from .torrent import TorrentDownloader
from .utils import get_file_list

LOGGER = logging.getLogger(__name__)

DownloaderFactory = Callable[[Optional[Progress]], TorrentDownloader]


class Processor:
    def __init__(
        self,
        config: AppConfig,
        *,
        scraper: Optional[NyaaClient] = None,
        downloader_factory: Optional[DownloaderFactory] = None,
        reporter: Optional[EmailReporter] = None,
        enable_notifications: bool = True,
    ) -> None:
        self.config = config
        settings = config.settings
        self.scraper = scraper or NyaaClient(settings.nyaa_url, timeout=settings.request_timeout)
        self._downloader_factory = downloader_factory or self._default_downloader
        self.reporter = reporter or EmailReporter(config.email)
        self.enable_notifications = enable_notifications
        self.stats = DownloadStats()

    @staticmethod
    def _format_log(event: str, fields: Optional[Mapping[str, object]] = None) -> str:
        lines = [event]
        if fields:
            items = list(fields.items())
            width = max((len(str(key)) for key, _ in items), default=0)
            for key, value in items:
                text = "" if value is None else str(value)
                lines.append(f"  {str(key):<{width}}: {text}")
        return "\n".join(lines)

    @staticmethod
    def _format_inline_log(event: str, fields: Optional[Mapping[str, object]] = None) -> str:
        if not fields:
            return event

        items = list(fields.items())
        width = max((len(str(key)) for key, _ in items), default=0)
        formatted = []
        for key, value in items:
            text = "" if value is None else str(value)
            formatted.append(f"{str(key):<{width}}: {text}")
        return f"{event} | " + " | ".join(formatted)

    def _default_downloader(self, progress: Optional[Progress]) -> TorrentDownloader:
        settings = self.config.settings
        return TorrentDownloader(
            metadata_timeout=settings.metadata_timeout,
            batch_size=settings.batch_size,
            progress=progress,
        )

    @staticmethod
    def _build_progress() -> Progress:
        return Progress(
            TextColumn("{task.description}", style="cyan"),
            BarColumn(),
            TextColumn("{task.percentage:>3.0f}%"),
            DownloadColumn(),
            TransferSpeedColumn(),
            transient=False,
        )

    def run_once(self) -> TrackerGroup:
        self.stats = DownloadStats()
        settings = self.config.settings
        download_list = load_download_list(settings.download_list)
        if not download_list:
            LOGGER.warning(self._format_log("Nothing To Process", {"Download List": settings.download_list}))

        tracker_groups: TrackerGroup = {}
        for root_key, entries in download_list.items():
            root_folder = settings.download_dir / root_key
            tracker_groups[root_key] = self.process_root(root_folder, entries)

        LOGGER.info(
            self._format_inline_log(
                "Summary",
                {
                    "Queued": self.stats.queued,
                    "Downloaded": self.stats.downloaded,
                    "Failed": self.stats.failed,
                    "Removed": self.stats.removed,
                },
            )
        )

        if settings.dry_run:
            LOGGER.info("Dry-run: skipping email report")
        elif self.enable_notifications and tracker_groups:
            self.reporter.send_report(tracker_groups)
        return tracker_groups

    def close(self) -> None:
        self.scraper.close()

    def process_root(self, root_folder: Path, entries: List[SeriesEntry]) -> List[TrackerData]:
        LOGGER.info(self._format_log("Checking For New Episodes", {"Folder": root_folder}))

        tracker: List[TrackerData] = []
        for entry in entries:
            if entry.complete:
                LOGGER.info("%s - already complete.", entry.folder)
                continue
            try:
                result = self.process_series(root_folder, entry)
            except Exception as exc:  # noqa: BLE001
                LOGGER.error(
                    self._format_log(
                        "Failed To Process Series",
                        {"Series": entry.folder, "Error": exc},
                    )
                )
                self.stats.errors.append(f"{entry.folder}: {exc}")
                continue
            if result is not None:
                tracker.append(result)

        total = sum(item.new_episodes for item in tracker)
        LOGGER.info("%d Episodes Downloaded", total)
        return tracker

    def select_new_episodes(
        self,
        root_folder: Path,
        entry: SeriesEntry,
        cleanup: CleanupMap,
    ) -> Tuple[List[ResolvedEpisode], EntryFileList]:
        available = self.scraper.search(entry)
        file_list = get_file_list(root_folder, entry)

        sample_title = available[0].title if available else None
        enhanced = resolve_series_pattern(entry, sample_title)
        episodes = resolve_all_episodes(enhanced, available)
        winners = select_best_episodes(episodes, cleanup)

        new_episodes = [
            set_episode_path(root_folder, enhanced, episode)
            for episode in winners
            if filter_existing_episodes(file_list, episode)
        ]
        return new_episodes, file_list

    def process_series(self, root_folder: Path, entry: SeriesEntry) -> Optional[TrackerData]:
        cleanup = CleanupMap()
        new_episodes, file_list = self.select_new_episodes(root_folder, entry, cleanup)
        LOGGER.info("%s - new episodes: %d", entry.folder, len(new_episodes))
        self.stats.register_queued(len(new_episodes))

        if self.config.settings.dry_run:
            for episode in new_episodes:
                LOGGER.info(self._format_log("Dry-Run: Would Download", {"Title": episode.title, "Path": episode.path}))
            cleanup.clear()
            return None

        result: Optional[TrackerData] = None
        if new_episodes:
            successful = self._download(new_episodes)
            result = TrackerData(title=entry.folder, new_episodes=successful)

        removed = cleanup_episodes(root_folder, file_list, entry, cleanup)
        self.stats.register_removed(len(removed))
        return result

    def _download(self, episodes: List[ResolvedEpisode]) -> int:
        with self._build_progress() as progress:
            downloader = self._downloader_factory(progress)
            try:
                batch = downloader.download_batch(episodes)
            finally:
                downloader.close()

        self.stats.register_downloaded(batch.successful)
        for episode, exc in batch.failures:
            self.stats.register_failure(f"{episode.title}: {exc}")
        return batch.successful
