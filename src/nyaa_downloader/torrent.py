from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence, Tuple

from rich.progress import Progress, TaskID

from .config import DEFAULT_BATCH_SIZE, DEFAULT_METADATA_TIMEOUT
from .models import ResolvedEpisode
from .utils import chunked, rename_file

LOGGER = logging.getLogger(__name__)


class DownloadError(RuntimeError):
    """Raised when a single transfer cannot be started or completed."""


@dataclass(slots=True)
class BatchResult:
    successes: List[ResolvedEpisode] = field(default_factory=list)
    failures: List[Tuple[ResolvedEpisode, Exception]] = field(default_factory=list)

    @property
    def successful(self) -> int:
        return len(self.successes)


def _create_libtorrent_session() -> Tuple[Any, Any]:
    try:
        import libtorrent
    except ImportError as exc:  # pragma: no cover - environment dependent
        raise DownloadError(f"libtorrent is not available: {exc}") from exc
    return libtorrent, libtorrent.session({"listen_interfaces": "0.0.0.0:6881,[::]:6881"})


class TorrentDownloader:
    """Download magnet links with a libtorrent session, one batch at a time."""

    def __init__(
        self,
        *,
        metadata_timeout: float = DEFAULT_METADATA_TIMEOUT,
        batch_size: int = DEFAULT_BATCH_SIZE,
        poll_interval: float = 0.5,
        progress: Optional[Progress] = None,
        session_factory: Callable[[], Tuple[Any, Any]] = _create_libtorrent_session,
    ) -> None:
        self.metadata_timeout = metadata_timeout
        self.batch_size = batch_size
        self.poll_interval = poll_interval
        self.progress = progress
        self._session_factory = session_factory
        self._lt: Any = None
        self._session: Any = None
        self._lock = threading.Lock()

    def _ensure_session(self) -> Any:
        with self._lock:
            if self._session is None:
                self._lt, self._session = self._session_factory()
            return self._session

    def download(self, magnet_link: str, output_path: str) -> None:
        if not magnet_link or not output_path:
            raise DownloadError("Missing magnet link or path")

        session = self._ensure_session()
        params = self._lt.parse_magnet_uri(magnet_link)
        params.save_path = output_path
        handle = session.add_torrent(params)

        try:
            self._wait_for_metadata(handle, magnet_link)
            info = handle.torrent_file()
            name = info.name()
            task_id = self._start_task(name, info.total_size())
            self._wait_for_completion(handle, name, task_id)
        finally:
            session.remove_torrent(handle)

        if info.num_files() == 1:
            rename_file(info.files().file_path(0), name, Path(output_path))

    def _wait_for_metadata(self, handle: Any, magnet_link: str) -> None:
        deadline = time.monotonic() + self.metadata_timeout
        while not handle.status().has_metadata:
            if time.monotonic() >= deadline:
                raise DownloadError(f"Download timed out for {magnet_link}")
            time.sleep(self.poll_interval)

    def _wait_for_completion(self, handle: Any, name: str, task_id: Optional[TaskID]) -> None:
        while True:
            status = handle.status()
            if status.errc and status.errc.value():
                raise DownloadError(f"Error downloading {name}: {status.errc.message()}")
            if self.progress is not None and task_id is not None:
                self.progress.update(task_id, completed=status.total_done)
            if status.is_seeding or status.is_finished:
                if self.progress is not None and task_id is not None:
                    self.progress.update(task_id, completed=status.total_wanted)
                return
            time.sleep(self.poll_interval)

    def _start_task(self, name: str, total: int) -> Optional[TaskID]:
        if self.progress is None:
            return None
        return self.progress.add_task(name, total=total)

    def download_episode(self, episode: ResolvedEpisode) -> ResolvedEpisode:
        self.download(episode.magnet_link, episode.path or "")
        return episode

    def download_batch(self, episodes: Sequence[ResolvedEpisode]) -> BatchResult:
        """Download ``episodes`` in fixed-size concurrent batches.

        A failing transfer never cancels its siblings; it is logged and
        reported in the result.
        """
        result = BatchResult()
        for batch in chunked(list(episodes), self.batch_size):
            with ThreadPoolExecutor(max_workers=len(batch)) as executor:
                future_map = {executor.submit(self.download_episode, episode): episode for episode in batch}
                for future in as_completed(future_map):
                    episode = future_map[future]
                    try:
                        future.result()
                    except Exception as exc:  # noqa: BLE001
                        LOGGER.error("Error downloading torrent %s: %s", episode.title, exc)
                        result.failures.append((episode, exc))
                    else:
                        result.successes.append(episode)
        return result

    def close(self) -> None:
        if self._session is not None:
            try:
                self._session.pause()
            except Exception as exc:  # noqa: BLE001
                LOGGER.debug("Failed to pause torrent session: %s", exc)
        self._session = None
        self._lt = None

    def __enter__(self) -> "TorrentDownloader":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
