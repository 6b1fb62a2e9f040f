from __future__ import annotations

import logging
from typing import List, Optional
from urllib.parse import quote

import requests
from bs4 import BeautifulSoup
from requests.exceptions import RequestException

from .config import DEFAULT_NYAA_URL
from .models import SeriesEntry, TorrentData

LOGGER = logging.getLogger(__name__)

ANONYMOUS_UPLOADER = "Anonymous"
# English-translated anime, no filter.
SEARCH_PARAMS = "f=0&c=1_2"
URI_COMPONENT_SAFE = "!~*'()"

HEADERS = {
    "User-Agent": "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0 Safari/537.36",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
}


def build_search_url(base_url: str, uploader: str, query: str) -> str:
    base = base_url.rstrip("/")
    if uploader and uploader != ANONYMOUS_UPLOADER:
        uploader_path = f"/user/{quote(uploader, safe=URI_COMPONENT_SAFE)}"
    else:
        uploader_path = "/"
    return f"{base}{uploader_path}?{SEARCH_PARAMS}&q={quote(query, safe=URI_COMPONENT_SAFE)}"


def _parse_timestamp(value: Optional[str]) -> int:
    try:
        return int(value or 0)
    except ValueError:
        return 0


def parse_search_results(html: str) -> List[TorrentData]:
    soup = BeautifulSoup(html, "html.parser")
    results: List[TorrentData] = []
    for row in soup.select(".table-responsive tbody tr"):
        cells = row.find_all("td", recursive=False)
        if len(cells) < 5:
            LOGGER.debug("Skipping result row with %d cells", len(cells))
            continue

        anchors = cells[1].find_all("a")
        title = anchors[-1].get_text(strip=True) if anchors else cells[1].get_text(strip=True)
        magnet = cells[2].select_one('a[href^="magnet"]')
        results.append(
            TorrentData(
                title=title,
                magnet_link=str(magnet.get("href", "")) if magnet else "",
                size=cells[3].get_text(strip=True),
                timestamp=_parse_timestamp(cells[4].get("data-timestamp")),
            )
        )
    return results


class NyaaClient:
    """Fetch nyaa search result pages for tracked series."""

    def __init__(
        self,
        base_url: str = DEFAULT_NYAA_URL,
        *,
        timeout: int = 15,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update(HEADERS)

    def search(self, entry: SeriesEntry) -> List[TorrentData]:
        """Return the search results for ``entry``; any failure yields an empty list."""
        url = build_search_url(self.base_url, entry.uploader, entry.query)
        LOGGER.debug("Searching %s", url)
        try:
            response = self._session.get(url, timeout=self.timeout)
            response.raise_for_status()
            results = parse_search_results(response.text)
        except RequestException as exc:
            LOGGER.error("Error while scraping nyaa search results for %s: %s", entry.folder, exc)
            return []
        except Exception as exc:  # noqa: BLE001
            LOGGER.error("Error while parsing nyaa search results for %s: %s", entry.folder, exc)
            return []

        LOGGER.debug("Found %d result(s) for %s", len(results), entry.folder)
        return results

    def close(self) -> None:
        self._session.close()
