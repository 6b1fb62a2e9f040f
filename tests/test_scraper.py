from __future__ import annotations

from typing import Any, Dict, List

from requests.exceptions import ConnectionError as RequestsConnectionError
from requests.exceptions import HTTPError

from nyaa_downloader.models import SeriesEntry
from nyaa_downloader.scraper import NyaaClient, build_search_url, parse_search_results

SEARCH_PAGE = """
<html><body>
<div class="table-responsive">
  <table class="torrent-list">
    <thead><tr><th>Category</th><th>Name</th></tr></thead>
    <tbody>
      <tr class="success">
        <td><a href="/?c=1_2" title="Anime - English-translated">Anime</a></td>
        <td colspan="2">
          <a href="/view/1#comments" class="comments" title="3 comments">3</a>
          <a href="/view/1" title="[Sub] Show - 05 [1080p].mkv">[Sub] Show - 05 [1080p].mkv</a>
        </td>
        <td class="text-center">
          <a href="/download/1.torrent">torrent</a>
          <a href="magnet:?xt=urn:btih:abc&amp;dn=show">magnet</a>
        </td>
        <td class="text-center">1.4 GiB</td>
        <td class="text-center" data-timestamp="1700000000">2023-11-14 22:13</td>
        <td class="text-center">10</td>
      </tr>
      <tr class="default">
        <td><a href="/?c=1_2">Anime</a></td>
        <td colspan="2"><a href="/view/2">[Sub] Show - 04 [720p].mkv</a></td>
        <td class="text-center"><a href="/download/2.torrent">torrent</a></td>
        <td class="text-center">700 MiB</td>
        <td class="text-center">2023-11-07 22:13</td>
      </tr>
      <tr><td colspan="6">No results</td></tr>
    </tbody>
  </table>
</div>
</body></html>
"""


class FakeResponse:
    def __init__(self, text: str, error: Exception | None = None) -> None:
        self.text = text
        self._error = error

    def raise_for_status(self) -> None:
        if self._error is not None:
            raise self._error


class FakeSession:
    def __init__(self, response: FakeResponse | None = None, error: Exception | None = None) -> None:
        self.headers: Dict[str, str] = {}
        self.requests: List[Dict[str, Any]] = []
        self._response = response
        self._error = error

    def get(self, url: str, timeout: int) -> FakeResponse:
        self.requests.append({"url": url, "timeout": timeout})
        if self._error is not None:
            raise self._error
        assert self._response is not None
        return self._response

    def close(self) -> None:
        pass


def test_build_search_url_uses_uploader_path() -> None:
    url = build_search_url("https://nyaa.si/", "Erai-raws", "Show 1080p")

    assert url == "https://nyaa.si/user/Erai-raws?f=0&c=1_2&q=Show%201080p"


def test_build_search_url_for_anonymous_uploader() -> None:
    assert build_search_url("https://nyaa.si", "Anonymous", "Show") == "https://nyaa.si/?f=0&c=1_2&q=Show"
    assert build_search_url("https://nyaa.si", "", "Show & Co") == "https://nyaa.si/?f=0&c=1_2&q=Show%20%26%20Co"


def test_parse_search_results_extracts_rows() -> None:
    results = parse_search_results(SEARCH_PAGE)

    assert len(results) == 2
    first, second = results
    assert first.title == "[Sub] Show - 05 [1080p].mkv"
    assert first.magnet_link == "magnet:?xt=urn:btih:abc&dn=show"
    assert first.size == "1.4 GiB"
    assert first.timestamp == 1700000000
    assert second.title == "[Sub] Show - 04 [720p].mkv"
    assert second.magnet_link == ""
    assert second.timestamp == 0


def test_parse_search_results_handles_empty_page() -> None:
    assert parse_search_results("<html><body><p>nothing</p></body></html>") == []


def test_client_search_parses_response() -> None:
    session = FakeSession(FakeResponse(SEARCH_PAGE))
    client = NyaaClient("https://nyaa.si", timeout=3, session=session)

    results = client.search(SeriesEntry(folder="Show", uploader="Sub", query="show"))

    assert [item.title for item in results] == ["[Sub] Show - 05 [1080p].mkv", "[Sub] Show - 04 [720p].mkv"]
    assert session.requests == [{"url": "https://nyaa.si/user/Sub?f=0&c=1_2&q=show", "timeout": 3}]
    assert "User-Agent" in session.headers


def test_client_search_returns_empty_on_network_error() -> None:
    client = NyaaClient("https://nyaa.si", session=FakeSession(error=RequestsConnectionError("offline")))

    assert client.search(SeriesEntry(folder="Show", uploader="Sub", query="show")) == []


def test_client_search_returns_empty_on_http_error() -> None:
    session = FakeSession(FakeResponse("", error=HTTPError("503 Server Error")))
    client = NyaaClient("https://nyaa.si", session=session)

    assert client.search(SeriesEntry(folder="Show", uploader="Sub", query="show")) == []
