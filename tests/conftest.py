"""
Pytest configuration and fixtures for font cache tests.
"""

import tempfile
import threading
from collections.abc import Callable
from pathlib import Path

import pytest

from fontcache.cache.manager import CacheManager
from fontcache.core.config import FontCacheConfig
from fontcache.core.exceptions import NetworkError, NetworkErrorKind

CATALOG_PREFIX = "https://fonts.googleapis.com/css2?family="

BARLOW_CSS = """\
/* latin-ext */
@font-face {
  font-family: 'Barlow';
  font-style: normal;
  font-weight: 400;
  font-display: swap;
  src: url(https://fonts.gstatic.com/s/barlow/v12/barlow-400-ext.woff2) format('woff2');
  unicode-range: U+0100-02BA, U+02BD-02C5;
}
/* latin */
@font-face {
  font-family: 'Barlow';
  font-style: normal;
  font-weight: 400;
  font-display: swap;
  src: url(https://fonts.gstatic.com/s/barlow/v12/barlow-400.woff2) format('woff2'),
       url(https://fonts.gstatic.com/s/barlow/v12/barlow-400.woff) format('woff');
  unicode-range: U+0000-00FF, U+0131, U+0152-0153;
}
/* latin */
@font-face {
  font-family: 'Barlow';
  font-style: normal;
  font-weight: 700;
  font-display: swap;
  src: url(https://fonts.gstatic.com/s/barlow/v12/barlow-700.woff2) format('woff2');
  unicode-range: U+0000-00FF, U+0131, U+0152-0153;
}
"""


def font_face(family: str, weight: int, style: str, url: str, fmt: str = "woff2") -> str:
    """Build one catalog-style @font-face rule."""
    return (
        "@font-face {\n"
        f"  font-family: '{family}';\n"
        f"  font-style: {style};\n"
        f"  font-weight: {weight};\n"
        f"  src: url({url}) format('{fmt}');\n"
        "}\n"
    )


def fake_font_bytes(label: str) -> bytes:
    return b"wOF2" + label.encode() * 8


class FakeHttpClient:
    """In-memory stand-in for HttpClient.

    Routes are matched exactly first, then by the longest registered prefix.
    A route value may be text, bytes, an exception to raise, or a callable
    returning one of those.
    """

    def __init__(self):
        self.routes: dict[str, object] = {}
        self.requests: list[str] = []
        self.closed = False
        self._lock = threading.Lock()

    def add(self, url: str, response: "str | bytes | Exception | Callable[[], object]") -> None:
        self.routes[url] = response

    def _respond(self, url: str):
        with self._lock:
            self.requests.append(url)
        if url in self.routes:
            response = self.routes[url]
        else:
            matches = [prefix for prefix in self.routes if url.startswith(prefix)]
            if not matches:
                raise NetworkError(url, NetworkErrorKind.HTTP_STATUS, 404)
            response = self.routes[max(matches, key=len)]

        if callable(response) and not isinstance(response, Exception):
            response = response()
        if isinstance(response, Exception):
            raise response
        return response

    def fetch_text(self, url: str) -> str:
        response = self._respond(url)
        return response.decode() if isinstance(response, bytes) else response

    def fetch_bytes(self, url: str) -> bytes:
        response = self._respond(url)
        return response.encode() if isinstance(response, str) else response

    def count(self, url_fragment: str) -> int:
        with self._lock:
            return sum(1 for url in self.requests if url_fragment in url)

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def temp_dir():
    """Create temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmp_dir:
        yield Path(tmp_dir)


@pytest.fixture
def cache_root(temp_dir):
    return temp_dir / "cache"


@pytest.fixture
def config(cache_root):
    """Configuration pointing at a temporary cache, without retry delays."""
    return FontCacheConfig(
        cache_root=cache_root,
        download_retries=0,
        retry_backoff_seconds=0.0,
        max_parallel_downloads=4,
    )


@pytest.fixture
def fake_http():
    return FakeHttpClient()


@pytest.fixture
def barlow_http(fake_http):
    """Catalog serving the Barlow stylesheet and its files."""
    fake_http.add(CATALOG_PREFIX + "Barlow", BARLOW_CSS)
    for name in ("barlow-400-ext.woff2", "barlow-400.woff2", "barlow-400.woff", "barlow-700.woff2"):
        fake_http.add(f"https://fonts.gstatic.com/s/barlow/v12/{name}", fake_font_bytes(name))
    return fake_http


@pytest.fixture
def manager(config, fake_http):
    """CacheManager wired to the fake catalog."""
    with CacheManager(config, http=fake_http) as cache_manager:
        yield cache_manager


@pytest.fixture
def local_font_dir(temp_dir):
    """Folder with two file-name-classified font files."""
    folder = temp_dir / "MyFont"
    folder.mkdir()
    (folder / "MyFont-Regular.ttf").write_bytes(b"\x00\x01\x00\x00regular")
    (folder / "MyFont-Bold.ttf").write_bytes(b"\x00\x01\x00\x00bold")
    (folder / "README.txt").write_text("not a font")
    return folder
