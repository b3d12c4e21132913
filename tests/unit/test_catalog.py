"""
Catalog Access Tests
====================

Tests for reference resolution, stylesheet retrieval, the HTTP client error
mapping and variant downloads.
"""

import base64
from unittest.mock import Mock

import pytest
import requests

from conftest import BARLOW_CSS, CATALOG_PREFIX
from fontcache.catalog.downloader import VariantDownloader
from fontcache.catalog.fetcher import ALL_WEIGHTS, CatalogRequest, StylesheetFetcher
from fontcache.catalog.http import HttpClient
from fontcache.core.config import FontCacheConfig
from fontcache.core.exceptions import (
    CatalogNotFoundError,
    InvalidCatalogReferenceError,
    NetworkError,
    NetworkErrorKind,
)
from fontcache.core.models import FontStyle


@pytest.fixture
def fetcher(config, fake_http):
    return StylesheetFetcher(config, fake_http)


class TestBuildUrl:
    """Test canonical catalog URL construction."""

    def test_defaults(self, fetcher):
        assert fetcher.build_url("Barlow") == (
            "https://fonts.googleapis.com/css2?family=Barlow:ital,wght@0,400&display=swap"
        )

    def test_normal_tuples_precede_italic(self, fetcher):
        url = fetcher.build_url("Open Sans", [700, 400], ["italic", "normal"])
        assert url == (
            "https://fonts.googleapis.com/css2?family=Open+Sans"
            ":ital,wght@0,400;0,700;1,400;1,700&display=swap"
        )

    def test_italic_only(self, fetcher):
        url = fetcher.build_url("Lora", [400], [FontStyle.ITALIC])
        assert url.endswith(":ital,wght@1,400&display=swap")

    def test_invalid_weight(self, fetcher):
        with pytest.raises(ValueError, match="between 1 and 1000"):
            fetcher.build_url("Barlow", [1200])


class TestResolve:
    """Test reference interpretation."""

    def test_plain_family(self, fetcher):
        request = fetcher.resolve("Open Sans")
        assert request.family == "Open Sans"
        assert request.url.startswith(CATALOG_PREFIX + "Open+Sans:")

    @pytest.mark.parametrize(
        ("reference", "family"),
        [
            ("https://fonts.google.com/specimen/Open+Sans", "Open Sans"),
            ("https://fonts.google.com/specimen/Roboto+Mono?query=mono", "Roboto Mono"),
            ("https://fonts.google.com/noto/specimen/Noto+Sans+JP", "Noto Sans JP"),
            ("fonts.google.com/specimen/Barlow", "Barlow"),
        ],
    )
    def test_specimen_urls_rebuilt(self, fetcher, reference, family):
        request = fetcher.resolve(reference)
        assert request.family == family
        assert request.url == fetcher.build_url(family)

    def test_stylesheet_url_fetched_as_given(self, fetcher):
        url = "https://fonts.googleapis.com/css2?family=Barlow:wght@400;700&display=swap"
        assert fetcher.resolve(url) == CatalogRequest("Barlow", url)

    def test_stylesheet_url_rebuilt_with_selection(self, fetcher):
        url = "https://fonts.googleapis.com/css2?family=Open+Sans:wght@400"
        request = fetcher.resolve(url, weights=[300])
        assert request.family == "Open Sans"
        assert request.url == fetcher.build_url("Open Sans", [300])

    def test_other_host_uses_path_stem(self, fetcher):
        url = "https://cdn.example.com/fonts/inter.css"
        assert fetcher.resolve(url) == CatalogRequest("inter", url)

    def test_other_host_prefers_family_query(self, fetcher):
        url = "https://cdn.example.com/css?family=Work+Sans"
        assert fetcher.resolve(url).family == "Work Sans"

    @pytest.mark.parametrize(
        "reference",
        [
            "",
            "   ",
            "https://fonts.google.com/about",
            "https://fonts.googleapis.com/css2",
            "https://cdn.example.com/",
        ],
    )
    def test_invalid_references(self, fetcher, reference):
        with pytest.raises(InvalidCatalogReferenceError):
            fetcher.resolve(reference)

    def test_discovery_request_covers_everything(self, fetcher):
        request = fetcher.discovery_request("https://fonts.google.com/specimen/Barlow")
        assert request.family == "Barlow"
        assert request.url == fetcher.build_url(
            "Barlow", ALL_WEIGHTS, [FontStyle.NORMAL, FontStyle.ITALIC]
        )


class TestFetch:
    """Test stylesheet retrieval."""

    def test_fetch_returns_text(self, fetcher, barlow_http):
        assert fetcher.fetch("Barlow") == BARLOW_CSS

    @pytest.mark.parametrize("status", [400, 404])
    def test_catalog_miss(self, fetcher, fake_http, status):
        fake_http.add(
            CATALOG_PREFIX, NetworkError("u", NetworkErrorKind.HTTP_STATUS, status_code=status)
        )
        with pytest.raises(CatalogNotFoundError, match="Nonexistent"):
            fetcher.fetch("Nonexistent")

    def test_server_error_propagates(self, fetcher, fake_http):
        fake_http.add(CATALOG_PREFIX, NetworkError("u", NetworkErrorKind.HTTP_STATUS, 503))
        with pytest.raises(NetworkError) as exc_info:
            fetcher.fetch("Barlow")
        assert exc_info.value.is_transient


class TestHttpClient:
    """Test transport error mapping with a mocked session."""

    @pytest.fixture
    def session(self):
        return Mock(spec=requests.Session)

    @pytest.fixture
    def client(self, config, session):
        return HttpClient(config, session=session)

    def _response(self, status_code=200, content=b"", text="", encoding="utf-8"):
        response = Mock()
        response.status_code = status_code
        response.content = content
        response.text = text
        response.encoding = encoding
        return response

    def test_user_agent_on_default_session(self, config):
        client = HttpClient(config)
        assert client.session.headers["User-Agent"] == config.user_agent
        client.close()

    def test_timeout(self, client, session):
        session.get.side_effect = requests.Timeout()
        with pytest.raises(NetworkError) as exc_info:
            client.fetch_text("https://e.com/a.css")
        assert exc_info.value.kind == NetworkErrorKind.TIMEOUT
        assert exc_info.value.is_transient

    def test_unreachable(self, client, session):
        session.get.side_effect = requests.ConnectionError()
        with pytest.raises(NetworkError) as exc_info:
            client.fetch_bytes("https://e.com/a.woff2")
        assert exc_info.value.kind == NetworkErrorKind.UNREACHABLE

    def test_http_status(self, client, session):
        session.get.return_value = self._response(status_code=404)
        with pytest.raises(NetworkError) as exc_info:
            client.fetch_bytes("https://e.com/a.woff2")
        assert exc_info.value.kind == NetworkErrorKind.HTTP_STATUS
        assert exc_info.value.status_code == 404
        assert not exc_info.value.is_transient

    def test_success_passes_timeout(self, client, session, config):
        session.get.return_value = self._response(content=b"data", text="body")
        assert client.fetch_text("https://e.com/a.css") == "body"
        session.get.assert_called_once_with(
            "https://e.com/a.css", timeout=config.request_timeout_seconds
        )

    def test_missing_encoding_defaults_to_utf8(self, client, session):
        response = self._response(text="body", encoding=None)
        session.get.return_value = response
        client.fetch_text("https://e.com/a.css")
        assert response.encoding == "utf-8"


class TestVariantDownloader:
    """Test single-variant downloads."""

    def test_download(self, config, barlow_http):
        downloader = VariantDownloader(config, barlow_http)
        data = downloader.download("https://fonts.gstatic.com/s/barlow/v12/barlow-700.woff2")
        assert data.startswith(b"wOF2")

    def test_empty_body(self, config, fake_http):
        fake_http.add("https://e.com/empty.woff2", b"")
        with pytest.raises(NetworkError) as exc_info:
            VariantDownloader(config, fake_http).download("https://e.com/empty.woff2")
        assert exc_info.value.kind == NetworkErrorKind.EMPTY_RESPONSE

    def test_too_large(self, cache_root, fake_http):
        config = FontCacheConfig(cache_root=cache_root, max_font_size_mb=0.0001)
        fake_http.add("https://e.com/big.woff2", b"x" * 1024)
        with pytest.raises(NetworkError) as exc_info:
            VariantDownloader(config, fake_http).download("https://e.com/big.woff2")
        assert exc_info.value.kind == NetworkErrorKind.TOO_LARGE

    def test_data_url_decoded_locally(self, config, fake_http):
        payload = b"wOF2inline"
        url = "data:font/woff2;base64," + base64.b64encode(payload).decode()
        assert VariantDownloader(config, fake_http).download(url) == payload
        assert fake_http.requests == []
