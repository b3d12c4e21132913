"""
HTTP Client
===========

Network-retrieval interface used by the fetcher and the downloader. Wraps a
`requests.Session` and turns transport failures into `NetworkError` values
that distinguish timeouts, unreachable hosts and HTTP status failures.
"""

import logging

import requests

from fontcache.core.config import FontCacheConfig
from fontcache.core.exceptions import NetworkError, NetworkErrorKind

logger = logging.getLogger(__name__)


class HttpClient:
    """Thin retrieval client with a shared session."""

    def __init__(
        self,
        config: FontCacheConfig | None = None,
        session: requests.Session | None = None,
    ):
        self.config = config or FontCacheConfig()
        self.session = session or self._create_session()

    def _create_session(self) -> requests.Session:
        """Create HTTP session with appropriate configuration."""
        session = requests.Session()
        session.headers.update({"User-Agent": self.config.user_agent})
        return session

    def _get(self, url: str) -> requests.Response:
        try:
            response = self.session.get(url, timeout=self.config.request_timeout_seconds)
        except requests.Timeout as e:
            raise NetworkError(url, NetworkErrorKind.TIMEOUT) from e
        except requests.RequestException as e:
            # ConnectionError, invalid URL, too many redirects, ...
            raise NetworkError(url, NetworkErrorKind.UNREACHABLE) from e

        if not 200 <= response.status_code < 300:
            raise NetworkError(url, NetworkErrorKind.HTTP_STATUS, response.status_code)

        logger.debug(f"GET {url} -> {response.status_code} ({len(response.content)} bytes)")
        return response

    def fetch_text(self, url: str) -> str:
        """Retrieve a text resource."""
        response = self._get(url)
        if not response.encoding:
            response.encoding = "utf-8"
        return response.text

    def fetch_bytes(self, url: str) -> bytes:
        """Retrieve a binary resource."""
        return self._get(url).content

    def close(self) -> None:
        self.session.close()
