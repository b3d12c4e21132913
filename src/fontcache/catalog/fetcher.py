"""
Stylesheet Fetcher
==================

Retrieves `@font-face` stylesheets from the font catalog.

Accepted references:

- plain family names: ``Barlow``, ``Open Sans``
- specimen pages: ``https://fonts.google.com/specimen/Open+Sans``,
  ``https://fonts.google.com/noto/specimen/Noto+Sans``
- stylesheet URLs: ``https://fonts.googleapis.com/css2?family=Barlow:wght@400``
- any other ``http(s)`` URL serving a stylesheet
"""

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import PurePosixPath
from urllib.parse import parse_qs, quote_plus, unquote_plus, urlparse

from fontcache.core.config import FontCacheConfig
from fontcache.core.exceptions import (
    CatalogNotFoundError,
    InvalidCatalogReferenceError,
    NetworkError,
    NetworkErrorKind,
)
from fontcache.core.models import FontStyle, validate_weight

from .http import HttpClient

logger = logging.getLogger(__name__)

SPECIMEN_HOST = "fonts.google.com"
STYLESHEET_HOST = "fonts.googleapis.com"

_SPECIMEN_PATH = re.compile(r"^/(?:noto/)?specimen/([^/?#]+)", re.IGNORECASE)

# Catalog answers unknown families with 400 and missing stylesheets with 404
_NOT_FOUND_STATUSES = {400, 404}

ALL_WEIGHTS = tuple(range(100, 1000, 100))


@dataclass(frozen=True)
class CatalogRequest:
    """A resolved catalog reference."""

    family: str
    url: str


class StylesheetFetcher:
    """Builds catalog URLs and retrieves stylesheet text."""

    def __init__(self, config: FontCacheConfig | None = None, http: HttpClient | None = None):
        self.config = config or FontCacheConfig()
        self.http = http or HttpClient(self.config)

    def build_url(
        self,
        family: str,
        weights: Iterable[int] | None = None,
        styles: Iterable[FontStyle | str] | None = None,
    ) -> str:
        """Canonical stylesheet URL for a family and a weight/style selection.

        The catalog requires ``ital,wght`` tuples with every normal (``0,w``)
        tuple before the italic (``1,w``) ones, each group sorted by weight.
        """
        weights = sorted({validate_weight(w) for w in (weights or self.config.default_weights)})
        styles = {FontStyle.parse(s) for s in (styles or self.config.default_styles)}

        tuples = []
        if FontStyle.NORMAL in styles:
            tuples.extend(f"0,{w}" for w in weights)
        if FontStyle.ITALIC in styles:
            tuples.extend(f"1,{w}" for w in weights)

        return (
            f"{self.config.catalog_css_url}?family={quote_plus(family)}"
            f":ital,wght@{';'.join(tuples)}&display=swap"
        )

    def resolve(
        self,
        reference: str,
        weights: Iterable[int] | None = None,
        styles: Iterable[FontStyle | str] | None = None,
    ) -> CatalogRequest:
        """Turn a family name or catalog URL into a `CatalogRequest`."""
        text = (reference or "").strip()
        if not text:
            raise InvalidCatalogReferenceError(reference)

        if not text.lower().startswith(("http://", "https://")):
            if SPECIMEN_HOST in text.lower() or STYLESHEET_HOST in text.lower():
                return self.resolve(f"https://{text}", weights, styles)
            return CatalogRequest(text, self.build_url(text, weights, styles))

        parsed = urlparse(text)
        host = parsed.netloc.lower()

        if host == SPECIMEN_HOST or host.endswith("." + SPECIMEN_HOST):
            match = _SPECIMEN_PATH.match(parsed.path)
            if not match:
                raise InvalidCatalogReferenceError(reference)
            family = unquote_plus(match.group(1)).strip()
            return CatalogRequest(family, self.build_url(family, weights, styles))

        family = self._family_from_query(parsed.query)
        if host == STYLESHEET_HOST:
            if not family:
                raise InvalidCatalogReferenceError(reference)
            if weights or styles:
                return CatalogRequest(family, self.build_url(family, weights, styles))
            return CatalogRequest(family, text)

        if not family:
            family = PurePosixPath(parsed.path).stem.strip()
        if not family:
            raise InvalidCatalogReferenceError(reference)
        return CatalogRequest(family, text)

    @staticmethod
    def _family_from_query(query: str) -> str | None:
        values = parse_qs(query).get("family")
        if not values:
            return None
        # family=Open Sans:ital,wght@0,400 -> "Open Sans"
        family = values[0].split(":", 1)[0].strip()
        return family or None

    def fetch(self, request: CatalogRequest | str) -> str:
        """Retrieve the raw stylesheet text for a reference."""
        if not isinstance(request, CatalogRequest):
            request = self.resolve(request)

        logger.info(f"Fetching stylesheet for {request.family}: {request.url}")
        try:
            text = self.http.fetch_text(request.url)
        except NetworkError as e:
            if e.kind == NetworkErrorKind.HTTP_STATUS and e.status_code in _NOT_FOUND_STATUSES:
                raise CatalogNotFoundError(request.family) from e
            raise

        logger.debug(f"Received {len(text)} characters of stylesheet for {request.family}")
        return text

    def discovery_request(self, reference: str) -> CatalogRequest:
        """Request covering every weight in both styles."""
        resolved = self.resolve(reference)
        return CatalogRequest(
            resolved.family,
            self.build_url(resolved.family, ALL_WEIGHTS, [FontStyle.NORMAL, FontStyle.ITALIC]),
        )
