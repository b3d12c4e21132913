"""
Stylesheet Parser
=================

Explicit scanner for the subset of CSS used by font catalogs. The scanner
walks the text once, skipping comments and unrelated rules, and produces a
`FontFaceBlock` for every ``@font-face`` rule. `StylesheetParser.parse`
then reduces the blocks to one source per variant.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from urllib.parse import urljoin, urlparse

from fontcache.core.exceptions import ParseError
from fontcache.core.models import FontFormat, FontStyle, VariantDescriptor

logger = logging.getLogger(__name__)

FORMAT_HINTS: dict[str, FontFormat] = {
    "woff2": FontFormat.WOFF2,
    "woff2-variations": FontFormat.WOFF2,
    "woff": FontFormat.WOFF,
    "woff-variations": FontFormat.WOFF,
    "truetype": FontFormat.TTF,
    "truetype-variations": FontFormat.TTF,
    "ttf": FontFormat.TTF,
    "opentype": FontFormat.OTF,
    "opentype-variations": FontFormat.OTF,
    "otf": FontFormat.OTF,
}

WEIGHT_KEYWORDS = {"normal": 400, "bold": 700}

_IDENT = re.compile(r"[-\w]+")
_FORMAT_HINT = re.compile(r"format\(\s*(['\"]?)([^'\")]+)\1\s*\)", re.IGNORECASE)
_DATA_URL_FORMAT = re.compile(
    r"^data:(?:font|application)/(?:x-)?(?:font-)?([a-z0-9]+)", re.IGNORECASE
)
_BASIC_LATIN_RANGE = re.compile(r"^u\+0{1,6}(?![0-9a-f?])", re.IGNORECASE)


@dataclass
class FontSource:
    """One entry of a ``src`` descriptor."""

    url: str
    format: FontFormat | None
    offset: int


@dataclass
class FontFaceBlock:
    """A parsed ``@font-face`` rule."""

    family: str
    weight: int
    style: FontStyle
    sources: list[FontSource] = field(default_factory=list)
    unicode_range: str | None = None
    offset: int = 0

    def select_source(self) -> FontSource | None:
        """Pick the most widely supported compressed format.

        Sources of one block are fallbacks for the same variant; woff2 beats
        woff, ttf and otf, and ties keep the declared order.
        """
        supported = [s for s in self.sources if s.format is not None]
        if not supported:
            return None
        return min(supported, key=lambda s: s.format.preference)

    @property
    def covers_basic_latin(self) -> bool:
        if self.unicode_range is None:
            return True
        return bool(_BASIC_LATIN_RANGE.match(self.unicode_range.strip()))


def _strip_quotes(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "'\"":
        return value[1:-1]
    return value


def infer_format(url: str, hint: str | None = None) -> FontFormat | None:
    """Format from an explicit ``format()`` hint, else from the URL."""
    if hint is not None:
        return FORMAT_HINTS.get(hint.strip().lower())
    if url.startswith("data:"):
        match = _DATA_URL_FORMAT.match(url)
        return FORMAT_HINTS.get(match.group(1).lower()) if match else None
    suffix = PurePosixPath(urlparse(url).path).suffix
    return FontFormat.from_extension(suffix) if suffix else None


class _Scanner:
    """Single-pass cursor over stylesheet text."""

    def __init__(self, text: str):
        self.text = text
        self.pos = 0

    @property
    def at_end(self) -> bool:
        return self.pos >= len(self.text)

    def peek(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def skip_comment(self) -> bool:
        if not self.text.startswith("/*", self.pos):
            return False
        end = self.text.find("*/", self.pos + 2)
        if end == -1:
            raise ParseError("unterminated comment", self.pos)
        self.pos = end + 2
        return True

    def skip_space(self) -> None:
        while not self.at_end:
            if self.text[self.pos].isspace():
                self.pos += 1
            elif not self.skip_comment():
                return

    def read_ident(self) -> str:
        match = _IDENT.match(self.text, self.pos)
        if not match:
            return ""
        self.pos = match.end()
        return match.group(0)

    def skip_string(self) -> None:
        quote = self.text[self.pos]
        start = self.pos
        self.pos += 1
        while not self.at_end:
            char = self.text[self.pos]
            if char == "\\":
                self.pos += 2
                continue
            if char == "\n":
                break
            self.pos += 1
            if char == quote:
                return
        raise ParseError("unterminated string", start)

    def read_value(self) -> str:
        """Read a declaration value up to ``;`` or ``}`` outside parentheses."""
        start = self.pos
        parens: list[int] = []
        chunks: list[str] = []
        chunk_start = self.pos
        while not self.at_end:
            char = self.text[self.pos]
            if char in "'\"":
                self.skip_string()
            elif self.text.startswith("/*", self.pos):
                chunks.append(self.text[chunk_start : self.pos])
                comment_start = self.pos
                self.skip_comment()
                # Same length as the comment, so value offsets match the text
                chunks.append(" " * (self.pos - comment_start))
                chunk_start = self.pos
            elif char == "(":
                parens.append(self.pos)
                self.pos += 1
            elif char == ")":
                if parens:
                    parens.pop()
                self.pos += 1
            elif char in ";}" and not parens:
                break
            else:
                self.pos += 1
        if parens:
            opening = parens[0]
            if self.text[max(0, opening - 3) : opening].lower() == "url":
                raise ParseError("unterminated url(", opening - 3)
            raise ParseError("unterminated parenthesis", opening)
        if self.at_end:
            raise ParseError("unterminated declaration block", start)
        chunks.append(self.text[chunk_start : self.pos])
        return "".join(chunks).strip()

    def skip_block(self) -> None:
        """Skip a balanced ``{...}`` block starting at the current ``{``."""
        start = self.pos
        depth = 0
        while not self.at_end:
            char = self.text[self.pos]
            if char in "'\"":
                self.skip_string()
                continue
            if self.skip_comment():
                continue
            self.pos += 1
            if char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return
        raise ParseError("unterminated block", start)

    def skip_prelude(self) -> str:
        """Skip a rule prelude; returns the terminator found (``{`` or ``;``)."""
        while not self.at_end:
            char = self.text[self.pos]
            if char in "'\"":
                self.skip_string()
            elif self.skip_comment():
                continue
            elif char in "{;":
                return char
            elif char == "}":
                raise ParseError("unexpected '}'", self.pos)
            else:
                self.pos += 1
        return ""

    def read_declarations(self) -> dict[str, tuple[str, int]]:
        """Read ``name: value`` pairs of the block at the current ``{``."""
        block_start = self.pos
        self.pos += 1
        declarations: dict[str, tuple[str, int]] = {}
        while True:
            self.skip_space()
            if self.at_end:
                raise ParseError("unterminated @font-face block", block_start)
            char = self.peek()
            if char == "}":
                self.pos += 1
                return declarations
            if char == ";":
                self.pos += 1
                continue

            name_offset = self.pos
            name = self.read_ident()
            if not name:
                raise ParseError("expected a property name", name_offset)
            self.skip_space()
            if self.peek() != ":":
                raise ParseError(f"expected ':' after '{name}'", self.pos)
            self.pos += 1
            self.skip_space()
            value_offset = self.pos
            declarations[name.lower()] = (self.read_value(), value_offset)


def _split_top_level(value: str) -> list[tuple[str, int]]:
    """Split on commas that are not inside parentheses or quotes."""
    parts: list[tuple[str, int]] = []
    depth = 0
    quote = ""
    start = 0
    for index, char in enumerate(value):
        if quote:
            if char == quote:
                quote = ""
        elif char in "'\"":
            quote = char
        elif char == "(":
            depth += 1
        elif char == ")":
            depth = max(0, depth - 1)
        elif char == "," and depth == 0:
            parts.append((value[start:index], start))
            start = index + 1
    parts.append((value[start:], start))
    return [
        (part.strip(), offset + len(part) - len(part.lstrip()))
        for part, offset in parts
        if part.strip()
    ]


class StylesheetParser:
    """Parses catalog stylesheets into variants and their source URLs."""

    def parse_blocks(self, text: str, base_url: str | None = None) -> list[FontFaceBlock]:
        """Scan `text` and return every ``@font-face`` block in order."""
        scanner = _Scanner(text)
        blocks: list[FontFaceBlock] = []

        while True:
            scanner.skip_space()
            if scanner.at_end:
                break

            rule_offset = scanner.pos
            if scanner.peek() == "@":
                scanner.pos += 1
                name = scanner.read_ident().lower()
                if name == "font-face":
                    scanner.skip_space()
                    if scanner.peek() != "{":
                        raise ParseError("expected '{' after @font-face", scanner.pos)
                    declarations = scanner.read_declarations()
                    blocks.append(self._build_block(declarations, rule_offset, base_url))
                    continue

            terminator = scanner.skip_prelude()
            if terminator == "{":
                scanner.skip_block()
            elif terminator == ";":
                scanner.pos += 1

        return blocks

    def parse(
        self, text: str, base_url: str | None = None
    ) -> list[tuple[VariantDescriptor, str]]:
        """Return one (descriptor, source URL) pair per variant, in declared order.

        Blocks sharing family, weight and style (catalog unicode-range subsets)
        collapse to a single variant: the block covering basic latin wins,
        otherwise the first one.
        """
        selected: dict[tuple, tuple[FontFaceBlock, FontSource]] = {}

        for block in self.parse_blocks(text, base_url):
            source = block.select_source()
            if source is None:
                logger.warning(
                    f"Skipping @font-face at offset {block.offset} for {block.family}: "
                    f"no supported source format"
                )
                continue

            key = (block.family, block.weight, block.style)
            existing = selected.get(key)
            if existing is None:
                selected[key] = (block, source)
            elif block.covers_basic_latin and not existing[0].covers_basic_latin:
                selected[key] = (block, source)

        variants = [
            (VariantDescriptor(block.family, block.weight, block.style, source.format), source.url)
            for block, source in selected.values()
        ]
        logger.debug(f"Parsed {len(variants)} variants")
        return variants

    def _build_block(
        self,
        declarations: dict[str, tuple[str, int]],
        offset: int,
        base_url: str | None,
    ) -> FontFaceBlock:
        if "font-family" not in declarations:
            raise ParseError("@font-face block without font-family", offset)
        family_value, family_offset = declarations["font-family"]
        family = _strip_quotes(family_value)
        if not family:
            raise ParseError("empty font-family", family_offset)

        weight = 400
        if "font-weight" in declarations:
            weight = self._parse_weight(*declarations["font-weight"])

        style = FontStyle.NORMAL
        if "font-style" in declarations:
            style = self._parse_style(*declarations["font-style"])

        if "src" not in declarations:
            raise ParseError("@font-face block without src", offset)
        sources = self._parse_sources(*declarations["src"], base_url=base_url)
        if not sources:
            raise ParseError("@font-face block without url() source", declarations["src"][1])

        unicode_range = declarations.get("unicode-range", (None, 0))[0]

        return FontFaceBlock(
            family=family,
            weight=weight,
            style=style,
            sources=sources,
            unicode_range=unicode_range,
            offset=offset,
        )

    @staticmethod
    def _parse_weight(value: str, offset: int) -> int:
        tokens = value.lower().split()
        if not tokens:
            raise ParseError("empty font-weight", offset)
        if len(tokens) == 1 and tokens[0] in WEIGHT_KEYWORDS:
            return WEIGHT_KEYWORDS[tokens[0]]
        try:
            numbers = [int(float(token)) for token in tokens]
        except ValueError:
            raise ParseError(f"invalid font-weight '{value}'", offset) from None
        # Variable fonts declare a range; the lower bound names the file
        weight = min(numbers)
        if not 1 <= weight <= 1000:
            raise ParseError(f"font-weight out of range '{value}'", offset)
        return weight

    @staticmethod
    def _parse_style(value: str, offset: int) -> FontStyle:
        keyword = value.split()[0].lower() if value.split() else ""
        if keyword == "normal":
            return FontStyle.NORMAL
        if keyword in ("italic", "oblique"):
            return FontStyle.ITALIC
        raise ParseError(f"invalid font-style '{value}'", offset)

    @staticmethod
    def _parse_sources(value: str, offset: int, base_url: str | None) -> list[FontSource]:
        sources = []
        for item, item_offset in _split_top_level(value):
            lowered = item.lower()
            if lowered.startswith("local("):
                continue
            if not lowered.startswith("url("):
                raise ParseError(f"invalid src entry '{item}'", offset + item_offset)

            close = item.find(")")
            quote = item[4:].lstrip()[:1]
            if quote in "'\"" and quote:
                # Quoted URLs may contain ')' themselves
                open_quote = item.index(quote, 4)
                end_quote = item.find(quote, open_quote + 1)
                if end_quote == -1:
                    raise ParseError("unterminated string", offset + item_offset)
                close = item.find(")", end_quote)
            if close == -1:
                raise ParseError("unterminated url(", offset + item_offset)

            url = _strip_quotes(item[4:close])
            if not url:
                raise ParseError("empty url()", offset + item_offset)
            if base_url and not url.startswith("data:"):
                url = urljoin(base_url, url)

            hint_match = _FORMAT_HINT.search(item, close)
            hint = hint_match.group(2) if hint_match else None
            sources.append(FontSource(url, infer_format(url, hint), offset + item_offset))
        return sources
