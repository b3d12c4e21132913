"""
Local Font Scanner
==================

Infers font variants from a folder of font files without network access.

Weight and style come from the file name first (``MyFont-BoldItalic.ttf``,
``MyFont_700i.woff2``); when the name carries no recognizable token the font's
own OS/2 and head tables are read with fontTools.
"""

import io
import logging
import re
import struct
from dataclasses import dataclass, field
from pathlib import Path

from fontTools.ttLib import TTFont, TTLibError

from fontcache.core.exceptions import FilesystemError, FilesystemErrorKind
from fontcache.core.models import FONT_EXTENSIONS, FontFormat, FontStyle, VariantDescriptor
from fontcache.storage.filesystem import FileStorage, LocalFileStorage
from fontcache.storage.paths import sanitize_family_name

logger = logging.getLogger(__name__)

WEIGHT_KEYWORDS: dict[str, int] = {
    "thin": 100,
    "hairline": 100,
    "extralight": 200,
    "ultralight": 200,
    "light": 300,
    "regular": 400,
    "normal": 400,
    "book": 400,
    "roman": 400,
    "medium": 500,
    "semibold": 600,
    "demibold": 600,
    "bold": 700,
    "extrabold": 800,
    "ultrabold": 800,
    "black": 900,
    "heavy": 900,
}

ITALIC_KEYWORDS = frozenset({"italic", "oblique", "it"})

_TOKEN_SPLIT = re.compile(r"[-_\s]+")
_NUMERIC_WEIGHT = re.compile(r"^([1-9]00)(italic|i)?$")
_COMPOUND = re.compile(
    r"^(" + "|".join(sorted(WEIGHT_KEYWORDS, key=len, reverse=True)) + r")(italic|oblique)$"
)

# OS/2.fsSelection bit 0, head.macStyle bit 1
_FS_SELECTION_ITALIC = 1 << 0
_MAC_STYLE_ITALIC = 1 << 1


@dataclass
class ScanWarning:
    """Non-fatal problem with one file."""

    path: Path
    message: str

    def __str__(self) -> str:
        return f"{self.path.name}: {self.message}"


@dataclass
class ScanResult:
    """Variants found in a folder."""

    family: str
    variants: list[tuple[VariantDescriptor, Path]] = field(default_factory=list)
    warnings: list[ScanWarning] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.variants


def tokenize(stem: str) -> list[str]:
    return [token for token in _TOKEN_SPLIT.split(stem) if token]


def classify_token(token: str) -> tuple[int | None, bool] | None:
    """Map one file-name token to (weight, italic); None if not a style token."""
    lowered = token.lower()
    if lowered in WEIGHT_KEYWORDS:
        return WEIGHT_KEYWORDS[lowered], False
    if lowered in ITALIC_KEYWORDS:
        return None, True
    match = _NUMERIC_WEIGHT.match(lowered)
    if match:
        return int(match.group(1)), match.group(2) is not None
    match = _COMPOUND.match(lowered)
    if match:
        return WEIGHT_KEYWORDS[match.group(1)], True
    return None


def infer_family(stems: list[str]) -> str | None:
    """Common leading tokens of all stems, minus trailing style tokens."""
    token_lists = [tokenize(stem) for stem in stems]
    if not token_lists:
        return None

    common: list[str] = []
    for tokens in zip(*token_lists, strict=False):
        if any(token != tokens[0] for token in tokens):
            break
        common.append(tokens[0])

    while common and classify_token(common[-1]) is not None:
        common.pop()

    if not common:
        return None
    return sanitize_family_name("-".join(common))


class LocalFontScanner:
    """Scans a folder for font files and derives their variants."""

    def __init__(self, storage: FileStorage | None = None):
        self.storage = storage or LocalFileStorage()

    def font_files(self, folder: Path) -> list[Path]:
        """Font files directly inside `folder`, sorted by name."""
        folder = Path(folder)
        if not self.storage.exists(folder):
            raise FilesystemError(
                str(folder), FilesystemErrorKind.NOT_FOUND, f"Folder not found: {folder}"
            )
        return [
            path
            for path in self.storage.list_entries(folder)
            if path.suffix.lower() in FONT_EXTENSIONS and self.storage.is_file(path)
        ]

    def has_font_files(self, folder: Path) -> bool:
        """Whether `folder` exists and holds at least one font file."""
        try:
            return bool(self.font_files(folder))
        except FilesystemError:
            return False

    def infer_family(self, folder: Path) -> str:
        """Family name for a folder: common file-name prefix, else the folder name."""
        folder = Path(folder)
        files = self.font_files(folder)
        return infer_family([path.stem for path in files]) or sanitize_family_name(folder.name)

    def scan(self, folder: Path, family: str | None = None) -> ScanResult:
        """
        Scan `folder` (non-recursively) for font variants.

        Args:
            folder: Folder holding font files
            family: Explicit family name; inferred from file names when omitted

        Returns:
            ScanResult with variants in file-name order
        """
        folder = Path(folder)
        files = self.font_files(folder)
        stems = [path.stem for path in files]

        inferred = infer_family(stems)
        if family is None:
            family = inferred or sanitize_family_name(folder.name)
        prefix_length = len(tokenize(inferred)) if inferred else 0

        result = ScanResult(family=family)
        seen: dict[tuple, Path] = {}

        for path in files:
            fmt = FontFormat.from_extension(path.suffix)
            tokens = tokenize(path.stem)
            style_tokens = tokens[prefix_length:] if len(tokens) > prefix_length else tokens

            weight, style = self._from_tokens(style_tokens)
            if weight is None and style is None:
                weight, style = self._from_metadata(path, result)

            descriptor = VariantDescriptor(
                family, weight or 400, style or FontStyle.NORMAL, fmt
            )
            if descriptor.key in seen:
                result.warnings.append(
                    ScanWarning(path, f"duplicate of {seen[descriptor.key].name}, skipped")
                )
                continue

            seen[descriptor.key] = path
            result.variants.append((descriptor, path))
            logger.debug(f"Scanned {path.name} -> {descriptor}")

        for warning in result.warnings:
            logger.warning(f"Scan warning: {warning}")
        logger.info(f"Found {len(result.variants)} variants of {family} in {folder}")
        return result

    @staticmethod
    def _from_tokens(tokens: list[str]) -> tuple[int | None, FontStyle | None]:
        weight = None
        italic = None
        for token in tokens:
            classified = classify_token(token)
            if classified is None:
                continue
            token_weight, token_italic = classified
            if token_weight is not None:
                weight = token_weight
            if token_italic:
                italic = True
            elif italic is None:
                italic = False
        if italic is None:
            return weight, None
        return weight, FontStyle.ITALIC if italic else FontStyle.NORMAL

    def _from_metadata(self, path: Path, result: ScanResult) -> tuple[int, FontStyle]:
        """Read weight and style from the font tables."""
        try:
            font = TTFont(io.BytesIO(self.storage.read_file(path)), lazy=True)
        except (FilesystemError, TTLibError, OSError, ValueError, ImportError) as e:
            result.warnings.append(ScanWarning(path, f"unreadable font metadata ({e})"))
            return 400, FontStyle.NORMAL

        try:
            weight = 400
            italic = False
            if "OS/2" in font:
                os2 = font["OS/2"]
                weight = os2.usWeightClass
                # Some legacy fonts store 1..9 instead of 100..900
                if 1 <= weight <= 9:
                    weight *= 100
                italic = bool(os2.fsSelection & _FS_SELECTION_ITALIC)
            if not italic and "head" in font:
                italic = bool(font["head"].macStyle & _MAC_STYLE_ITALIC)
        except (KeyError, AttributeError, TTLibError, struct.error) as e:
            result.warnings.append(ScanWarning(path, f"unreadable font metadata ({e})"))
            return 400, FontStyle.NORMAL
        finally:
            font.close()

        if not 1 <= weight <= 1000:
            result.warnings.append(ScanWarning(path, f"weight class {weight} out of range"))
            weight = 400
        return weight, FontStyle.ITALIC if italic else FontStyle.NORMAL
