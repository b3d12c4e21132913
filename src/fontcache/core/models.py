"""Data models for cached fonts.

`VariantDescriptor` is a lightweight immutable value used while discovering
and writing variants; `FileEntry` and `FontRecord` are the pydantic models
persisted in the registry.
"""

import re
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from pathlib import PurePosixPath

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from .exceptions import InvalidStyleError, InvalidWeightError


class FontStyle(Enum):
    """Supported font styles."""

    NORMAL = "normal"
    ITALIC = "italic"

    @classmethod
    def parse(cls, value: "str | FontStyle") -> "FontStyle":
        """Parse a style name, accepting `oblique` as italic."""
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        if normalized == "oblique":
            return cls.ITALIC
        try:
            return cls(normalized)
        except ValueError:
            raise InvalidStyleError(str(value)) from None


class FontFormat(Enum):
    """Supported font file formats, declared in preference order."""

    WOFF2 = "woff2"
    WOFF = "woff"
    TTF = "ttf"
    OTF = "otf"

    @property
    def preference(self) -> int:
        """Lower is preferred."""
        return FORMAT_PREFERENCE.index(self)

    @property
    def mime_type(self) -> str:
        return f"font/{self.value}"

    @property
    def css_format(self) -> str:
        """Name used in `format()` hints."""
        return {
            FontFormat.WOFF2: "woff2",
            FontFormat.WOFF: "woff",
            FontFormat.TTF: "truetype",
            FontFormat.OTF: "opentype",
        }[self]

    @classmethod
    def from_extension(cls, extension: str) -> "FontFormat | None":
        """Map a file extension (with or without dot) to a format."""
        try:
            return cls(extension.lower().lstrip("."))
        except ValueError:
            return None


FORMAT_PREFERENCE: tuple[FontFormat, ...] = (
    FontFormat.WOFF2,
    FontFormat.WOFF,
    FontFormat.TTF,
    FontFormat.OTF,
)

FONT_EXTENSIONS = frozenset(f".{fmt.value}" for fmt in FontFormat)


def validate_weight(weight: int) -> int:
    """Check a weight lies on the CSS numeric scale."""
    if not 1 <= weight <= 1000:
        raise InvalidWeightError(weight)
    return weight


@dataclass(frozen=True)
class VariantDescriptor:
    """One font file: a (family, weight, style, format) tuple."""

    family: str
    weight: int
    style: FontStyle
    format: FontFormat

    def __post_init__(self):
        validate_weight(self.weight)

    @property
    def key(self) -> tuple[int, FontStyle, FontFormat]:
        """Identity within a family."""
        return (self.weight, self.style, self.format)

    def __str__(self) -> str:
        return f"{self.family} {self.weight} {self.style.value} ({self.format.value})"


class FileEntry(BaseModel):
    """A cached variant file, addressed relative to the cache root."""

    model_config = ConfigDict(frozen=True)

    weight: int = Field(..., description="Numeric font weight")
    style: FontStyle = Field(..., description="Font style")
    format: FontFormat = Field(..., description="Font file format")
    local_path: str = Field(..., min_length=1, description="Path relative to the cache root")

    @field_validator("weight")
    @classmethod
    def validate_weight_range(cls, v: int) -> int:
        return validate_weight(v)

    @field_validator("style", mode="before")
    @classmethod
    def parse_style(cls, v):
        return FontStyle.parse(v)

    @field_validator("local_path")
    @classmethod
    def normalize_local_path(cls, v: str) -> str:
        """Store POSIX separators so the cache folder is portable."""
        normalized = re.sub(r"/+", "/", v.replace("\\", "/"))
        return str(PurePosixPath(normalized))

    @property
    def key(self) -> tuple[int, FontStyle, FontFormat]:
        return (self.weight, self.style, self.format)

    def descriptor(self, family: str) -> VariantDescriptor:
        return VariantDescriptor(family, self.weight, self.style, self.format)


class FontRecord(BaseModel):
    """Registry entry for one cached family."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str = Field(..., min_length=1, description="Canonical family name")
    display_name: str = Field(..., min_length=1, description="User-facing name")
    source_url: str | None = Field(None, description="Catalog URL, None for local fonts")
    files: list[FileEntry] = Field(default_factory=list)
    cached_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @computed_field
    @property
    def weights(self) -> list[int]:
        """Distinct weights present in `files`."""
        return sorted({entry.weight for entry in self.files})

    @computed_field
    @property
    def styles(self) -> list[str]:
        """Distinct style names present in `files`."""
        return sorted({entry.style.value for entry in self.files})

    @property
    def is_local(self) -> bool:
        return self.source_url is None

    def find_files(self, weight: int, style: FontStyle) -> list[FileEntry]:
        """Entries for a weight/style, most preferred format first."""
        matches = [f for f in self.files if f.weight == weight and f.style == style]
        return sorted(matches, key=lambda f: f.format.preference)

    def __str__(self) -> str:
        return f"{self.display_name} ({len(self.files)} files)"


@dataclass
class DiscoveryResult:
    """Weights and styles a catalog offers for a family."""

    family: str
    weights: list[int]
    styles: list[FontStyle]
