"""Configuration management for the font cache."""

import logging
from pathlib import Path

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import (
    ConfigFileNotFoundError,
    ConfigLoadError,
    EmptyConfigFileError,
    InvalidUrlSchemeError,
    InvalidYamlError,
)
from .models import FontStyle, validate_weight

DEFAULT_CATALOG_CSS_URL = "https://fonts.googleapis.com/css2"

# The catalog only serves woff2 sources to clients it recognizes as modern browsers
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)


def default_cache_root() -> Path:
    return Path.home() / ".cache" / "fontcache" / "fonts"


class FontCacheConfig(BaseSettings):
    """Font cache configuration from environment, .env and YAML."""

    model_config = SettingsConfigDict(
        env_prefix="FONTCACHE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage
    cache_root: Path = Field(default_factory=default_cache_root, description="Cache root")
    registry_path: Path | None = Field(
        None, description="Registry file (defaults to <cache_root>/registry.json)"
    )

    # Catalog
    catalog_css_url: str = Field(DEFAULT_CATALOG_CSS_URL, description="Stylesheet endpoint")
    user_agent: str = Field(DEFAULT_USER_AGENT, min_length=1, description="HTTP User-Agent")
    request_timeout_seconds: float = Field(30.0, gt=0.0, description="Request timeout")

    # Downloads
    max_parallel_downloads: int = Field(4, ge=1, description="Concurrent variant transfers")
    download_retries: int = Field(2, ge=0, description="Extra attempts for transient failures")
    retry_backoff_seconds: float = Field(1.0, ge=0.0, description="Base retry backoff")
    max_font_size_mb: float = Field(20.0, gt=0.0, description="Largest accepted font file")

    # Defaults for catalog requests
    default_weights: list[int] = Field(default_factory=lambda: [400])
    default_styles: list[FontStyle] = Field(default_factory=lambda: [FontStyle.NORMAL])

    log_level: str = Field("INFO", description="Log level")

    @field_validator("cache_root", "registry_path")
    @classmethod
    def expand_user(cls, v):
        if v is not None:
            return Path(v).expanduser()
        return v

    @field_validator("catalog_css_url")
    @classmethod
    def validate_catalog_url(cls, v):
        if not v.startswith(("https://", "http://")):
            raise InvalidUrlSchemeError()
        return v.rstrip("/")

    @field_validator("default_weights")
    @classmethod
    def validate_default_weights(cls, v):
        if not v:
            raise ValueError("default_weights cannot be empty")
        return sorted({validate_weight(w) for w in v})

    @field_validator("default_styles", mode="before")
    @classmethod
    def parse_default_styles(cls, v):
        if isinstance(v, str):
            v = [part for part in v.split(",") if part.strip()]
        styles = [FontStyle.parse(s) for s in v]
        if not styles:
            raise ValueError("default_styles cannot be empty")
        return styles

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @property
    def resolved_registry_path(self) -> Path:
        return self.registry_path or self.cache_root / "registry.json"

    @property
    def max_font_size_bytes(self) -> int:
        return int(self.max_font_size_mb * 1024 * 1024)

    @classmethod
    def from_yaml(cls, config_path: str | Path) -> "FontCacheConfig":
        """Load configuration from a YAML file."""
        return load_config_from_yaml(config_path, cls)

    @classmethod
    def load(cls, yaml_path: str | Path | None = None, **overrides) -> "FontCacheConfig":
        """Load from YAML when given, else from environment; then apply overrides."""
        config = cls.from_yaml(yaml_path) if yaml_path else cls()
        overrides = {k: v for k, v in overrides.items() if v is not None}
        if overrides:
            data = config.model_dump()
            data.update(overrides)
            config = cls.model_validate(data)
        return config


def load_config_from_yaml(config_path: str | Path, config_class: type) -> BaseSettings:
    """Load configuration from YAML file."""
    config_path = Path(config_path)

    if not config_path.exists():
        raise ConfigFileNotFoundError(str(config_path))

    try:
        with config_path.open() as f:
            config_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise InvalidYamlError(str(config_path), str(e)) from e

    if config_data is None:
        raise EmptyConfigFileError(str(config_path))

    if not isinstance(config_data, dict):
        raise ConfigLoadError(f"expected a mapping in {config_path}")

    # YAML values take precedence; don't pick up a stray .env for this instance
    class YamlConfig(config_class):
        model_config = SettingsConfigDict(
            env_prefix="FONTCACHE_",
            env_file=None,
            case_sensitive=False,
            extra="ignore",
        )

    try:
        loaded = YamlConfig(**config_data)
    except Exception as e:
        raise ConfigLoadError(str(e)) from e

    return config_class.model_validate(loaded.model_dump())
