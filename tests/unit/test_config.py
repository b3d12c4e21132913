"""
Unit tests for configuration loading, validation and defaults.
"""

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from fontcache.core.config import (
    DEFAULT_CATALOG_CSS_URL,
    FontCacheConfig,
    load_config_from_yaml,
)
from fontcache.core.exceptions import (
    ConfigFileNotFoundError,
    ConfigLoadError,
    ConfigurationError,
    EmptyConfigFileError,
    InvalidYamlError,
)
from fontcache.core.models import FontStyle


class TestFontCacheConfig:
    """Test FontCacheConfig defaults and validation."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("FONTCACHE_CACHE_ROOT", raising=False)
        config = FontCacheConfig(_env_file=None)

        assert config.cache_root == Path.home() / ".cache" / "fontcache" / "fonts"
        assert config.resolved_registry_path == config.cache_root / "registry.json"
        assert config.catalog_css_url == DEFAULT_CATALOG_CSS_URL
        assert config.max_parallel_downloads == 4
        assert config.download_retries == 2
        assert config.default_weights == [400]
        assert config.default_styles == [FontStyle.NORMAL]
        assert config.log_level == "INFO"

    def test_explicit_registry_path(self, temp_dir):
        config = FontCacheConfig(cache_root=temp_dir, registry_path=temp_dir / "meta" / "r.json")
        assert config.resolved_registry_path == temp_dir / "meta" / "r.json"

    def test_max_font_size_bytes(self, temp_dir):
        config = FontCacheConfig(cache_root=temp_dir, max_font_size_mb=2)
        assert config.max_font_size_bytes == 2 * 1024 * 1024

    def test_weights_sorted_and_deduplicated(self, temp_dir):
        config = FontCacheConfig(cache_root=temp_dir, default_weights=[700, 400, 700])
        assert config.default_weights == [400, 700]

    def test_styles_parsed(self, temp_dir):
        config = FontCacheConfig(cache_root=temp_dir, default_styles=["Italic", "oblique"])
        assert config.default_styles == [FontStyle.ITALIC, FontStyle.ITALIC]

    def test_catalog_url_trailing_slash(self, temp_dir):
        config = FontCacheConfig(cache_root=temp_dir, catalog_css_url="https://mirror.test/css2/")
        assert config.catalog_css_url == "https://mirror.test/css2"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"catalog_css_url": "ftp://mirror.test/css2"},
            {"default_weights": [1500]},
            {"default_weights": []},
            {"default_styles": ["bold"]},
            {"max_parallel_downloads": 0},
            {"download_retries": -1},
            {"request_timeout_seconds": 0},
            {"log_level": "CHATTY"},
        ],
    )
    def test_invalid_values(self, temp_dir, overrides):
        with pytest.raises(ValidationError):
            FontCacheConfig(cache_root=temp_dir, **overrides)

    def test_environment_variables(self, monkeypatch, temp_dir):
        monkeypatch.setenv("FONTCACHE_CACHE_ROOT", str(temp_dir / "env-cache"))
        monkeypatch.setenv("FONTCACHE_MAX_PARALLEL_DOWNLOADS", "8")
        monkeypatch.setenv("FONTCACHE_DEFAULT_WEIGHTS", "[300, 500]")
        monkeypatch.setenv("FONTCACHE_LOG_LEVEL", "debug")

        config = FontCacheConfig()

        assert config.cache_root == temp_dir / "env-cache"
        assert config.max_parallel_downloads == 8
        assert config.default_weights == [300, 500]
        assert config.log_level == "DEBUG"


class TestYamlLoading:
    """Test YAML configuration loading."""

    def test_from_yaml(self, temp_dir):
        config_path = temp_dir / "fontcache.yaml"
        config_path.write_text(
            yaml.safe_dump(
                {
                    "cache_root": str(temp_dir / "fonts"),
                    "download_retries": 5,
                    "default_styles": ["normal", "italic"],
                }
            )
        )

        config = FontCacheConfig.from_yaml(config_path)

        assert isinstance(config, FontCacheConfig)
        assert config.cache_root == temp_dir / "fonts"
        assert config.download_retries == 5
        assert config.default_styles == [FontStyle.NORMAL, FontStyle.ITALIC]

    def test_load_applies_overrides(self, temp_dir):
        config_path = temp_dir / "fontcache.yaml"
        config_path.write_text(yaml.safe_dump({"cache_root": str(temp_dir / "fonts")}))

        config = FontCacheConfig.load(
            config_path, cache_root=temp_dir / "override", max_parallel_downloads=None
        )

        assert config.cache_root == temp_dir / "override"
        assert config.max_parallel_downloads == 4

    def test_missing_file(self, temp_dir):
        with pytest.raises(ConfigFileNotFoundError):
            load_config_from_yaml(temp_dir / "absent.yaml", FontCacheConfig)

    def test_empty_file(self, temp_dir):
        config_path = temp_dir / "empty.yaml"
        config_path.write_text("")
        with pytest.raises(EmptyConfigFileError):
            load_config_from_yaml(config_path, FontCacheConfig)

    def test_invalid_yaml(self, temp_dir):
        config_path = temp_dir / "broken.yaml"
        config_path.write_text("cache_root: [unclosed")
        with pytest.raises(InvalidYamlError):
            load_config_from_yaml(config_path, FontCacheConfig)

    def test_invalid_values(self, temp_dir):
        config_path = temp_dir / "bad.yaml"
        config_path.write_text(yaml.safe_dump({"max_parallel_downloads": 0}))
        with pytest.raises(ConfigLoadError):
            load_config_from_yaml(config_path, FontCacheConfig)

    def test_errors_share_base_class(self, temp_dir):
        with pytest.raises(ConfigurationError):
            FontCacheConfig.from_yaml(temp_dir / "absent.yaml")
