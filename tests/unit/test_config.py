"""Unit tests for YAML config loader."""

import os
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest
import yaml
from pydantic import ValidationError

from rent_scout.config import CACHE_SIZE_ENV, CACHE_TTL_ENV, load_settings
from rent_scout.models.pydantic_models import Settings


@pytest.fixture
def sample_config_dict() -> dict[str, Any]:
    """Return a sample configuration dictionary."""
    return {
        "allowed_hosts": ["591.com.tw", "example.com"],
        "crawl": {
            "max_concurrent": 2,
            "delay_between_requests": 0.5,
            "include_station_info": False,
            "merge_results": True,
        },
        "persistence": {
            "batch_size": 3,
            "page_size": 200,
            "transaction_timeout_seconds": 30,
            "cache_ttl_seconds": 120,
            "cache_max_size": 10,
        },
    }


@pytest.fixture
def temp_config_file(tmp_path: Path, sample_config_dict: dict[str, Any]) -> Path:
    """Create a temporary config file."""
    config_path = tmp_path / "crawler.yaml"
    with open(config_path, "w") as f:
        yaml.dump(sample_config_dict, f)
    return config_path


@pytest.fixture(autouse=True)
def clear_cache_env():
    """Keep cache overrides from the environment out of the tests."""
    with patch.dict(os.environ, {}, clear=False):
        os.environ.pop(CACHE_SIZE_ENV, None)
        os.environ.pop(CACHE_TTL_ENV, None)
        yield


class TestLoadSettings:
    """Tests for load_settings()."""

    def test_loads_values(self, temp_config_file: Path) -> None:
        settings = load_settings(temp_config_file)

        assert isinstance(settings, Settings)
        assert settings.allowed_hosts == ["591.com.tw", "example.com"]
        assert settings.crawl.max_concurrent == 2
        assert settings.crawl.delay_between_requests == 0.5
        assert settings.crawl.include_station_info is False
        assert settings.persistence.batch_size == 3
        assert settings.persistence.page_size == 200
        assert settings.persistence.cache_max_size == 10

    def test_missing_explicit_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path / "missing.yaml")

    def test_empty_file_gives_defaults(self, tmp_path: Path) -> None:
        config_path = tmp_path / "empty.yaml"
        config_path.write_text("")
        assert load_settings(config_path) == Settings()

    def test_partial_file_keeps_other_defaults(self, tmp_path: Path) -> None:
        config_path = tmp_path / "partial.yaml"
        config_path.write_text("crawl:\n  max_concurrent: 5\n")
        settings = load_settings(config_path)
        assert settings.crawl.max_concurrent == 5
        assert settings.crawl.delay_between_requests == 1.0
        assert settings.persistence.batch_size == 5

    def test_invalid_batch_size_rejected(self, tmp_path: Path) -> None:
        config_path = tmp_path / "bad.yaml"
        config_path.write_text("persistence:\n  batch_size: 20\n")
        with pytest.raises(ValidationError):
            load_settings(config_path)

    def test_invalid_yaml_raises(self, tmp_path: Path) -> None:
        config_path = tmp_path / "broken.yaml"
        config_path.write_text("crawl: [unclosed\n")
        with pytest.raises(yaml.YAMLError):
            load_settings(config_path)

    def test_default_config_file_loads(self) -> None:
        """The shipped config/crawler.yaml is valid."""
        settings = load_settings()
        assert settings.persistence.batch_size == 5
        assert "591.com.tw" in settings.allowed_hosts


class TestEnvOverrides:
    """Tests for cache environment overrides."""

    def test_cache_size_and_ttl(self, temp_config_file: Path) -> None:
        with patch.dict(os.environ, {CACHE_SIZE_ENV: "42", CACHE_TTL_ENV: "7.5"}):
            settings = load_settings(temp_config_file)
        assert settings.persistence.cache_max_size == 42
        assert settings.persistence.cache_ttl_seconds == 7.5
        assert settings.persistence.batch_size == 3
