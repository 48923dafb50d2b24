"""Tests for rmcloud.config and rmcloud.config_schema.

NOT to be confused with test_config_loader.py (YAML discovery and merge).
This tests validate_config(), load_config() precedence, and the pydantic
section models that feed it.
"""

import logging
from pathlib import Path

import pytest
from pydantic import ValidationError

from rmcloud.config import (
    DEFAULT_STORAGE_URL,
    Config,
    default_cache_path,
    load_config,
    validate_config,
)
from rmcloud.config_schema import (
    CloudConfig,
    UnifiedConfig,
    build_config,
    yaml_fallbacks,
)

_ENV_VARS = (
    "RMCLOUD_URL",
    "RMCLOUD_TOKEN",
    "RMCLOUD_INSECURE",
    "RMCLOUD_DEBUG",
    "RMCLOUD_CACHE_FILE",
    "RMCLOUD_MAX_PARALLEL_REQUESTS",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


# -------------------------------------------------------------------------
# validate_config()
# -------------------------------------------------------------------------


class TestValidateConfig:
    """Tests for validate_config(): URL format, token and range checks."""

    def test_valid_config(self):
        validate_config(Config(token="t"))  # should not raise

    def test_http_url_valid(self):
        validate_config(Config(token="t", storage_url="http://localhost:8080"))

    @pytest.mark.parametrize("url", ["example.com", "ftp://example.com"])
    def test_invalid_scheme(self, url):
        with pytest.raises(
            ValueError, match="must start with http:// or https://"
        ):
            validate_config(Config(token="t", storage_url=url))

    def test_empty_host(self):
        with pytest.raises(ValueError, match="must include a hostname"):
            validate_config(Config(token="t", storage_url="https://"))

    def test_trailing_slash_and_whitespace_stripped(self):
        config = Config(token="t", storage_url="  https://rm.example.com/ ")
        validate_config(config)
        assert config.storage_url == "https://rm.example.com"

    def test_blank_token_rejected(self):
        with pytest.raises(ValueError, match="Token cannot be empty"):
            validate_config(Config(token="   "))

    @pytest.mark.parametrize("value", [0, 101])
    def test_max_parallel_out_of_range(self, value):
        with pytest.raises(ValueError, match="between 1 and 100"):
            validate_config(Config(token="t", max_parallel_requests=value))

    def test_insecure_logs_warning(self, caplog):
        with caplog.at_level(logging.WARNING, logger="rmcloud.config"):
            validate_config(Config(token="t", insecure=True))
        assert "SSL verification disabled" in caplog.text


# -------------------------------------------------------------------------
# load_config()
# -------------------------------------------------------------------------


class TestLoadConfig:
    """Tests for load_config(): CLI > env > YAML fallbacks > defaults."""

    def test_defaults(self, monkeypatch, tmp_path):
        monkeypatch.setenv("RMCLOUD_TOKEN", "env-token")
        monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path))

        config = load_config()

        assert config.token == "env-token"
        assert config.storage_url == DEFAULT_STORAGE_URL
        assert config.insecure is False
        assert config.max_parallel_requests == 8
        assert config.cache_path == tmp_path / "rmcloud" / "tree.cache"

    def test_missing_token_raises(self):
        with pytest.raises(ValueError, match="Token not found"):
            load_config()

    def test_cli_args_override_env(self, monkeypatch):
        monkeypatch.setenv("RMCLOUD_URL", "https://env.example.com")
        monkeypatch.setenv("RMCLOUD_TOKEN", "env-token")

        config = load_config(url="https://cli.example.com", token="cli-token")

        assert config.storage_url == "https://cli.example.com"
        assert config.token == "cli-token"

    def test_env_overrides_yaml(self, monkeypatch):
        monkeypatch.setenv("RMCLOUD_URL", "https://env.example.com")
        config = load_config(
            yaml_fallbacks={
                "url": "https://yaml.example.com",
                "token": "yaml-token",
            }
        )
        assert config.storage_url == "https://env.example.com"
        assert config.token == "yaml-token"

    def test_yaml_fallbacks_used(self, tmp_path):
        config = load_config(
            yaml_fallbacks={
                "token": "yaml-token",
                "insecure": True,
                "debug": True,
                "max_parallel_requests": 3,
                "file": str(tmp_path / "yaml.cache"),
            }
        )
        assert config.insecure is True
        assert config.debug is True
        assert config.max_parallel_requests == 3
        assert config.cache_path == tmp_path / "yaml.cache"

    def test_cache_file_precedence(self, monkeypatch, tmp_path):
        monkeypatch.setenv("RMCLOUD_TOKEN", "t")
        monkeypatch.setenv("RMCLOUD_CACHE_FILE", str(tmp_path / "env.cache"))

        assert load_config().cache_path == tmp_path / "env.cache"
        assert (
            load_config(cache_file=str(tmp_path / "cli.cache")).cache_path
            == tmp_path / "cli.cache"
        )

    @pytest.mark.parametrize(
        "value", ["true", "1", "yes", "on", "TRUE", "True", "YES"]
    )
    def test_insecure_truthy_values(self, monkeypatch, value):
        monkeypatch.setenv("RMCLOUD_TOKEN", "t")
        monkeypatch.setenv("RMCLOUD_INSECURE", value)
        assert load_config().insecure is True

    @pytest.mark.parametrize(
        "value", ["false", "0", "no", "off", "FALSE", "random"]
    )
    def test_insecure_falsy_values(self, monkeypatch, value):
        monkeypatch.setenv("RMCLOUD_TOKEN", "t")
        monkeypatch.setenv("RMCLOUD_INSECURE", value)
        assert load_config(yaml_fallbacks={"insecure": True}).insecure is False

    def test_debug_from_env(self, monkeypatch):
        monkeypatch.setenv("RMCLOUD_TOKEN", "t")
        monkeypatch.setenv("RMCLOUD_DEBUG", "1")
        assert load_config().debug is True

    def test_max_parallel_from_env(self, monkeypatch):
        monkeypatch.setenv("RMCLOUD_TOKEN", "t")
        monkeypatch.setenv("RMCLOUD_MAX_PARALLEL_REQUESTS", "16")
        assert load_config().max_parallel_requests == 16

    def test_max_parallel_not_a_number(self, monkeypatch):
        monkeypatch.setenv("RMCLOUD_TOKEN", "t")
        monkeypatch.setenv("RMCLOUD_MAX_PARALLEL_REQUESTS", "lots")
        with pytest.raises(ValueError, match="must be a number"):
            load_config()

    def test_token_is_stripped(self, monkeypatch):
        monkeypatch.setenv("RMCLOUD_TOKEN", "  abc \n")
        assert load_config().token == "abc"


def test_default_cache_path_without_xdg(monkeypatch, tmp_path):
    monkeypatch.delenv("XDG_CACHE_HOME", raising=False)
    monkeypatch.setenv("HOME", str(tmp_path))
    assert default_cache_path() == Path(tmp_path) / ".cache" / "rmcloud" / "tree.cache"


# -------------------------------------------------------------------------
# config_schema
# -------------------------------------------------------------------------


class TestConfigSchema:
    """Tests for the YAML section models."""

    def test_empty_config_is_valid(self):
        unified = build_config({})
        assert unified == UnifiedConfig()
        assert unified.logging.level == "INFO"

    def test_sections_parsed(self):
        unified = build_config(
            {
                "cloud": {"url": "https://rm.example.com", "token": "x"},
                "cache": {"file": "~/rm.cache"},
                "logging": {"level": "DEBUG", "file": "/tmp/rm.log"},
            }
        )
        assert unified.cloud.url == "https://rm.example.com"
        assert unified.cache.file == "~/rm.cache"
        assert unified.logging.file == "/tmp/rm.log"

    def test_max_parallel_bounds(self):
        with pytest.raises(ValidationError):
            CloudConfig(max_parallel_requests=0)

    def test_models_are_frozen(self):
        with pytest.raises(ValidationError):
            CloudConfig().url = "https://other.example.com"

    def test_yaml_fallbacks_only_set_values(self):
        unified = build_config(
            {"cloud": {"token": "x", "insecure": True}, "cache": {"file": "c"}}
        )
        assert yaml_fallbacks(unified) == {
            "token": "x",
            "insecure": True,
            "file": "c",
        }

    def test_yaml_fallbacks_empty(self):
        assert yaml_fallbacks(UnifiedConfig()) == {}
