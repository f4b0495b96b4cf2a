"""Tests for configuration loading."""

import pytest

from datacache.cache import DataCache
from datacache.config import CacheConfig, Config, ConfigManager
from datacache.errors import ConfigurationError


class TestConfigModels:
    """Tests for configuration defaults and validation."""

    def test_defaults(self):
        config = Config()

        assert config.cache.dir == "cache"
        assert config.cache.name == "Cache"
        assert config.cache.frequency == "daily"
        assert config.cache.wait is False
        assert config.cache.background is True
        assert config.output.age_units == "mins"

    def test_expands_user_dir(self, monkeypatch, tmp_path):
        monkeypatch.setenv("DATACACHE_TEST_DIR", str(tmp_path))

        config = CacheConfig(dir="$DATACACHE_TEST_DIR/data")

        assert config.dir == f"{tmp_path}/data"

    @pytest.mark.parametrize("name", ["", "  ", "a/b"])
    def test_invalid_name(self, name):
        with pytest.raises(ValueError):
            CacheConfig(name=name)

    def test_invalid_frequency(self):
        with pytest.raises(ValueError):
            CacheConfig(frequency="sometimes")

    def test_interval_frequency(self):
        assert CacheConfig(frequency="15m").frequency == "15m"


class TestConfigManager:
    """Tests for reading configuration files."""

    def test_missing_file_uses_defaults(self, tmp_path):
        manager = ConfigManager(str(tmp_path / "missing.toml"))
        assert manager.config == Config()

    def test_toml(self, tmp_path):
        path = tmp_path / "datacache.toml"
        path.write_text(
            '[cache]\ndir = "data"\nname = "Weather"\nfrequency = "hourly"\nwait = true\n'
            '[output]\nquiet = true\n'
        )

        config = ConfigManager(str(path)).config

        assert config.cache.name == "Weather"
        assert config.cache.frequency == "hourly"
        assert config.cache.wait is True
        assert config.output.quiet is True

    def test_yaml(self, tmp_path):
        path = tmp_path / "datacache.yaml"
        path.write_text("cache:\n  name: Prices\n  frequency: 6h\n  background: false\n")

        config = ConfigManager(str(path)).config

        assert config.cache.name == "Prices"
        assert config.cache.background is False

    def test_invalid_file(self, tmp_path):
        path = tmp_path / "datacache.toml"
        path.write_text('[cache]\nfrequency = "sometimes"\n')

        with pytest.raises(ConfigurationError, match="Invalid configuration file"):
            ConfigManager(str(path)).config

    def test_reload(self, tmp_path):
        path = tmp_path / "datacache.toml"
        path.write_text('[cache]\nname = "One"\n')
        manager = ConfigManager(str(path))
        assert manager.config.cache.name == "One"

        path.write_text('[cache]\nname = "Two"\n')
        manager.reload()

        assert manager.config.cache.name == "Two"


class TestFromConfig:
    """Tests for building a cache from configuration."""

    def test_from_config(self, tmp_path, console):
        config = Config(cache=CacheConfig(dir=str(tmp_path), name="Weather", background=False))

        cache = DataCache.from_config(config, console=console)

        assert cache.cache_dir == tmp_path
        assert cache.cache_name == "Weather"
        assert not cache.coordinator.supports_background

    def test_overrides(self, tmp_path, console):
        cache = DataCache.from_config(
            Config(), cache_dir=tmp_path, cache_name="Other", console=console
        )

        assert cache.cache_name == "Other"
