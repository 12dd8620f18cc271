"""Tests for configuration system."""

import os

import pytest
from pydantic import ValidationError

from linepipe.config import ConfigLoader, LinePipeConfig, LoggingConfig, StreamConfig
from linepipe.errors import ConfigurationError


@pytest.fixture
def isolated(tmp_path, monkeypatch):
    """Run the loader with no config files or LINEPIPE_ variables around."""
    user_dir = tmp_path / "user"
    user_dir.mkdir()
    monkeypatch.setattr("platformdirs.user_config_dir", lambda app_name: str(user_dir))
    monkeypatch.chdir(tmp_path)
    for key in list(os.environ):
        if key.startswith("LINEPIPE_"):
            monkeypatch.delenv(key)
    return tmp_path


class TestLoggingConfig:
    """Test LoggingConfig validation."""

    def test_default_values(self):
        """Test default values."""
        config = LoggingConfig()
        assert config.level == "INFO"
        assert config.format == "simple"
        assert config.file is None

    def test_case_insensitive_values(self):
        """Test that level and format are normalized."""
        config = LoggingConfig(level="debug", format="JSON")
        assert config.level == "DEBUG"
        assert config.format == "json"

    def test_rejects_invalid_values(self):
        """Test that unknown levels, formats and fields are rejected."""
        with pytest.raises(ValidationError):
            LoggingConfig(level="TRACE")
        with pytest.raises(ValidationError):
            LoggingConfig(format="xml")
        with pytest.raises(ValidationError):
            LoggingConfig(colour=True)


class TestStreamConfig:
    """Test StreamConfig validation."""

    def test_default_values(self):
        """Test default values."""
        config = StreamConfig()
        assert config.chunk_size == 65536
        assert config.encoding == "utf-8"
        assert config.errors == "replace"

    def test_rejects_unknown_encoding(self):
        """Test that encodings are checked against the codec registry."""
        with pytest.raises(ValidationError):
            StreamConfig(encoding="no-such-codec")

    def test_rejects_non_positive_chunk_size(self):
        """Test chunk size bounds."""
        with pytest.raises(ValidationError):
            StreamConfig(chunk_size=0)


class TestConfigLoader:
    """Test ConfigLoader source merging."""

    def test_schema_defaults_without_files(self, isolated):
        """Test that the loader works with no config files at all."""
        config = ConfigLoader().load()
        assert config == LinePipeConfig()

    def test_explicit_defaults_file(self, isolated):
        """Test loading an explicit defaults.toml."""
        path = isolated / "custom.toml"
        path.write_text('[stream]\nchunk_size = 16\nencoding = "latin-1"\n')
        config = ConfigLoader().load(defaults_path=path)
        assert config.stream.chunk_size == 16
        assert config.stream.encoding == "latin-1"

    def test_missing_explicit_file(self, isolated):
        """Test that a missing explicit path is an error."""
        with pytest.raises(ConfigurationError) as exc_info:
            ConfigLoader().load(defaults_path=isolated / "absent.toml")
        assert exc_info.value.context["path"].endswith("absent.toml")

    def test_discovered_defaults_file(self, isolated):
        """Test the config/defaults.toml lookup in the working directory."""
        (isolated / "config").mkdir()
        (isolated / "config" / "defaults.toml").write_text('[logging]\nlevel = "warning"\n')
        assert ConfigLoader().load().logging.level == "WARNING"

    def test_user_config_overrides_defaults(self, isolated):
        """Test that the user config wins over defaults."""
        (isolated / "config").mkdir()
        (isolated / "config" / "defaults.toml").write_text(
            '[process]\ncheck_returncode = false\n[logging]\nformat = "json"\n'
        )
        (isolated / "user" / "config.toml").write_text("[process]\ncheck_returncode = true\n")
        config = ConfigLoader().load()
        assert config.process.check_returncode is True
        assert config.logging.format == "json"

    def test_environment_overrides(self, isolated, monkeypatch):
        """Test LINEPIPE_<SECTION>__<KEY> overrides."""
        (isolated / "user" / "config.toml").write_text("[stream]\nchunk_size = 10\n")
        monkeypatch.setenv("LINEPIPE_STREAM__CHUNK_SIZE", "4096")
        monkeypatch.setenv("LINEPIPE_PROCESS__CHECK_RETURNCODE", "yes")
        monkeypatch.setenv("LINEPIPE_STREAM__ERRORS", "strict")
        config = ConfigLoader().load()
        assert config.stream.chunk_size == 4096
        assert config.process.check_returncode is True
        assert config.stream.errors == "strict"

    def test_invalid_toml(self, isolated):
        """Test that a parse error becomes a ConfigurationError."""
        path = isolated / "broken.toml"
        path.write_text("[stream\nchunk_size = ")
        with pytest.raises(ConfigurationError, match="Cannot parse"):
            ConfigLoader().load(defaults_path=path)

    def test_validation_error(self, isolated):
        """Test that schema violations become a ConfigurationError."""
        path = isolated / "bad.toml"
        path.write_text("[stream]\nunknown_key = 1\n")
        with pytest.raises(ConfigurationError, match="Invalid configuration") as exc_info:
            ConfigLoader().load(defaults_path=path)
        assert exc_info.value.context["errors"]
