"""
Unit tests for configuration loading.
"""

import pytest

from rvmkit.core.config import DEFAULT_MANIFEST_URL, RvmConfig, load_config
from rvmkit.core.exceptions import ConfigError


class TestRvmConfig:
    """Tests for RvmConfig validation."""

    def test_defaults(self):
        """Test default values."""
        config = RvmConfig()

        assert config.manifest_url == DEFAULT_MANIFEST_URL
        assert config.lock_timeout == 30.0
        assert config.max_retries == 3
        assert config.offline is False

    def test_trailing_slash_stripped(self):
        """Test manifest URL is normalized."""
        assert RvmConfig(manifest_url="https://mirror/").manifest_url == "https://mirror"

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"manifest_url": ""},
            {"lock_timeout": -1},
            {"max_retries": 0},
            {"retry_backoff": -0.5},
        ],
    )
    def test_invalid_values(self, kwargs):
        """Test invalid values raise ConfigError."""
        with pytest.raises(ConfigError):
            RvmConfig(**kwargs)


class TestLoadConfig:
    """Tests for load_config."""

    def test_missing_file_gives_defaults(self, tmp_path):
        """Test an absent config.yaml yields defaults."""
        assert load_config(tmp_path) == RvmConfig()

    def test_yaml_values(self, tmp_path):
        """Test values are read from config.yaml."""
        (tmp_path / "config.yaml").write_text(
            "manifest_url: https://mirror.example.com/resolc-bin\n"
            "lock_timeout: 60\n"
            "max_retries: 5\n"
        )

        config = load_config(tmp_path)

        assert config.manifest_url == "https://mirror.example.com/resolc-bin"
        assert config.lock_timeout == 60
        assert config.max_retries == 5

    def test_unknown_keys_ignored(self, tmp_path, caplog):
        """Test unknown keys produce a warning only."""
        (tmp_path / "config.yaml").write_text("colour: blue\n")

        config = load_config(tmp_path)

        assert config == RvmConfig()
        assert "colour" in caplog.text

    def test_environment_overrides(self, tmp_path, monkeypatch):
        """Test environment variables take precedence over the file."""
        (tmp_path / "config.yaml").write_text("lock_timeout: 60\n")
        monkeypatch.setenv("RVM_LOCK_TIMEOUT", "5")
        monkeypatch.setenv("RVM_MANIFEST_URL", "https://env.example.com")
        monkeypatch.setenv("RVM_OFFLINE", "yes")

        config = load_config(tmp_path)

        assert config.lock_timeout == 5.0
        assert config.manifest_url == "https://env.example.com"
        assert config.offline is True

    def test_invalid_env_timeout(self, tmp_path, monkeypatch):
        """Test a non-numeric lock timeout override is rejected."""
        monkeypatch.setenv("RVM_LOCK_TIMEOUT", "soon")

        with pytest.raises(ConfigError, match="RVM_LOCK_TIMEOUT"):
            load_config(tmp_path)

    def test_invalid_yaml(self, tmp_path):
        """Test malformed YAML raises ConfigError."""
        (tmp_path / "config.yaml").write_text("lock_timeout: [unclosed\n")

        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(tmp_path)

    def test_non_mapping(self, tmp_path):
        """Test a YAML list is rejected."""
        (tmp_path / "config.yaml").write_text("- a\n- b\n")

        with pytest.raises(ConfigError, match="mapping"):
            load_config(tmp_path)

    def test_wrong_value_type(self, tmp_path):
        """Test a value of the wrong type raises ConfigError."""
        (tmp_path / "config.yaml").write_text("lock_timeout: soon\n")

        with pytest.raises(ConfigError):
            load_config(tmp_path)

    def test_explicit_file_must_exist(self, tmp_path):
        """Test an explicitly given config file is required."""
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path, config_file=tmp_path / "missing.yaml")
