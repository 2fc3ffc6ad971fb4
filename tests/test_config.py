"""Tests for configuration management."""

import tempfile
from pathlib import Path

import pytest

from flygate.validation.config import Config, ConfigError, FlyGateConfig


class TestConfig:
    """Tests for Config class."""

    @pytest.fixture
    def temp_config_dir(self):
        """Create a temporary config directory."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield Path(tmpdir)

    def test_deep_merge(self):
        """Test deep merging of dictionaries."""
        config = Config(env={})

        base = {
            "a": 1,
            "b": {"c": 2, "d": 3},
            "e": [1, 2, 3],
        }

        override = {
            "b": {"c": 10, "f": 5},
            "g": "new",
        }

        result = config._deep_merge(base, override)

        assert result["a"] == 1
        assert result["b"]["c"] == 10
        assert result["b"]["d"] == 3
        assert result["b"]["f"] == 5
        assert result["e"] == [1, 2, 3]
        assert result["g"] == "new"

    def test_local_overrides_global(self):
        global_config = {
            "network": "browsers",
            "fly": {"org": "personal", "binary": "flyctl"},
        }
        local_config = {"fly": {"org": "acme"}}

        config = Config(global_config=global_config, local_config=local_config, env={})

        assert config.get_default_org() == "acme"
        assert config.merged.fly.binary == "flyctl"
        assert config.get_default_network() == "browsers"

    def test_environment_overrides_files(self):
        config = Config(
            global_config={"network": "browsers", "tailnet": {"api_key": "from-file"}},
            local_config={},
            env={"FLYGATE_NETWORK": "staging", "TAILSCALE_API_KEY": "from-env", "FLY_ORG": "acme"},
        )

        assert config.get_default_network() == "staging"
        assert config.get_tailnet_api_key() == "from-env"
        assert config.get_default_org() == "acme"

    def test_empty_environment_value_ignored(self):
        config = Config(global_config={"network": "browsers"}, env={"FLYGATE_NETWORK": ""})

        assert config.get_default_network() == "browsers"

    def test_defaults(self):
        merged = Config(env={}).merged

        assert isinstance(merged, FlyGateConfig)
        assert merged.network is None
        assert merged.fly.binary == "fly"
        assert merged.router.image is None
        assert merged.router.join_timeout == 180
        assert merged.tailnet.tailnet == "-"
        assert merged.audit.results_dir is None
        assert merged.logging.level == "WARNING"

    def test_require_network(self):
        assert Config(global_config={"network": "browsers"}, env={}).require_network() == "browsers"

        with pytest.raises(ConfigError):
            Config(env={}).require_network()

    def test_invalid_values(self):
        config = Config(global_config={"router": {"join_timeout": "soon"}}, env={})

        with pytest.raises(ConfigError):
            config.merged

    def test_load_yaml(self, temp_config_dir):
        """Test loading YAML configuration."""
        config_file = temp_config_dir / "config.yaml"
        config_file.write_text("network: browsers\nfly:\n  org: personal\n")

        data = Config._load_yaml(config_file)

        assert data == {"network": "browsers", "fly": {"org": "personal"}}

    def test_load_yaml_missing_or_empty(self, temp_config_dir):
        assert Config._load_yaml(temp_config_dir / "missing.yaml") == {}
        assert Config._load_yaml(None) == {}

        empty = temp_config_dir / "empty.yaml"
        empty.write_text("")
        assert Config._load_yaml(empty) == {}

    def test_load_yaml_invalid(self, temp_config_dir):
        broken = temp_config_dir / "broken.yaml"
        broken.write_text("network: [unterminated\n")

        with pytest.raises(ConfigError):
            Config._load_yaml(broken)

    def test_load_yaml_not_a_mapping(self, temp_config_dir):
        listing = temp_config_dir / "list.yaml"
        listing.write_text("- one\n- two\n")

        with pytest.raises(ConfigError):
            Config._load_yaml(listing)

    def test_find_local_config_walks_up(self, temp_config_dir, monkeypatch):
        config_file = temp_config_dir / ".flygate" / "config.yaml"
        config_file.parent.mkdir()
        config_file.write_text("network: browsers\n")
        nested = temp_config_dir / "services" / "web"
        nested.mkdir(parents=True)
        monkeypatch.chdir(nested)

        assert Config._find_local_config().resolve() == config_file.resolve()
