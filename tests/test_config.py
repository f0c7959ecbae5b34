"""Tests for configuration loading and validation."""

import pytest
import yaml

from node_upstreams.config import AppConfig, load_config
from node_upstreams.exceptions import ConfigError


def _write_config(tmp_path, data) -> str:
    path = tmp_path / "config.yaml"
    path.write_text(yaml.dump(data))
    return str(path)


class TestLoadConfig:
    def test_minimal_valid_config(self, tmp_path):
        data = {"discovery": {"node_name_prefix": "gke-cluster-c5fe837"}}
        config = load_config(_write_config(tmp_path, data))
        assert config.discovery.provider == "gcp"
        assert config.discovery.node_name_prefix == "gke-cluster-c5fe837"
        assert config.discovery.running_only is True
        assert config.upstreams.port == 30080
        assert config.upstreams.freshness_seconds == 60
        assert config.upstreams.retry_backoff_seconds == 60
        assert config.upstreams.debounce is True
        assert config.upstreams.debounce_seconds == 300

    def test_defaults_match_dataclass(self, tmp_path):
        config = load_config(_write_config(tmp_path, {"discovery": {}}))
        assert config == AppConfig()

    def test_missing_file_raises(self):
        with pytest.raises(ConfigError, match="not found"):
            load_config("/nonexistent/file.yaml")

    def test_non_mapping_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("just a string")
        with pytest.raises(ConfigError, match="mapping"):
            load_config(str(path))

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("discovery: [unclosed")
        with pytest.raises(ConfigError, match="YAML"):
            load_config(str(path))

    def test_unknown_option_rejected(self, tmp_path):
        data = {"discovery": {"node_prefix": "gke"}}
        with pytest.raises(ConfigError, match="discovery.node_prefix"):
            load_config(_write_config(tmp_path, data))

    def test_unknown_section_rejected(self, tmp_path):
        with pytest.raises(ConfigError, match="metrics"):
            load_config(_write_config(tmp_path, {"metrics": {}}))

    def test_section_must_be_mapping(self, tmp_path):
        with pytest.raises(ConfigError, match="upstreams"):
            load_config(_write_config(tmp_path, {"upstreams": 30080}))

    def test_empty_section_uses_defaults(self, tmp_path):
        config = load_config(_write_config(tmp_path, {"gcp": None}))
        assert config.gcp.project_id == ""

    def test_unknown_provider(self, tmp_path):
        data = {"discovery": {"provider": "digitalocean"}}
        with pytest.raises(ConfigError, match="provider"):
            load_config(_write_config(tmp_path, data))

    def test_aws_requires_region(self, tmp_path):
        data = {"discovery": {"provider": "aws"}}
        with pytest.raises(ConfigError, match="aws.region"):
            load_config(_write_config(tmp_path, data))

    def test_azure_requires_subscription(self, tmp_path):
        data = {"discovery": {"provider": "azure"}}
        with pytest.raises(ConfigError, match="subscription_id"):
            load_config(_write_config(tmp_path, data))

    @pytest.mark.parametrize("port", [0, 70000, "30080", True])
    def test_invalid_port(self, tmp_path, port):
        data = {"upstreams": {"port": port}}
        with pytest.raises(ConfigError, match="port"):
            load_config(_write_config(tmp_path, data))

    def test_non_positive_freshness(self, tmp_path):
        data = {"upstreams": {"freshness_seconds": 0}}
        with pytest.raises(ConfigError, match="freshness_seconds"):
            load_config(_write_config(tmp_path, data))

    def test_non_positive_backoff(self, tmp_path):
        data = {"upstreams": {"retry_backoff_seconds": -1}}
        with pytest.raises(ConfigError, match="retry_backoff_seconds"):
            load_config(_write_config(tmp_path, data))

    def test_negative_debounce(self, tmp_path):
        data = {"upstreams": {"debounce_seconds": -5}}
        with pytest.raises(ConfigError, match="debounce_seconds"):
            load_config(_write_config(tmp_path, data))

    def test_watch_interval_too_low(self, tmp_path):
        data = {"watch": {"interval_seconds": 0.5}}
        with pytest.raises(ConfigError, match="interval_seconds"):
            load_config(_write_config(tmp_path, data))

    def test_invalid_logging_format(self, tmp_path):
        data = {"logging": {"format": "xml"}}
        with pytest.raises(ConfigError, match="format"):
            load_config(_write_config(tmp_path, data))

    def test_non_string_prefix(self, tmp_path):
        data = {"discovery": {"node_name_prefix": 42}}
        with pytest.raises(ConfigError, match="node_name_prefix"):
            load_config(_write_config(tmp_path, data))

    @pytest.mark.parametrize("section,key", [
        ("upstreams", "freshness_seconds"),
        ("upstreams", "retry_backoff_seconds"),
        ("upstreams", "debounce_seconds"),
        ("watch", "interval_seconds"),
    ])
    @pytest.mark.parametrize("value", ["60s", "60", True])
    def test_non_numeric_durations_rejected(self, tmp_path, section, key, value):
        data = {section: {key: value}}
        with pytest.raises(ConfigError, match=f"{section}.{key}"):
            load_config(_write_config(tmp_path, data))

    @pytest.mark.parametrize("section,key", [
        ("upstreams", "debounce"),
        ("discovery", "running_only"),
    ])
    @pytest.mark.parametrize("value", ["false", "no", 0])
    def test_non_boolean_toggles_rejected(self, tmp_path, section, key, value):
        data = {section: {key: value}}
        with pytest.raises(ConfigError, match=f"{section}.{key}"):
            load_config(_write_config(tmp_path, data))

    def test_float_durations_accepted(self, tmp_path):
        data = {"upstreams": {"freshness_seconds": 2.5, "debounce_seconds": 0}}
        config = load_config(_write_config(tmp_path, data))
        assert config.upstreams.freshness_seconds == 2.5
        assert config.upstreams.debounce_seconds == 0

    def test_env_var_interpolation(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TEST_NODE_PREFIX", "gke-prod")
        data = {"discovery": {"node_name_prefix": "${TEST_NODE_PREFIX}"}}
        config = load_config(_write_config(tmp_path, data))
        assert config.discovery.node_name_prefix == "gke-prod"

    def test_env_var_missing_raises(self, tmp_path, monkeypatch):
        monkeypatch.delenv("SURELY_MISSING_VAR", raising=False)
        data = {"gcp": {"project_id": "${SURELY_MISSING_VAR}"}}
        with pytest.raises(ConfigError, match="SURELY_MISSING_VAR"):
            load_config(_write_config(tmp_path, data))

    def test_full_config(self, tmp_path):
        data = {
            "discovery": {"provider": "azure", "node_name_prefix": "aks-pool", "running_only": False},
            "azure": {"subscription_id": "s1", "resource_groups": ["rg1", "rg2"]},
            "upstreams": {
                "port": 32080,
                "freshness_seconds": 30,
                "retry_backoff_seconds": 15,
                "debounce": False,
                "debounce_seconds": 120,
            },
            "watch": {"interval_seconds": 5},
            "logging": {"level": "DEBUG", "format": "text"},
        }
        config = load_config(_write_config(tmp_path, data))
        assert config.discovery.provider == "azure"
        assert config.discovery.running_only is False
        assert config.azure.resource_groups == ["rg1", "rg2"]
        assert config.upstreams.port == 32080
        assert config.upstreams.debounce is False
        assert config.watch.interval_seconds == 5
        assert config.logging.format == "text"

    def test_aws_config(self, tmp_path):
        data = {
            "discovery": {"provider": "aws"},
            "aws": {"region": "us-east-1", "credential_profile": "ops"},
        }
        config = load_config(_write_config(tmp_path, data))
        assert config.aws.region == "us-east-1"
        assert config.aws.credential_profile == "ops"
