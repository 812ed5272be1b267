# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Unit tests for YAML configuration loading
"""

from pathlib import Path

import pytest

from flow_orchestrator.core.config import Config, get_config, load_config, reload_config
from flow_orchestrator.core.errors import ConfigurationError

BUNDLED_CONFIG = Path(__file__).resolve().parents[2] / "configs" / "orchestrator.yaml"


def test_missing_file_returns_defaults(tmp_path):
    assert load_config(str(tmp_path / "missing.yaml")) == Config()


def test_yaml_values_override_defaults(tmp_path, monkeypatch):
    monkeypatch.delenv("LEGACY_ENGINE_URL", raising=False)
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    path = tmp_path / "orchestrator.yaml"
    path.write_text(
        "engine:\n"
        "  timeout_ms: 1500\n"
        "  max_retries: 2\n"
        "legacy_engine:\n"
        "  url: http://legacy:8080/api\n"
        "hybrid:\n"
        "  time_diff_warn_pct: 5\n"
        "logging:\n"
        "  format: text\n"
    )

    config = load_config(str(path))

    assert config.default_timeout_ms == 1500
    assert config.default_max_retries == 2
    assert config.default_max_concurrency == Config().default_max_concurrency
    assert config.legacy_engine_url == "http://legacy:8080/api"
    assert config.hybrid_time_diff_warn_pct == 5
    assert config.log_format == "text"


def test_environment_overrides_deployment_values(tmp_path, monkeypatch):
    monkeypatch.setenv("LEGACY_ENGINE_URL", "http://override:9000")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    path = tmp_path / "orchestrator.yaml"
    path.write_text("legacy_engine:\n  url: http://legacy:8080\nlogging:\n  level: WARNING\n")

    config = load_config(str(path))

    assert config.legacy_engine_url == "http://override:9000"
    assert config.log_level == "DEBUG"


def test_bundled_config_loads(monkeypatch):
    monkeypatch.delenv("LEGACY_ENGINE_URL", raising=False)
    config = load_config(str(BUNDLED_CONFIG))
    assert config.default_timeout_ms > 0
    assert config.flows_path


def test_malformed_yaml_raises_configuration_error(tmp_path):
    path = tmp_path / "orchestrator.yaml"
    path.write_text("engine: [unterminated\n")

    with pytest.raises(ConfigurationError) as exc_info:
        load_config(str(path))
    assert exc_info.value.config_file == str(path)


def test_reload_config_reads_configured_path(tmp_path, monkeypatch):
    path = tmp_path / "orchestrator.yaml"
    path.write_text("engine:\n  max_concurrency: 3\n")
    monkeypatch.setenv("FLOW_ORCHESTRATOR_CONFIG_PATH", str(path))

    try:
        config = reload_config()
        assert config.default_max_concurrency == 3
        assert get_config() is config
    finally:
        monkeypatch.delenv("FLOW_ORCHESTRATOR_CONFIG_PATH")
        reload_config()
