# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Flow Orchestrator Configuration - Single source of truth.
YAML is king. Env vars ONLY for secrets and deployment overrides.
"""

import os
import yaml
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from flow_orchestrator.core.errors import ConfigurationError


# =============================================================================
# CONFIGURATION DATACLASS
# =============================================================================

@dataclass(frozen=True)
class Config:
    """
    Immutable engine configuration.
    All values from YAML. No hidden state.
    """

    # -- Engine defaults (applied when a flow omits them) --
    default_timeout_ms: int = 30000
    default_max_concurrency: int = 10
    default_max_retries: int = 0
    default_retry_backoff_ms: int = 1000

    # -- Server --
    host: str = "0.0.0.0"
    port: int = 8000

    # -- HTTP --
    http_timeout: float = 30.0

    # -- Legacy engine --
    legacy_engine_url: Optional[str] = None
    legacy_poll_interval: float = 1.0
    legacy_poll_timeout: float = 300.0

    # -- LLM --
    llm_default_model: str = "claude-sonnet-4-5"
    llm_max_tokens: int = 1024

    # -- Hybrid diagnostics --
    hybrid_time_diff_warn_pct: float = 20.0

    # -- Paths --
    flows_path: str = "./flows"

    # -- Logging --
    log_level: str = "INFO"
    log_format: str = "json"

    def get_anthropic_api_key(self) -> Optional[str]:
        """Get Anthropic API key from environment"""
        return get_anthropic_api_key()


# =============================================================================
# SECRETS - The ONLY thing from environment variables
# =============================================================================

def get_anthropic_api_key() -> Optional[str]:
    """API keys cannot be in version control."""
    return os.getenv("ANTHROPIC_API_KEY")


# =============================================================================
# LOADER
# =============================================================================

def load_config(path: str = "./configs/orchestrator.yaml") -> Config:
    """
    Load configuration from YAML.
    Returns defaults if file doesn't exist.
    """
    if not Path(path).exists():
        return Config()

    try:
        with open(path) as f:
            y = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}", config_file=path) from e

    # Helper to safely navigate nested dicts
    def get(d: dict, *keys, default=None):
        for k in keys:
            if not isinstance(d, dict):
                return default
            d = d.get(k, {})
        return d if d != {} else default

    defaults = Config()

    return Config(
        # Engine
        default_timeout_ms=get(y, "engine", "timeout_ms") or defaults.default_timeout_ms,
        default_max_concurrency=get(y, "engine", "max_concurrency") or defaults.default_max_concurrency,
        default_max_retries=get(y, "engine", "max_retries") or defaults.default_max_retries,
        default_retry_backoff_ms=get(y, "engine", "retry_backoff_ms") or defaults.default_retry_backoff_ms,

        # Server
        host=os.getenv("HOST") or get(y, "server", "host") or defaults.host,
        port=int(os.getenv("PORT") or get(y, "server", "port") or defaults.port),

        # HTTP
        http_timeout=get(y, "http", "timeout") or defaults.http_timeout,

        # Legacy engine
        legacy_engine_url=os.getenv("LEGACY_ENGINE_URL") or get(y, "legacy_engine", "url"),
        legacy_poll_interval=get(y, "legacy_engine", "poll_interval") or defaults.legacy_poll_interval,
        legacy_poll_timeout=get(y, "legacy_engine", "poll_timeout") or defaults.legacy_poll_timeout,

        # LLM
        llm_default_model=get(y, "llm", "default_model") or defaults.llm_default_model,
        llm_max_tokens=get(y, "llm", "max_tokens") or defaults.llm_max_tokens,

        # Hybrid
        hybrid_time_diff_warn_pct=get(y, "hybrid", "time_diff_warn_pct") or defaults.hybrid_time_diff_warn_pct,

        # Paths
        flows_path=get(y, "paths", "flows") or defaults.flows_path,

        # Logging
        log_level=os.getenv("LOG_LEVEL") or get(y, "logging", "level") or defaults.log_level,
        log_format=get(y, "logging", "format") or defaults.log_format,
    )


# =============================================================================
# GLOBAL INSTANCE
# =============================================================================

_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create global config instance."""
    global _config
    if _config is None:
        config_path = os.getenv("FLOW_ORCHESTRATOR_CONFIG_PATH", "./configs/orchestrator.yaml")
        _config = load_config(config_path)
    return _config


def reload_config() -> Config:
    """Force reload configuration."""
    global _config
    _config = None
    return get_config()
