"""Shared agentflow configuration utilities.

Centralises reading of ~/.agentflow/configuration.json so that the runtime,
the engines and the storage layer share one implementation.
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 1000
DEFAULT_DELAY_MS = 1000

PARALLEL_JOIN_POLICIES = ("settle_all", "all_or_nothing")
RECOVERY_POLICIES = ("fail", "repair")

# ---------------------------------------------------------------------------
# Low-level config file access
# ---------------------------------------------------------------------------

AGENTFLOW_HOME = Path.home() / ".agentflow"
AGENTFLOW_CONFIG_FILE = AGENTFLOW_HOME / "configuration.json"


def get_agentflow_config() -> dict[str, Any]:
    """Load agentflow configuration from ~/.agentflow/configuration.json."""
    if not AGENTFLOW_CONFIG_FILE.exists():
        return {}
    try:
        with open(AGENTFLOW_CONFIG_FILE, encoding="utf-8-sig") as f:
            return json.load(f)
    except (json.JSONDecodeError, OSError):
        return {}


# ---------------------------------------------------------------------------
# Derived helpers
# ---------------------------------------------------------------------------


def get_database_url() -> str:
    """Return the SQLAlchemy URL for the execution database."""
    env_url = os.environ.get("AGENTFLOW_DATABASE_URL")
    if env_url:
        return env_url
    configured = get_agentflow_config().get("database", {}).get("url")
    if configured:
        return configured
    return f"sqlite:///{AGENTFLOW_HOME / 'agentflow.db'}"


def get_engine_setting(key: str, default: Any) -> Any:
    """Return a value from the ``engine`` section of the configuration file."""
    return get_agentflow_config().get("engine", {}).get(key, default)


def get_parallel_join() -> str:
    """Return the default join policy for parallel nodes."""
    value = os.environ.get("AGENTFLOW_PARALLEL_JOIN") or get_engine_setting(
        "parallel_join", "settle_all"
    )
    if value not in PARALLEL_JOIN_POLICIES:
        raise ValueError(
            f"Invalid parallel join policy '{value}'. Valid: {PARALLEL_JOIN_POLICIES}"
        )
    return value


def get_recovery_policy() -> str:
    """Return how a definition without an active version is handled on save."""
    value = os.environ.get("AGENTFLOW_RECOVERY_POLICY") or get_engine_setting(
        "recovery_policy", "fail"
    )
    if value not in RECOVERY_POLICIES:
        raise ValueError(f"Invalid recovery policy '{value}'. Valid: {RECOVERY_POLICIES}")
    return value


def get_log_level() -> str:
    return os.environ.get("LOG_LEVEL") or get_agentflow_config().get("logging", {}).get(
        "level", "INFO"
    )


# ---------------------------------------------------------------------------
# EngineConfig – shared across the runtime and both engines
# ---------------------------------------------------------------------------


@dataclass
class EngineConfig:
    """Engine configuration loaded from ~/.agentflow/configuration.json."""

    database_url: str = field(default_factory=get_database_url)
    default_temperature: float = field(
        default_factory=lambda: get_engine_setting("default_temperature", DEFAULT_TEMPERATURE)
    )
    default_max_tokens: int = field(
        default_factory=lambda: get_engine_setting("default_max_tokens", DEFAULT_MAX_TOKENS)
    )
    default_delay_ms: int = field(
        default_factory=lambda: get_engine_setting("default_delay_ms", DEFAULT_DELAY_MS)
    )
    parallel_join: str = field(default_factory=get_parallel_join)
    recovery_policy: str = field(default_factory=get_recovery_policy)
    log_level: str = field(default_factory=get_log_level)

    def __post_init__(self) -> None:
        if self.parallel_join not in PARALLEL_JOIN_POLICIES:
            raise ValueError(
                f"Invalid parallel join policy '{self.parallel_join}'. "
                f"Valid: {PARALLEL_JOIN_POLICIES}"
            )
        if self.recovery_policy not in RECOVERY_POLICIES:
            raise ValueError(
                f"Invalid recovery policy '{self.recovery_policy}'. Valid: {RECOVERY_POLICIES}"
            )
