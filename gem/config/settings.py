"""
Agent Settings - Paths and runtime options resolved from the environment

WHAT: Explicit settings threaded into every store and policy constructor
WHERE: gem/config/settings.py - configuration layer
WHO: Chat and verification scripts, session bootstrap, tests
TIME: Resolution <1ms

Environment:
  - GEM_HOME (root for the default layout, default ./data)
  - GEM_THETA_PATH, GEM_MEMORY_PATH, GEM_REFERENCE_PATH, GEM_CONFIG_LOG_PATH
    (GEM_REFERENCE_PATH="" disables the reference suite)
  - GEM_POLICY (rule|openai|local), GEM_RECENT_WINDOW, GEM_COMMIT_RULE
  - GEM_OPENAI_MODEL, GEM_OPENAI_TEMPERATURE, GEM_OPENAI_API_KEY, GEM_OPENAI_BASE_URL
  - GEM_LOCAL_MODEL_ID, GEM_LOCAL_DEVICE
  - GEM_LOG_LEVEL
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Literal, Mapping, Optional

from ..runtime.agent.executive import COMMIT_RULES, CommitRule
from ..runtime.agent.model_engine import LocalModelConfig
from ..runtime.agent.openai_policy import OpenAIPolicyConfig

PolicyKind = Literal["rule", "openai", "local"]
POLICY_KINDS = ("rule", "openai", "local")

DEFAULT_HOME = "data"


@dataclass(slots=True, frozen=True)
class AgentPaths:
    """Filesystem locations for every persistent store."""

    theta: Path
    memory: Path
    reference: Optional[Path]
    config_log: Path

    @classmethod
    def under(cls, root: str | Path) -> "AgentPaths":
        base = Path(root).expanduser()
        return cls(
            theta=base / "theta.json",
            memory=base / "memory" / "episodes.jsonl",
            reference=base / "R" / "tasks.jsonl",
            config_log=base / "memory" / "config_log.jsonl",
        )


@dataclass(slots=True)
class AgentSettings:
    paths: AgentPaths
    policy: PolicyKind = "rule"
    recent_window: int = 5
    commit_rule: CommitRule = "strict"
    openai: OpenAIPolicyConfig = field(default_factory=OpenAIPolicyConfig)
    local_model: LocalModelConfig = field(default_factory=LocalModelConfig)
    log_level: str = "INFO"


def _env(env: Mapping[str, str], key: str) -> Optional[str]:
    value = env.get(key)
    if value is None:
        return None
    return value.strip()


def _env_path(env: Mapping[str, str], key: str, default: Optional[Path]) -> Optional[Path]:
    value = _env(env, key)
    if value is None:
        return default
    if value == "":
        return None
    return Path(value).expanduser()


def _env_int(env: Mapping[str, str], key: str, default: int) -> int:
    value = _env(env, key)
    if not value:
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"{key} must be an integer, got {value!r}") from exc


def _env_float(env: Mapping[str, str], key: str, default: float) -> float:
    value = _env(env, key)
    if not value:
        return default
    try:
        return float(value)
    except ValueError as exc:
        raise ValueError(f"{key} must be a number, got {value!r}") from exc


def resolve_settings(
    root: str | Path | None = None,
    *,
    env: Mapping[str, str] | None = None,
    **overrides: Any,
) -> AgentSettings:
    """Build settings from ``env`` (default ``os.environ``) plus explicit overrides."""

    env = os.environ if env is None else env
    home = Path(root) if root is not None else Path(_env(env, "GEM_HOME") or DEFAULT_HOME)
    defaults = AgentPaths.under(home)
    theta_path = _env_path(env, "GEM_THETA_PATH", defaults.theta)
    memory_path = _env_path(env, "GEM_MEMORY_PATH", defaults.memory)
    log_path = _env_path(env, "GEM_CONFIG_LOG_PATH", defaults.config_log)
    if theta_path is None or memory_path is None or log_path is None:
        raise ValueError("GEM_THETA_PATH, GEM_MEMORY_PATH and GEM_CONFIG_LOG_PATH cannot be empty")
    paths = AgentPaths(
        theta=theta_path,
        memory=memory_path,
        reference=_env_path(env, "GEM_REFERENCE_PATH", defaults.reference),
        config_log=log_path,
    )

    policy = (_env(env, "GEM_POLICY") or "rule").lower()
    if policy not in POLICY_KINDS:
        raise ValueError(f"GEM_POLICY must be one of {POLICY_KINDS}, got {policy!r}")
    commit_rule = (_env(env, "GEM_COMMIT_RULE") or "strict").lower()
    if commit_rule not in COMMIT_RULES:
        raise ValueError(f"GEM_COMMIT_RULE must be one of {COMMIT_RULES}, got {commit_rule!r}")

    openai_defaults = OpenAIPolicyConfig()
    openai_cfg = OpenAIPolicyConfig(
        model=_env(env, "GEM_OPENAI_MODEL") or openai_defaults.model,
        temperature=_env_float(env, "GEM_OPENAI_TEMPERATURE", openai_defaults.temperature),
        api_key=_env(env, "GEM_OPENAI_API_KEY") or None,
        base_url=_env(env, "GEM_OPENAI_BASE_URL") or None,
        timeout=openai_defaults.timeout,
    )
    local_defaults = LocalModelConfig()
    local_cfg = LocalModelConfig(
        model_id=_env(env, "GEM_LOCAL_MODEL_ID") or local_defaults.model_id,
        device=_env(env, "GEM_LOCAL_DEVICE") or local_defaults.device,
    )

    settings = AgentSettings(
        paths=paths,
        policy=policy,  # type: ignore[arg-type]
        recent_window=_env_int(env, "GEM_RECENT_WINDOW", 5),
        commit_rule=commit_rule,  # type: ignore[arg-type]
        openai=openai_cfg,
        local_model=local_cfg,
        log_level=(_env(env, "GEM_LOG_LEVEL") or "INFO").upper(),
    )
    if overrides:
        settings = replace(settings, **overrides)
    return settings


__all__ = [
    "AgentPaths",
    "AgentSettings",
    "DEFAULT_HOME",
    "POLICY_KINDS",
    "PolicyKind",
    "resolve_settings",
]
