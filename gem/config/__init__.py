"""Configuration for the GEM runtime.

Settings are resolved once at startup (environment plus explicit overrides)
and passed into every store and policy constructor. Nothing below reads the
environment after ``resolve_settings`` returns.
"""

from .settings import (  # noqa: F401
    DEFAULT_HOME,
    POLICY_KINDS,
    AgentPaths,
    AgentSettings,
    PolicyKind,
    resolve_settings,
)

__all__ = [
    "AgentPaths",
    "AgentSettings",
    "DEFAULT_HOME",
    "POLICY_KINDS",
    "PolicyKind",
    "resolve_settings",
]
