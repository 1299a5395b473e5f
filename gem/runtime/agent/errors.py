"""
Agent Errors - Failure taxonomy for the self-improvement loop

WHAT: Exception hierarchy shared by stores, policies, evaluator and loop
WHERE: gem/runtime/agent/errors.py - imported by every agent module
WHO: Callers deciding which failures are fatal and which are contained
TIME: N/A

Only configuration errors are allowed to terminate the process. Everything
else is contained to the unit of work that raised it (one policy call, one
reference task, one persisted memory line).
"""

from __future__ import annotations


class GEMError(RuntimeError):
    """Base class for all agent runtime errors."""


class ConfigMissing(GEMError):
    """Raised when no persisted configuration exists. Fatal at startup."""


class ConfigCorrupt(GEMError):
    """Raised when the persisted configuration cannot be decoded or validated."""


class PolicyOutputMalformed(GEMError):
    """Raised inside a policy when model output is not valid JSON."""


class PolicyInvocationFailed(GEMError):
    """Raised when the inference transport or model call fails."""


class MemoryRecordCorrupt(GEMError):
    """Raised for a single unreadable memory line; the loader skips it."""


class ReferenceSuiteCorrupt(GEMError):
    """Raised when a reference suite line is not a valid task."""


class DispatchUnknownActionKind(GEMError):
    """Raised when the control loop receives an action it cannot dispatch."""


class VerificationError(GEMError):
    """Raised by the one-shot verification when an expected result is missing."""


__all__ = [
    "GEMError",
    "ConfigMissing",
    "ConfigCorrupt",
    "PolicyOutputMalformed",
    "PolicyInvocationFailed",
    "MemoryRecordCorrupt",
    "ReferenceSuiteCorrupt",
    "DispatchUnknownActionKind",
    "VerificationError",
]
