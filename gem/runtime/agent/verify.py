"""
Verification - One-shot end-to-end check of a configured agent

WHAT: Exercises the world path, the sys path and one evaluate-and-commit cycle
WHERE: gem/runtime/agent/verify.py - used by scripts/verify_gem.py
WHO: Operators checking a fresh installation or a new policy backend
TIME: Three policy calls plus two evaluation passes

The check only asserts shape: which action kinds come back and that both
scores are reported. Whether the cycle commits depends on the policy.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from .errors import VerificationError
from .executive import CommitResult
from .models import PolicyDecision, SysAction, WorldAction, apply_patch
from .session import AgentSession

logger = logging.getLogger(__name__)

WORLD_PROBE = "Hello"
SYS_PROBE = "update config"


@dataclass(slots=True)
class VerificationReport:
    world_action: WorldAction
    sys_action: SysAction
    commit: CommitResult


def _describe(action: PolicyDecision) -> str:
    return f"{type(action).__name__}({action.model_dump(mode='json')})"


def run_verification(
    session: AgentSession,
    *,
    report: Optional[Callable[[str], None]] = None,
) -> VerificationReport:
    report = report or logger.info
    theta = session.config_store.current or session.config_store.load()
    window = session.memory.get_recent(session.settings.recent_window)
    tasks = session.suite.load_suite()

    report("Test 1: World Action")
    first = session.policy.invoke(theta, window, WORLD_PROBE, tasks)
    report(f"Action 1: {_describe(first)}")
    if not isinstance(first, WorldAction):
        raise VerificationError(f"expected a world action for {WORLD_PROBE!r}, got {_describe(first)}")

    report("Test 2: Sys Action")
    second = session.policy.invoke(theta, window, SYS_PROBE, tasks)
    report(f"Action 2: {_describe(second)}")
    if not isinstance(second, SysAction):
        raise VerificationError(f"expected a sys action for {SYS_PROBE!r}, got {_describe(second)}")

    report("Test 3: Runtime Execution")
    candidate = apply_patch(theta, second.patch)
    result = session.executive.evaluate_and_commit(theta, candidate)
    if not all(isinstance(j, (int, float)) for j in (result.j_old, result.j_new)):
        raise VerificationError("evaluation did not report both scores")
    if result.committed:
        report(f"Patch committed: J {result.j_old:.2f} -> {result.j_new:.2f}")
    else:
        report(f"Patch rejected: J {result.j_old:.2f} -> {result.j_new:.2f}")

    return VerificationReport(world_action=first, sys_action=second, commit=result)


__all__ = [
    "SYS_PROBE",
    "VerificationReport",
    "WORLD_PROBE",
    "run_verification",
]
