"""
Runtime Executive - Evaluate-then-commit gate for configuration patches

WHAT: Two-point evaluation of current vs. proposed configuration plus audit log
WHERE: gem/runtime/agent/executive.py - the only writer path for theta after startup
WHO: Control loop on every ``sys`` action; verification entry point
TIME: Two full evaluation passes (j_old then j_new), never concurrent

Decision rule: commit iff ``j_new > j_old``. Ties are rejected, so a patch
without measurable effect never churns the configuration. The rule can be
relaxed to ``j_new >= j_old`` with ``commit_rule="non_regressive"``.

Every completed run appends exactly one config log entry, committed or not.
If either evaluation raises, the error propagates and nothing is logged.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Literal

from pydantic import ValidationError

from .evaluator import ObjectiveEvaluator
from .memory_store import ends_mid_record
from .models import ConfigLogEntry, Theta
from .telemetry import NoOpTelemetryClient, TelemetryClient

logger = logging.getLogger(__name__)

CommitRule = Literal["strict", "non_regressive"]
COMMIT_RULES = ("strict", "non_regressive")


@dataclass(slots=True, frozen=True)
class CommitResult:
    committed: bool
    theta: Theta
    j_old: float
    j_new: float


@dataclass(slots=True)
class ConfigLog:
    """Append-only JSON Lines audit trail of evaluated patches."""

    path: Path

    def __post_init__(self) -> None:
        self.path = Path(self.path)

    def append(self, entry: ConfigLogEntry) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        line = json.dumps(entry.model_dump(mode="json"), ensure_ascii=False)
        prefix = "\n" if ends_mid_record(self.path) else ""
        with self.path.open("a", encoding="utf-8") as fh:
            fh.write(prefix + line + "\n")
            fh.flush()

    def entries(self) -> List[ConfigLogEntry]:
        if not self.path.is_file():
            return []
        out: List[ConfigLogEntry] = []
        with self.path.open("rb") as fh:
            for lineno, raw in enumerate(fh, start=1):
                if not raw.strip():
                    continue
                try:
                    out.append(ConfigLogEntry.model_validate(json.loads(raw.decode("utf-8"))))
                except (UnicodeDecodeError, json.JSONDecodeError, ValidationError) as exc:
                    logger.warning("Skipping config log record %s:%d: %s", self.path, lineno, exc)
        return out


def should_commit(j_old: float, j_new: float, rule: CommitRule = "strict") -> bool:
    if rule == "non_regressive":
        return j_new >= j_old
    return j_new > j_old


class RuntimeExecutive:
    """Gates configuration mutation on objective improvement."""

    def __init__(
        self,
        evaluator: ObjectiveEvaluator,
        config_log: ConfigLog,
        *,
        commit_rule: CommitRule = "strict",
        telemetry: TelemetryClient | None = None,
    ) -> None:
        if commit_rule not in COMMIT_RULES:
            raise ValueError(f"unknown commit rule {commit_rule!r}; expected one of {COMMIT_RULES}")
        self.evaluator = evaluator
        self.config_log = config_log
        self.commit_rule: CommitRule = commit_rule
        self.telemetry = telemetry or NoOpTelemetryClient()

    def evaluate_and_commit(self, theta_old: Theta, theta_new: Theta) -> CommitResult:
        logger.info("Runtime Executive: Evaluating configuration patch...")
        with self.telemetry.span("gem.commit", attributes={"commit_rule": self.commit_rule}) as span:
            j_old = self.evaluator.evaluate(theta_old)
            j_new = self.evaluator.evaluate(theta_new)
            logger.info("Performance: J(old)=%.2f, J(new)=%.2f", j_old, j_new)

            committed = should_commit(j_old, j_new, self.commit_rule)
            entry = ConfigLogEntry(
                theta_before=theta_old,
                theta_after=theta_new,
                j_before=j_old,
                j_after=j_new,
                committed=committed,
            )
            self.config_log.append(entry)

            span.set_attribute("j_old", j_old)
            span.set_attribute("j_new", j_new)
            span.set_attribute("committed", committed)

        return CommitResult(
            committed=committed,
            theta=theta_new if committed else theta_old,
            j_old=j_old,
            j_new=j_new,
        )


__all__ = [
    "COMMIT_RULES",
    "CommitResult",
    "CommitRule",
    "ConfigLog",
    "RuntimeExecutive",
    "should_commit",
]
