"""
Objective Evaluator - J(theta) over the reference suite

WHAT: Scores a configuration as the pass rate of the policy on every reference task
WHERE: gem/runtime/agent/evaluator.py - consumed by the runtime executive
WHO: Runtime executive (two passes per proposed patch), verification entry point
TIME: One policy invocation per task, strictly sequential

Each task runs with an empty memory window so the score reflects the
configuration alone and not historical drift. A task counts only when the
policy returns a non-empty ``world`` message that passes the task's grading
rule. A failing policy call or an invalid pattern fails that task; the pass
carries on and still yields a score.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from .models import Task, Theta, WorldAction
from .policy import Policy, coerce_decision
from .reference import ReferenceSuite, grade_output
from .telemetry import NoOpTelemetryClient, TelemetryClient

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class TaskResult:
    task_id: str
    passed: bool
    output: Optional[str] = None
    error: Optional[str] = None


@dataclass(slots=True, frozen=True)
class EvaluationReport:
    results: Tuple[TaskResult, ...] = ()

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def successes(self) -> int:
        return sum(1 for r in self.results if r.passed)

    @property
    def score(self) -> float:
        # no evidence, no credit
        if not self.results:
            return 0.0
        return self.successes / self.total


class ObjectiveEvaluator:
    """Computes J(theta) by running the policy against the reference suite."""

    def __init__(
        self,
        policy: Policy,
        suite: ReferenceSuite,
        *,
        telemetry: TelemetryClient | None = None,
    ) -> None:
        self.policy = policy
        self.suite = suite
        self.telemetry = telemetry or NoOpTelemetryClient()

    def evaluate(self, theta: Theta) -> float:
        return self.run(theta).score

    def run(self, theta: Theta) -> EvaluationReport:
        tasks = self.suite.load_suite()
        with self.telemetry.span("gem.evaluate", attributes={"task_count": len(tasks)}) as span:
            results = tuple(self._run_task(theta, task, tasks) for task in tasks)
            report = EvaluationReport(results=results)
            span.set_attribute("successes", report.successes)
            span.set_attribute("score", report.score)
        return report

    def _run_task(self, theta: Theta, task: Task, suite: Sequence[Task]) -> TaskResult:
        try:
            action = coerce_decision(self.policy.invoke(theta, (), task.input, suite))
            if not isinstance(action, WorldAction) or not action.message:
                return TaskResult(task_id=task.id, passed=False)
            output = action.message.strip()
            return TaskResult(task_id=task.id, passed=grade_output(task, output), output=output)
        except Exception as exc:
            logger.error("Task %s failed error: %s", task.id, exc)
            return TaskResult(task_id=task.id, passed=False, error=f"{type(exc).__name__}: {exc}")


__all__ = [
    "EvaluationReport",
    "ObjectiveEvaluator",
    "TaskResult",
]
