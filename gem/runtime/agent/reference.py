"""
Reference Suite - Graded probes that define the objective function

WHAT: Loads reference tasks and grades a single policy output against one
WHERE: gem/runtime/agent/reference.py - JSON Lines suite on disk
WHO: Objective evaluator (every pass) and control loop (policy context)
TIME: Load O(n) in suite size; grading <1ms per task

A missing or unconfigured suite is not an error: the loader returns no tasks
and the evaluator reports a score of zero. A suite line that is present but
unreadable is a configuration error and raises.

Grading rules (applied to the trimmed output):
- exact: equals ``expected``
- regex: ``expected`` compiled and searched anywhere in the output
- includes: contains ``expected`` (default, also for absent/unknown rules)
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from pydantic import ValidationError

from .errors import ReferenceSuiteCorrupt
from .models import Task

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ReferenceSuite:
    """Loader for the static reference suite."""

    path: Optional[Path] = None

    def __post_init__(self) -> None:
        if self.path is not None:
            self.path = Path(self.path)

    def is_configured(self) -> bool:
        return self.path is not None and self.path.is_file()

    def load_suite(self) -> Tuple[Task, ...]:
        if self.path is None:
            return ()
        if not self.path.is_file():
            logger.debug("Reference suite %s not found; no objective signal", self.path)
            return ()

        tasks: List[Task] = []
        with self.path.open("rb") as fh:
            for lineno, raw in enumerate(fh, start=1):
                if not raw.strip():
                    continue
                try:
                    tasks.append(Task.model_validate(json.loads(raw.decode("utf-8"))))
                except (UnicodeDecodeError, json.JSONDecodeError, ValidationError) as exc:
                    raise ReferenceSuiteCorrupt(f"{self.path}:{lineno}: {exc}") from exc
        return tuple(tasks)


def grade_output(task: Task, output: str) -> bool:
    """Apply the task's grading rule to ``output`` (trimmed here)."""
    text = output.strip()
    rule = task.grading_rule
    if rule == "exact":
        return text == task.expected
    if rule == "regex":
        return re.search(task.expected, text) is not None
    return task.expected in text


def describe_tasks(tasks: Sequence[Task]) -> List[dict]:
    """Input/expected pairs shown to the policy as performance goals."""
    return [{"input": t.input, "expected": t.expected} for t in tasks]


__all__ = [
    "ReferenceSuite",
    "describe_tasks",
    "grade_output",
]
