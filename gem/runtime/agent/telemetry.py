"""
Telemetry - Spans around policy calls, evaluation passes and commits

WHAT: Timed attribute records emitted to a pluggable sink
WHERE: gem/runtime/agent/telemetry.py - observability layer
WHO: Evaluator, runtime executive and control loop
TIME: <0.1ms per span; the no-op sink discards records

Span names used by the runtime: ``gem.policy_invoke``, ``gem.evaluate``,
``gem.commit``. Every span carries ``success`` and ``duration_ms``; a span
closed by an exception also records the exception type under ``error`` and
lets the exception propagate.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Optional

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TelemetrySpan:
    name: str
    attributes: Dict[str, Any] = field(default_factory=dict)

    def set_attribute(self, key: str, value: Any) -> None:
        self.attributes[key] = value


class TelemetryClient:
    """Span factory; subclasses decide where finished spans go via ``emit_span``."""

    @contextmanager
    def span(self, name: str, *, attributes: Optional[Dict[str, Any]] = None) -> Iterator[TelemetrySpan]:
        record = TelemetrySpan(name=name, attributes=dict(attributes or {}))
        started = time.perf_counter()
        try:
            yield record
        except BaseException as exc:
            record.attributes.setdefault("success", False)
            record.attributes.setdefault("error", type(exc).__name__)
            raise
        finally:
            record.attributes.setdefault("success", True)
            record.attributes["duration_ms"] = (time.perf_counter() - started) * 1000.0
            self.emit_span(record.name, record.attributes)

    def emit_span(self, name: str, attributes: Dict[str, Any]) -> None:
        raise NotImplementedError


class NoOpTelemetryClient(TelemetryClient):
    def emit_span(self, name: str, attributes: Dict[str, Any]) -> None:
        return None


class ConsoleTelemetryClient(TelemetryClient):
    """Logs each finished span on the module logger."""

    def __init__(self, level: int = logging.INFO) -> None:
        self.level = level

    def emit_span(self, name: str, attributes: Dict[str, Any]) -> None:
        logger.log(self.level, "[telemetry] %s: %s", name, dict(sorted(attributes.items())))


__all__ = [
    "ConsoleTelemetryClient",
    "NoOpTelemetryClient",
    "TelemetryClient",
    "TelemetrySpan",
]
