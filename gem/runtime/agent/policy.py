"""
Policy Interface - Action selection contract and deterministic stub

WHAT: Policy protocol, model-output decoding, rule-based policy
WHERE: gem/runtime/agent/policy.py - boundary to the inference provider
WHO: Control loop (live observations) and evaluator (reference probes)
TIME: Rule-based policy <1ms; network/local variants dominated by inference

Every policy maps ``(theta, memory window, observation, reference tasks)`` to
an Action. Implementations that read model text decode it here: text that is
not a JSON object becomes a ``world`` action carrying a diagnostic message,
while a JSON object of the wrong shape becomes an ``UnrecognizedAction`` that
the control loop rejects at dispatch. Transport failures raise
``PolicyInvocationFailed``.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Protocol, Sequence, Tuple

from .errors import PolicyOutputMalformed
from .models import (
    MemAction,
    MemoryEntry,
    Patch,
    PolicyDecision,
    SysAction,
    Task,
    Theta,
    UnrecognizedAction,
    WorldAction,
    parse_action,
)

logger = logging.getLogger(__name__)

MALFORMED_OUTPUT_MESSAGE = "I tried to act but failed to produce valid JSON."
EMPTY_OUTPUT_MESSAGE = "Error: No content from LLM"
ENGINE_ERROR_MESSAGE = "Internal Engine Error"

_FENCE_OPEN = re.compile(r"^```(?:json)?\s*\n?", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"\n?```\s*$")


class Policy(Protocol):
    """Maps agent state to the next action."""

    def invoke(
        self,
        theta: Theta,
        memory_window: Sequence[MemoryEntry],
        observation: str,
        reference_tasks: Sequence[Task] = (),
    ) -> PolicyDecision:
        """Return the chosen action or raise ``PolicyInvocationFailed``."""


def strip_code_fence(text: str) -> str:
    """Remove a surrounding markdown code fence often emitted by chat models."""
    cleaned = text.strip()
    cleaned = _FENCE_OPEN.sub("", cleaned)
    cleaned = _FENCE_CLOSE.sub("", cleaned)
    return cleaned.strip()


def _load_json_object(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise PolicyOutputMalformed(f"model output is not JSON: {exc}") from exc


def decode_action(text: str | None) -> PolicyDecision:
    """Decode raw model text into an action at the policy boundary."""
    if not text or not text.strip():
        return WorldAction(message=EMPTY_OUTPUT_MESSAGE)

    cleaned = strip_code_fence(text)
    try:
        data = _load_json_object(cleaned)
    except PolicyOutputMalformed as exc:
        logger.error("Failed to parse policy JSON (%s): %.200s", exc, cleaned)
        return WorldAction(message=MALFORMED_OUTPUT_MESSAGE)
    return parse_action(data)


def coerce_decision(result: Any) -> PolicyDecision:
    """Normalize whatever a policy returned into an action.

    Decoded mappings are validated like model output; any other foreign type
    becomes an ``UnrecognizedAction``.
    """
    if isinstance(result, (WorldAction, MemAction, SysAction, UnrecognizedAction)):
        return result
    if isinstance(result, Mapping):
        return parse_action(result)
    return UnrecognizedAction(reason=f"policy returned {type(result).__name__}")


@dataclass(slots=True)
class RuleBasedPolicy:
    """
    Deterministic policy for tests, offline runs and verification.

    - An observation containing ``update_trigger`` proposes ``proposal``.
    - Otherwise the first ``responses`` key found in the observation selects
      a canned reply; unmatched observations are echoed.
    - When the configuration's system prompt contains ``prefix_marker`` every
      reply is prefixed with ``"<marker> "``, simulating a model that obeys
      its instructions.
    """

    responses: Mapping[str, str] = field(
        default_factory=lambda: {
            "2 + 2": "4",
            "status report": "All systems nominal.",
            "Say hello": "Hello world.",
        }
    )
    update_trigger: str = "update config"
    proposal: Dict[str, Any] = field(
        default_factory=lambda: {
            "system_prompt": "You are a helpful agent. Always start your response with 'RESULT: '."
        }
    )
    prefix_marker: str = "RESULT:"
    calls: int = field(default=0, init=False)

    def invoke(
        self,
        theta: Theta,
        memory_window: Sequence[MemoryEntry],
        observation: str,
        reference_tasks: Sequence[Task] = (),
    ) -> PolicyDecision:
        self.calls += 1
        if self.update_trigger and self.update_trigger in observation.lower():
            return SysAction(patch=Patch.model_validate(self.proposal))

        prefix = f"{self.prefix_marker} " if self.prefix_marker in (theta.system_prompt or "") else ""
        for needle, reply in self.responses.items():
            if needle in observation:
                return WorldAction(message=prefix + reply)
        return WorldAction(message=prefix + "I heard you: " + observation)


@dataclass(slots=True)
class ScriptedPolicy:
    """Replays a fixed list of raw outputs through ``decode_action``."""

    outputs: Tuple[str, ...]
    _cursor: int = field(default=0, init=False)

    def invoke(
        self,
        theta: Theta,
        memory_window: Sequence[MemoryEntry],
        observation: str,
        reference_tasks: Sequence[Task] = (),
    ) -> PolicyDecision:
        if not self.outputs:
            return decode_action(None)
        raw = self.outputs[min(self._cursor, len(self.outputs) - 1)]
        self._cursor += 1
        return decode_action(raw)


__all__ = [
    "EMPTY_OUTPUT_MESSAGE",
    "ENGINE_ERROR_MESSAGE",
    "MALFORMED_OUTPUT_MESSAGE",
    "Policy",
    "RuleBasedPolicy",
    "ScriptedPolicy",
    "coerce_decision",
    "decode_action",
    "strip_code_fence",
]
