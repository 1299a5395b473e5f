"""
GEM Orchestrator - Control loop and action dispatch

WHAT: Observation → policy → dispatch → advance state machine
WHERE: gem/runtime/agent/orchestrator.py - top of the runtime stack
WHO: Interactive chat script and the verification entry point
TIME: One policy call per observation; a ``sys`` action adds two evaluation passes

Ties together the configuration store, episodic memory, the policy and the
runtime executive. One observation is processed fully (dispatch plus the
trace append) before the next is accepted.

Dispatch:
- world: emit the message; next observation acknowledges what was shown
- mem: append the note to memory
- sys: patch → evaluate-and-commit → on commit persist, then replace theta
- anything else: reported in-band as a dispatch error, loop continues

Every iteration appends a ``log`` memory entry ``{input, action, result}``.
"""

from __future__ import annotations

import enum
import json
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from .config_store import ConfigStore
from .errors import DispatchUnknownActionKind, PolicyInvocationFailed
from .executive import CommitResult, RuntimeExecutive
from .memory_store import DEFAULT_RECENT, MemoryStore
from .models import (
    MemAction,
    PolicyDecision,
    SysAction,
    Task,
    Theta,
    UnrecognizedAction,
    WorldAction,
    apply_patch,
)
from .policy import ENGINE_ERROR_MESSAGE, Policy, coerce_decision
from .telemetry import NoOpTelemetryClient, TelemetryClient

logger = logging.getLogger(__name__)

Emitter = Callable[[str], None]

MEMORY_UPDATED = "Memory updated."
CONFIG_UPDATED = "Configuration updated successfully."
CONFIG_REJECTED = "Self-update failed validation."
ACTION_FAILED = "Action execution failed."


class LoopState(str, enum.Enum):
    AWAIT_OBSERVATION = "await_observation"
    INVOKE_POLICY = "invoke_policy"
    DISPATCH = "dispatch"
    ADVANCE = "advance"


@dataclass(slots=True)
class OrchestratorConfig:
    recent_window: int = DEFAULT_RECENT
    exit_sentinel: str = "exit"
    initial_observation: str = "Agent started."


@dataclass(slots=True)
class StepOutcome:
    """Result of processing one observation."""

    observation: str
    action: PolicyDecision
    next_observation: str
    commit: Optional[CommitResult] = None


def _log_emit(message: str) -> None:
    logger.info(message)


class GEMOrchestrator:
    """Facade that runs the agent control loop."""

    def __init__(
        self,
        *,
        theta: Theta,
        policy: Policy,
        config_store: ConfigStore,
        memory: MemoryStore,
        executive: RuntimeExecutive,
        reference_tasks: Sequence[Task] = (),
        config: OrchestratorConfig | None = None,
        telemetry: TelemetryClient | None = None,
        emit: Emitter | None = None,
    ) -> None:
        self._config = config or OrchestratorConfig()
        self._theta = theta
        self._policy = policy
        self._config_store = config_store
        self._memory = memory
        self._executive = executive
        self._reference_tasks = tuple(reference_tasks)
        self._telemetry = telemetry or NoOpTelemetryClient()
        self._emit = emit or _log_emit
        self._state = LoopState.AWAIT_OBSERVATION
        self._last_observation = self._config.initial_observation

    @property
    def theta(self) -> Theta:
        return self._theta

    @property
    def state(self) -> LoopState:
        return self._state

    @property
    def last_observation(self) -> str:
        return self._last_observation

    @property
    def memory(self) -> MemoryStore:
        return self._memory

    @property
    def executive(self) -> RuntimeExecutive:
        return self._executive

    def is_exit(self, user_input: str) -> bool:
        return user_input.strip().lower() == self._config.exit_sentinel.lower()

    # ---------------------- loop ----------------------
    def run(self, read_input: Callable[[], Optional[str]]) -> int:
        """Process observations until the exit sentinel or end of input.

        Returns the number of completed iterations.
        """

        iterations = 0
        while True:
            self._state = LoopState.AWAIT_OBSERVATION
            user_input = read_input()
            if user_input is None or self.is_exit(user_input):
                break
            self.step(user_input)
            iterations += 1
        return iterations

    def step(self, user_input: str) -> StepOutcome:
        observation = user_input or self._last_observation

        self._state = LoopState.INVOKE_POLICY
        action = self._invoke_policy(observation)

        self._state = LoopState.DISPATCH
        next_observation, commit = self._dispatch(action)

        self._state = LoopState.ADVANCE
        self._last_observation = next_observation
        self._memory.apply(
            {
                "type": "log",
                "input": observation,
                "action": action.model_dump(mode="json"),
                "result": next_observation,
            }
        )
        self._state = LoopState.AWAIT_OBSERVATION
        return StepOutcome(
            observation=observation,
            action=action,
            next_observation=next_observation,
            commit=commit,
        )

    # ---------------------- phases ----------------------
    def _invoke_policy(self, observation: str) -> PolicyDecision:
        window = self._memory.get_recent(self._config.recent_window)
        with self._telemetry.span(
            "gem.policy_invoke",
            attributes={"observation_chars": len(observation), "memory_window": len(window)},
        ) as span:
            try:
                action = coerce_decision(
                    self._policy.invoke(self._theta, window, observation, self._reference_tasks)
                )
            except PolicyInvocationFailed as exc:
                logger.error("Engine error: %s", exc)
                action = WorldAction(message=ENGINE_ERROR_MESSAGE)
            except Exception:
                logger.exception("Unexpected policy failure")
                action = WorldAction(message=ENGINE_ERROR_MESSAGE)
            span.set_attribute("action_type", getattr(action, "type", None))
        return action

    def _dispatch(self, action: PolicyDecision) -> tuple[str, Optional[CommitResult]]:
        if isinstance(action, WorldAction):
            self._emit(f"[WORLD] {action.message}")
            return f'User saw message: "{action.message}"', None

        if isinstance(action, MemAction):
            self._memory.apply(action)
            self._emit(f"[MEM] {action.note}")
            return MEMORY_UPDATED, None

        if isinstance(action, SysAction):
            return self._dispatch_sys(action)

        error = DispatchUnknownActionKind(self._describe_unknown(action))
        logger.warning("Dispatch error: %s", error)
        self._emit(f"[ERROR] Unknown Action Type: {error}")
        return ACTION_FAILED, None

    def _dispatch_sys(self, action: SysAction) -> tuple[str, Optional[CommitResult]]:
        self._emit("[SYS PROPOSAL] Patching configuration...")
        self._emit(json.dumps(action.patch.model_dump(mode="json"), indent=2, ensure_ascii=False))

        candidate = apply_patch(self._theta, action.patch)
        try:
            result = self._executive.evaluate_and_commit(self._theta, candidate)
        except Exception as exc:
            logger.exception("Commit protocol failed")
            self._emit(f"[ERROR] Self-update evaluation failed: {exc}")
            return ACTION_FAILED, None

        if result.committed:
            try:
                self._config_store.save(result.theta)
            except OSError as exc:
                logger.error("Failed to persist committed configuration: %s", exc)
                self._emit(f"[ERROR] Could not persist configuration: {exc}")
                return ACTION_FAILED, result
            self._theta = result.theta
            self._emit(f"[SYS COMMIT] J improved from {result.j_old:.2f} to {result.j_new:.2f}")
            return CONFIG_UPDATED, result

        self._emit(f"[SYS ROLLBACK] J failed to improve ({result.j_old:.2f} -> {result.j_new:.2f})")
        return CONFIG_REJECTED, result

    @staticmethod
    def _describe_unknown(action: object) -> str:
        if isinstance(action, UnrecognizedAction):
            kind = action.type if action.type is not None else "<missing>"
            return f"{kind} ({action.reason})" if action.reason else kind
        return type(action).__name__


__all__ = [
    "ACTION_FAILED",
    "CONFIG_REJECTED",
    "CONFIG_UPDATED",
    "GEMOrchestrator",
    "LoopState",
    "MEMORY_UPDATED",
    "OrchestratorConfig",
    "StepOutcome",
]
