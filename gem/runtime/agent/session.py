"""
Agent Session - Wiring of stores, policy, evaluator and control loop

WHAT: Builds a ready-to-run agent from resolved settings
WHERE: gem/runtime/agent/session.py - bridges configuration and runtime objects
WHO: Chat and verification scripts, integration tests
TIME: Startup reads theta, replays memory and loads the reference suite once

The configuration must exist before anything else is built: a missing or
unreadable ``theta.json`` raises out of ``from_settings`` and the caller
terminates. Memory and the config log are created on first write.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from .config_store import ConfigStore
from .evaluator import ObjectiveEvaluator
from .executive import ConfigLog, RuntimeExecutive
from .memory_store import JsonlMemoryStore
from .model_engine import LocalModelEngine, LocalModelPolicy
from .openai_policy import OpenAIPolicy
from .orchestrator import Emitter, GEMOrchestrator, OrchestratorConfig
from .policy import Policy, RuleBasedPolicy
from .reference import ReferenceSuite
from .telemetry import NoOpTelemetryClient, TelemetryClient

if TYPE_CHECKING:
    from ...config.settings import AgentSettings

logger = logging.getLogger(__name__)


def build_policy(settings: "AgentSettings") -> Policy:
    """Instantiate the policy variant named by ``settings.policy``."""

    if settings.policy == "rule":
        return RuleBasedPolicy()
    if settings.policy == "openai":
        return OpenAIPolicy(settings.openai)
    if settings.policy == "local":
        return LocalModelPolicy(LocalModelEngine(settings.local_model), auto_load=True)
    raise ValueError(f"unknown policy kind {settings.policy!r}")


@dataclass(slots=True)
class AgentSession:
    settings: "AgentSettings"
    policy: Policy
    config_store: ConfigStore
    memory: JsonlMemoryStore
    suite: ReferenceSuite
    evaluator: ObjectiveEvaluator
    executive: RuntimeExecutive
    orchestrator: GEMOrchestrator

    @staticmethod
    def from_settings(
        settings: "AgentSettings",
        *,
        policy: Optional[Policy] = None,
        telemetry: Optional[TelemetryClient] = None,
        emit: Optional[Emitter] = None,
    ) -> "AgentSession":
        telemetry = telemetry or NoOpTelemetryClient()
        paths = settings.paths

        config_store = ConfigStore(paths.theta)
        theta = config_store.load()

        memory = JsonlMemoryStore(paths.memory)
        suite = ReferenceSuite(paths.reference)
        reference_tasks = suite.load_suite()
        logger.info(
            "Session ready: theta=%s memory_entries=%d reference_tasks=%d policy=%s",
            paths.theta,
            len(memory),
            len(reference_tasks),
            settings.policy,
        )

        policy = policy if policy is not None else build_policy(settings)
        evaluator = ObjectiveEvaluator(policy, suite, telemetry=telemetry)
        executive = RuntimeExecutive(
            evaluator,
            ConfigLog(paths.config_log),
            commit_rule=settings.commit_rule,
            telemetry=telemetry,
        )
        orchestrator = GEMOrchestrator(
            theta=theta,
            policy=policy,
            config_store=config_store,
            memory=memory,
            executive=executive,
            reference_tasks=reference_tasks,
            config=OrchestratorConfig(recent_window=settings.recent_window),
            telemetry=telemetry,
            emit=emit,
        )
        return AgentSession(
            settings=settings,
            policy=policy,
            config_store=config_store,
            memory=memory,
            suite=suite,
            evaluator=evaluator,
            executive=executive,
            orchestrator=orchestrator,
        )


__all__ = [
    "AgentSession",
    "build_policy",
]
