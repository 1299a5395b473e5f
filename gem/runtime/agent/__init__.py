"""
Self-Improving Agent - Configuration, memory and the evaluate-then-commit loop

WHAT: Local library for running a policy-driven agent that can rewrite its own configuration
WHERE: gem/runtime/agent/ - runtime orchestration subsystem
WHO: Chat and verification scripts, tests
TIME: Policy latency per turn; two evaluation passes per proposed patch

Stores (local files only):
- ConfigStore: theta as one JSON document, atomic overwrite on commit
- JsonlMemoryStore: write-through episodic memory (JSON Lines)
- ReferenceSuite: graded reference tasks (JSON Lines, read-only)
- ConfigLog: audit trail of every evaluated patch (JSON Lines)

Operations:
- apply_patch(theta, patch): pure shallow merge
- ObjectiveEvaluator.evaluate(theta): J(theta) as reference pass rate
- RuntimeExecutive.evaluate_and_commit(old, new): commit iff J improves
- GEMOrchestrator.run(read_input): observation → action → dispatch loop

Policies:
- RuleBasedPolicy: deterministic, offline
- OpenAIPolicy: chat completions through the ``openai`` SDK
- LocalModelPolicy: in-process ``transformers`` model (optional extra)
"""

from .config_store import ConfigStore  # noqa: F401
from .errors import (  # noqa: F401
    ConfigCorrupt,
    ConfigMissing,
    DispatchUnknownActionKind,
    GEMError,
    MemoryRecordCorrupt,
    PolicyInvocationFailed,
    PolicyOutputMalformed,
    ReferenceSuiteCorrupt,
    VerificationError,
)
from .evaluator import EvaluationReport, ObjectiveEvaluator, TaskResult  # noqa: F401
from .executive import CommitResult, ConfigLog, RuntimeExecutive, should_commit  # noqa: F401
from .memory_store import JsonlMemoryStore, MemoryStore  # noqa: F401
from .model_engine import (  # noqa: F401
    LocalModelConfig,
    LocalModelEngine,
    LocalModelPolicy,
    MissingDependencyError,
    ModelNotLoadedError,
)
from .models import (  # noqa: F401
    ConfigLogEntry,
    MemAction,
    MemoryEntry,
    Patch,
    SysAction,
    Task,
    Theta,
    Tool,
    UnrecognizedAction,
    WorldAction,
    apply_patch,
    parse_action,
)
from .openai_policy import OpenAIPolicy, OpenAIPolicyConfig  # noqa: F401
from .orchestrator import GEMOrchestrator, LoopState, OrchestratorConfig, StepOutcome  # noqa: F401
from .policy import Policy, RuleBasedPolicy, ScriptedPolicy, decode_action  # noqa: F401
from .reference import ReferenceSuite, grade_output  # noqa: F401
from .session import AgentSession, build_policy  # noqa: F401
from .telemetry import (  # noqa: F401
    ConsoleTelemetryClient,
    NoOpTelemetryClient,
    TelemetryClient,
    TelemetrySpan,
)
from .verify import VerificationReport, run_verification  # noqa: F401

__all__ = [
    "AgentSession",
    "CommitResult",
    "ConfigCorrupt",
    "ConfigLog",
    "ConfigLogEntry",
    "ConfigMissing",
    "ConfigStore",
    "ConsoleTelemetryClient",
    "DispatchUnknownActionKind",
    "EvaluationReport",
    "GEMError",
    "GEMOrchestrator",
    "JsonlMemoryStore",
    "LocalModelConfig",
    "LocalModelEngine",
    "LocalModelPolicy",
    "LoopState",
    "MemAction",
    "MemoryEntry",
    "MemoryRecordCorrupt",
    "MemoryStore",
    "MissingDependencyError",
    "ModelNotLoadedError",
    "NoOpTelemetryClient",
    "ObjectiveEvaluator",
    "OpenAIPolicy",
    "OpenAIPolicyConfig",
    "OrchestratorConfig",
    "Patch",
    "Policy",
    "PolicyInvocationFailed",
    "PolicyOutputMalformed",
    "ReferenceSuite",
    "ReferenceSuiteCorrupt",
    "RuleBasedPolicy",
    "RuntimeExecutive",
    "ScriptedPolicy",
    "StepOutcome",
    "SysAction",
    "Task",
    "TaskResult",
    "TelemetryClient",
    "TelemetrySpan",
    "Theta",
    "Tool",
    "UnrecognizedAction",
    "VerificationError",
    "VerificationReport",
    "WorldAction",
    "apply_patch",
    "build_policy",
    "decode_action",
    "grade_output",
    "parse_action",
    "run_verification",
    "should_commit",
]
