import json

from gem.runtime.agent.config_store import ConfigStore
from gem.runtime.agent.errors import PolicyInvocationFailed
from gem.runtime.agent.evaluator import ObjectiveEvaluator
from gem.runtime.agent.executive import ConfigLog, RuntimeExecutive
from gem.runtime.agent.memory_store import JsonlMemoryStore
from gem.runtime.agent.models import Theta, WorldAction
from gem.runtime.agent.orchestrator import (
    ACTION_FAILED,
    CONFIG_REJECTED,
    CONFIG_UPDATED,
    MEMORY_UPDATED,
    GEMOrchestrator,
    LoopState,
)
from gem.runtime.agent.policy import (
    ENGINE_ERROR_MESSAGE,
    MALFORMED_OUTPUT_MESSAGE,
    RuleBasedPolicy,
    ScriptedPolicy,
)
from gem.runtime.agent.reference import ReferenceSuite
from gem.runtime.agent.telemetry import TelemetryClient


class CaptureTelemetryClient(TelemetryClient):
    def __init__(self) -> None:
        self.spans: list[tuple[str, dict]] = []

    def emit_span(self, name: str, attributes: dict) -> None:
        self.spans.append((name, attributes))


class BrokenPolicy:
    def invoke(self, theta, memory_window, observation, reference_tasks=()):
        raise PolicyInvocationFailed("quota exceeded")


class ReadOnlyConfigStore(ConfigStore):
    def save(self, theta):
        raise PermissionError("read-only filesystem")


class MappingPolicy:
    def invoke(self, theta, memory_window, observation, reference_tasks=()):
        return {"type": "mem", "note": observation}


class RecordingPolicy:
    def __init__(self) -> None:
        self.observations: list[str] = []
        self.windows: list[tuple] = []

    def invoke(self, theta, memory_window, observation, reference_tasks=()):
        self.observations.append(observation)
        self.windows.append(tuple(memory_window))
        return WorldAction(message=f"echo {observation}")


def build(tmp_path, policy, *, with_suite=True, telemetry=None, store_cls=ConfigStore):
    theta = Theta(system_prompt="You are a helpful agent.")
    ConfigStore(tmp_path / "theta.json").save(theta)
    config_store = store_cls(tmp_path / "theta.json")

    suite_path = None
    if with_suite:
        suite_path = tmp_path / "R" / "tasks.jsonl"
        suite_path.parent.mkdir(parents=True, exist_ok=True)
        suite_path.write_text(
            json.dumps({"id": "1", "input": "What is 2 + 2?", "expected": "RESULT: 4"}) + "\n",
            encoding="utf-8",
        )
    suite = ReferenceSuite(suite_path)
    memory = JsonlMemoryStore(tmp_path / "memory" / "episodes.jsonl")
    executive = RuntimeExecutive(
        ObjectiveEvaluator(policy, suite),
        ConfigLog(tmp_path / "memory" / "config_log.jsonl"),
    )
    emitted: list[str] = []
    orchestrator = GEMOrchestrator(
        theta=theta,
        policy=policy,
        config_store=config_store,
        memory=memory,
        executive=executive,
        reference_tasks=suite.load_suite(),
        telemetry=telemetry,
        emit=emitted.append,
    )
    return orchestrator, emitted


def log_records(orchestrator):
    return [e.model_dump() for e in orchestrator.memory.get_recent(100) if e.type == "log"]


def test_world_action_is_emitted_and_traced(tmp_path):
    orch, emitted = build(tmp_path, ScriptedPolicy(('{"type": "world", "message": "hi"}',)))
    outcome = orch.step("hello")

    assert emitted == ["[WORLD] hi"]
    assert outcome.next_observation == 'User saw message: "hi"'
    assert orch.last_observation == outcome.next_observation
    assert orch.state is LoopState.AWAIT_OBSERVATION

    [record] = log_records(orch)
    assert record["input"] == "hello"
    assert record["action"] == {"type": "world", "message": "hi"}
    assert record["result"] == 'User saw message: "hi"'


def test_mem_action_appends_note_then_trace(tmp_path):
    orch, emitted = build(tmp_path, ScriptedPolicy(('{"type": "mem", "note": "x"}',)))
    outcome = orch.step("remember x")

    assert outcome.next_observation == MEMORY_UPDATED
    assert emitted == ["[MEM] x"]
    kinds = [e.type for e in orch.memory.get_recent(10)]
    assert kinds == ["mem", "log"]


def test_sys_action_commits_and_persists(tmp_path):
    orch, emitted = build(tmp_path, RuleBasedPolicy())
    outcome = orch.step("please update config")

    assert outcome.next_observation == CONFIG_UPDATED
    assert outcome.commit is not None and outcome.commit.committed
    assert "RESULT:" in orch.theta.system_prompt
    assert emitted[0] == "[SYS PROPOSAL] Patching configuration..."
    assert emitted[-1] == "[SYS COMMIT] J improved from 0.00 to 1.00"

    on_disk = json.loads((tmp_path / "theta.json").read_text(encoding="utf-8"))
    assert on_disk["system_prompt"] == orch.theta.system_prompt

    log_lines = (tmp_path / "memory" / "config_log.jsonl").read_text(encoding="utf-8").splitlines()
    assert len(log_lines) == 1
    assert json.loads(log_lines[0])["committed"] is True

    # the committed configuration drives later replies
    orch.step("What is 2 + 2?")
    assert emitted[-1] == "[WORLD] RESULT: 4"


def test_sys_action_without_improvement_rolls_back(tmp_path):
    orch, emitted = build(tmp_path, RuleBasedPolicy(), with_suite=False)
    before = (tmp_path / "theta.json").read_text(encoding="utf-8")
    outcome = orch.step("update config")

    assert outcome.next_observation == CONFIG_REJECTED
    assert orch.theta.system_prompt == "You are a helpful agent."
    assert (tmp_path / "theta.json").read_text(encoding="utf-8") == before
    assert emitted[-1] == "[SYS ROLLBACK] J failed to improve (0.00 -> 0.00)"

    entries = ConfigLog(tmp_path / "memory" / "config_log.jsonl").entries()
    assert [e.committed for e in entries] == [False]


def test_unknown_action_is_reported_in_band(tmp_path):
    orch, emitted = build(tmp_path, ScriptedPolicy(('{"type": "dance", "moves": 3}',)))
    outcome = orch.step("go")

    assert outcome.next_observation == ACTION_FAILED
    assert emitted[0].startswith("[ERROR] Unknown Action Type: dance")
    [record] = log_records(orch)
    assert record["result"] == ACTION_FAILED


def test_malformed_output_becomes_world_message(tmp_path):
    orch, emitted = build(tmp_path, ScriptedPolicy(("this is not json",)))
    orch.step("hi")
    assert emitted == [f"[WORLD] {MALFORMED_OUTPUT_MESSAGE}"]


def test_policy_failure_does_not_stop_the_loop(tmp_path):
    orch, emitted = build(tmp_path, BrokenPolicy())
    orch.step("one")
    orch.step("two")

    assert emitted == [f"[WORLD] {ENGINE_ERROR_MESSAGE}"] * 2
    assert len(log_records(orch)) == 2


def test_run_stops_at_exit_and_reuses_last_observation(tmp_path):
    policy = RecordingPolicy()
    orch, _ = build(tmp_path, policy)
    inputs = iter(["first", "", "EXIT", "never"])

    iterations = orch.run(lambda: next(inputs))

    assert iterations == 2
    assert policy.observations == ["first", 'User saw message: "echo first"']
    assert len(policy.windows[1]) == 1


def test_run_stops_at_end_of_input(tmp_path):
    orch, _ = build(tmp_path, RecordingPolicy())
    inputs = iter(["only"])
    assert orch.run(lambda: next(inputs, None)) == 1


def test_orchestrator_emits_policy_span(tmp_path):
    telemetry = CaptureTelemetryClient()
    orch, _ = build(tmp_path, ScriptedPolicy(('{"type": "world", "message": "hi"}',)), telemetry=telemetry)
    orch.step("probe")

    name, attrs = telemetry.spans[-1]
    assert name == "gem.policy_invoke"
    assert attrs["success"] is True
    assert attrs["action_type"] == "world"
    assert "duration_ms" in attrs
    assert attrs["observation_chars"] == len("probe")


def test_commit_that_cannot_be_persisted_keeps_old_theta(tmp_path):
    orch, emitted = build(tmp_path, RuleBasedPolicy(), store_cls=ReadOnlyConfigStore)
    outcome = orch.step("update config")

    assert outcome.commit is not None and outcome.commit.committed
    assert outcome.next_observation == ACTION_FAILED
    assert orch.theta.system_prompt == "You are a helpful agent."
    assert emitted[-1].startswith("[ERROR] Could not persist configuration")

    # loop keeps going
    orch.step("What is 2 + 2?")
    assert emitted[-1] == "[WORLD] 4"


def test_mapping_policy_output_is_dispatched(tmp_path):
    orch, emitted = build(tmp_path, MappingPolicy())
    outcome = orch.step("note this")

    assert outcome.next_observation == MEMORY_UPDATED
    assert emitted == ["[MEM] note this"]
