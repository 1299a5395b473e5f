import json

import pytest

from gem.runtime.agent.errors import PolicyInvocationFailed, ReferenceSuiteCorrupt
from gem.runtime.agent.evaluator import ObjectiveEvaluator
from gem.runtime.agent.models import MemAction, Task, Theta, WorldAction
from gem.runtime.agent.reference import ReferenceSuite, describe_tasks, grade_output
from gem.runtime.agent.telemetry import TelemetryClient


class StaticPolicy:
    def __init__(self, action):
        self.action = action
        self.windows = []

    def invoke(self, theta, memory_window, observation, reference_tasks=()):
        self.windows.append(tuple(memory_window))
        return self.action


class FlakyPolicy:
    def invoke(self, theta, memory_window, observation, reference_tasks=()):
        if "boom" in observation:
            raise PolicyInvocationFailed("transport down")
        return WorldAction(message="RESULT: 4")


class CaptureTelemetryClient(TelemetryClient):
    def __init__(self) -> None:
        self.spans: list[tuple[str, dict]] = []

    def emit_span(self, name: str, attributes: dict) -> None:
        self.spans.append((name, attributes))


def write_suite(path, tasks):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(json.dumps(t) for t in tasks) + "\n", encoding="utf-8")
    return path


MATH_TASK = {"id": "1", "input": "What is 2 + 2?", "expected": "RESULT: 4", "eval_type": "includes"}
THETA = Theta(system_prompt="You are a helpful agent.")


def test_empty_suite_scores_zero(tmp_path):
    policy = StaticPolicy(WorldAction(message="anything"))
    assert ObjectiveEvaluator(policy, ReferenceSuite(None)).evaluate(THETA) == 0.0
    assert ObjectiveEvaluator(policy, ReferenceSuite(tmp_path / "absent.jsonl")).evaluate(THETA) == 0.0

    empty = tmp_path / "empty.jsonl"
    empty.write_text("\n", encoding="utf-8")
    assert ObjectiveEvaluator(policy, ReferenceSuite(empty)).evaluate(THETA) == 0.0


def test_math_task_passes_with_prefixed_answer(tmp_path):
    suite = ReferenceSuite(write_suite(tmp_path / "R" / "tasks.jsonl", [MATH_TASK]))
    policy = StaticPolicy(WorldAction(message="RESULT: 4"))
    assert ObjectiveEvaluator(policy, suite).evaluate(THETA) == 1.0


def test_math_task_fails_without_prefix(tmp_path):
    suite = ReferenceSuite(write_suite(tmp_path / "R" / "tasks.jsonl", [MATH_TASK]))
    policy = StaticPolicy(WorldAction(message="4"))
    assert ObjectiveEvaluator(policy, suite).evaluate(THETA) == 0.0


def test_non_world_actions_never_pass(tmp_path):
    suite = ReferenceSuite(write_suite(tmp_path / "tasks.jsonl", [MATH_TASK]))
    assert ObjectiveEvaluator(StaticPolicy(MemAction(note="RESULT: 4")), suite).evaluate(THETA) == 0.0
    assert ObjectiveEvaluator(StaticPolicy(WorldAction(message="")), suite).evaluate(THETA) == 0.0


def test_policy_failure_fails_only_that_task(tmp_path):
    tasks = [MATH_TASK, {"id": "2", "input": "boom", "expected": "RESULT"}]
    suite = ReferenceSuite(write_suite(tmp_path / "tasks.jsonl", tasks))
    report = ObjectiveEvaluator(FlakyPolicy(), suite).run(THETA)

    assert report.score == 0.5
    failed = [r for r in report.results if not r.passed]
    assert [r.task_id for r in failed] == ["2"]
    assert "transport down" in failed[0].error


def test_evaluation_uses_empty_memory_window(tmp_path):
    suite = ReferenceSuite(write_suite(tmp_path / "tasks.jsonl", [MATH_TASK, MATH_TASK]))
    policy = StaticPolicy(WorldAction(message="RESULT: 4"))
    ObjectiveEvaluator(policy, suite).evaluate(THETA)
    assert policy.windows == [(), ()]


def test_corrupt_suite_raises(tmp_path):
    path = tmp_path / "tasks.jsonl"
    path.write_text(json.dumps(MATH_TASK) + "\n{broken\n", encoding="utf-8")
    with pytest.raises(ReferenceSuiteCorrupt):
        ReferenceSuite(path).load_suite()


def test_evaluator_emits_span(tmp_path):
    telemetry = CaptureTelemetryClient()
    suite = ReferenceSuite(write_suite(tmp_path / "tasks.jsonl", [MATH_TASK]))
    ObjectiveEvaluator(StaticPolicy(WorldAction(message="RESULT: 4")), suite, telemetry=telemetry).evaluate(THETA)

    name, attrs = telemetry.spans[-1]
    assert name == "gem.evaluate"
    assert attrs["task_count"] == 1
    assert attrs["score"] == 1.0
    assert attrs["success"] is True


def test_grade_output_rules():
    exact = Task(id="e", input="i", expected="RESULT: Hello world.", eval_type="exact")
    assert grade_output(exact, "  RESULT: Hello world.\n")
    assert not grade_output(exact, "RESULT: Hello world. Bye")

    regex = Task(id="r", input="i", expected="^RESULT: All systems", eval_type="regex")
    assert grade_output(regex, "RESULT: All systems nominal.")
    assert not grade_output(regex, "Status: RESULT: All systems")

    includes = Task(id="c", input="i", expected="RESULT: 4")
    assert grade_output(includes, "The answer is RESULT: 4!")


def test_invalid_regex_counts_as_failure(tmp_path):
    task = {"id": "bad", "input": "x", "expected": "([", "eval_type": "regex"}
    suite = ReferenceSuite(write_suite(tmp_path / "tasks.jsonl", [task]))
    report = ObjectiveEvaluator(StaticPolicy(WorldAction(message="([")), suite).run(THETA)
    assert report.score == 0.0
    assert report.results[0].error


def test_describe_tasks_hides_grading_details():
    tasks = [Task(id="1", input="q", expected="a", eval_type="regex")]
    assert describe_tasks(tasks) == [{"input": "q", "expected": "a"}]


class MappingPolicy:
    def __init__(self, message):
        self.message = message

    def invoke(self, theta, memory_window, observation, reference_tasks=()):
        return {"type": "world", "message": self.message}


@pytest.mark.parametrize("message, expected_score", [("4", 1.0), ("5", 0.0)])
def test_mapping_policy_output_is_graded_like_actions(tmp_path, message, expected_score):
    task = {"id": "1", "input": "What is 2 + 2?", "expected": "4", "eval_type": "includes"}
    suite = ReferenceSuite(write_suite(tmp_path / "tasks.jsonl", [task]))
    evaluator = ObjectiveEvaluator(MappingPolicy(message), suite)
    assert evaluator.evaluate(Theta(system_prompt="plain")) == expected_score


def test_suite_with_undecodable_bytes_raises(tmp_path):
    path = tmp_path / "tasks.jsonl"
    path.write_bytes(json.dumps(MATH_TASK).encode("utf-8") + b"\n\xff\xfe\n")
    with pytest.raises(ReferenceSuiteCorrupt):
        ReferenceSuite(path).load_suite()
