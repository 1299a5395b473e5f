import pytest
from pydantic import ValidationError

from gem.runtime.agent.models import (
    MemAction,
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


def make_theta(**extra):
    return Theta.model_validate(
        {
            "system_prompt": "You are a helpful agent.",
            "tools": [{"name": "world", "signature": "world(message: str)"}],
            **extra,
        }
    )


def test_empty_patch_yields_equal_configuration():
    theta = make_theta(temperature_hint=0.2)
    assert apply_patch(theta, {}) == theta
    assert apply_patch(theta, Patch()) == theta


def test_patch_replaces_tools_wholesale():
    theta = make_theta()
    tools = [{"name": "search"}, {"name": "calc", "description": "adds numbers"}]
    patched = apply_patch(theta, {"tools": tools})

    assert [t.name for t in patched.tools] == ["search", "calc"]
    assert patched.system_prompt == theta.system_prompt
    # base untouched
    assert [t.name for t in theta.tools] == ["world"]


def test_patch_overwrites_extension_keys_individually():
    theta = make_theta(style="terse", nested={"a": 1})
    patched = apply_patch(theta, {"style": "verbose", "max_steps": 3})

    assert patched.extensions == {"style": "verbose", "nested": {"a": 1}, "max_steps": 3}
    assert theta.extensions["style"] == "terse"


def test_extensions_flatten_on_serialization():
    theta = make_theta(temperature_hint=0.2)
    doc = theta.to_document()

    assert doc["temperature_hint"] == 0.2
    assert "extensions" not in doc
    assert Theta.model_validate(doc) == theta


def test_theta_requires_system_prompt():
    with pytest.raises(ValidationError):
        Theta.model_validate({"tools": []})


def test_tool_requires_name():
    with pytest.raises(ValidationError):
        Tool(name="")


def test_patch_dump_omits_absent_fields():
    patch = Patch.model_validate({"system_prompt": "new"})
    assert patch.model_dump(mode="json") == {"system_prompt": "new"}
    assert not patch.is_empty()
    assert Patch().is_empty()


def test_parse_action_variants():
    assert parse_action({"type": "world", "message": "hi"}) == WorldAction(message="hi")
    assert parse_action({"type": "mem", "note": "x"}) == MemAction(note="x")

    sys_action = parse_action({"type": "sys", "patch": {"system_prompt": "p"}})
    assert isinstance(sys_action, SysAction)
    assert sys_action.patch.system_prompt == "p"


@pytest.mark.parametrize(
    "payload, kind",
    [
        ({"type": "dance"}, "dance"),
        ({"type": "world"}, "world"),
        ({"type": "world", "message": "hi", "extra": 1}, "world"),
        ({"message": "hi"}, None),
    ],
)
def test_parse_action_rejects_malformed_shapes(payload, kind):
    action = parse_action(payload)
    assert isinstance(action, UnrecognizedAction)
    assert action.type == kind


def test_parse_action_rejects_non_objects():
    action = parse_action(["world", "hi"])
    assert isinstance(action, UnrecognizedAction)
    assert action.type is None


def test_task_grading_rule_defaults_to_includes():
    assert Task(id="t", input="i", expected="e").grading_rule == "includes"
    assert Task(id="t", input="i", expected="e", eval_type="fuzzy").grading_rule == "includes"
    assert Task(id="t", input="i", expected="e", eval_type="exact").grading_rule == "exact"


def test_task_id_accepts_numbers():
    assert Task.model_validate({"id": 7, "input": "i", "expected": "e"}).id == "7"
