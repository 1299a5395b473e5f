"""
Prompt Engineering - Policy prompt composition

WHAT: Prompt template and composition for model-backed policies
WHERE: gem/runtime/agent/prompting.py - prompt generation layer
WHO: OpenAI and local-model policies building their request text
TIME: Prompt assembly <1ms

The prompt is a pure function of the configuration, the recent memory
window, the current observation and the reference tasks. Reference tasks are
shown as input/expected pairs so the policy can aim its configuration
proposals at the objective it is scored on.
"""

from __future__ import annotations

import json
from typing import Sequence

from .models import MemoryEntry, Task, Theta
from .reference import describe_tasks

PROMPT_MEMORY_LIMIT = 3

POLICY_PROMPT_TEMPLATE = """
You are an agent with the following configuration:
{configuration}

Recent Memory:
{memory}

Current Observation:
{observation}

Reference Tasks (Performance Goals):
The following are the tasks you are evaluated on. Use this information to guide your configuration updates.
{reference_tasks}

You must respond with a JSON object representing your action.
Available Action Types:
1. "world": Interact with the user or environment.
   {{ "type": "world", "message": "string" }}
2. "mem": Write to memory.
   {{ "type": "mem", "note": "string" }}
3. "sys": Propose a configuration update.
   {{ "type": "sys", "patch": {{ ...partial configuration... }} }}

Respond ONLY with the JSON object.
"""


def compose_policy_prompt(
    *,
    theta: Theta,
    memory_window: Sequence[MemoryEntry],
    observation: str,
    reference_tasks: Sequence[Task] = (),
    memory_limit: int = PROMPT_MEMORY_LIMIT,
) -> str:
    recent = list(memory_window)[-memory_limit:] if memory_limit > 0 else []
    return POLICY_PROMPT_TEMPLATE.format(
        configuration=json.dumps(theta.to_document(), indent=2, ensure_ascii=False),
        memory=json.dumps([m.model_dump(mode="json") for m in recent], ensure_ascii=False),
        observation=observation,
        reference_tasks=json.dumps(describe_tasks(reference_tasks), indent=2, ensure_ascii=False),
    )


__all__ = [
    "POLICY_PROMPT_TEMPLATE",
    "PROMPT_MEMORY_LIMIT",
    "compose_policy_prompt",
]
