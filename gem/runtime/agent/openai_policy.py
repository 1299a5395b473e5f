"""
OpenAI Policy - Network-backed action selection

WHAT: Chat-completions policy using the ``openai`` SDK
WHERE: gem/runtime/agent/openai_policy.py - production inference path
WHO: Control loop and evaluator when settings select ``policy=openai``
TIME: One network round trip per invocation (seconds)

The whole policy prompt is sent as a single user message. Transport and API
errors surface as ``PolicyInvocationFailed``; malformed model output is
decoded into a diagnostic ``world`` action by ``decode_action``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional, Sequence

import openai

from .errors import PolicyInvocationFailed
from .models import MemoryEntry, PolicyDecision, Task, Theta
from .policy import decode_action
from .prompting import compose_policy_prompt

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class OpenAIPolicyConfig:
    model: str = "gpt-4o-mini"
    temperature: float = 0.7
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    timeout: Optional[float] = 60.0


class OpenAIPolicy:
    """Policy that asks a chat model for the next JSON action."""

    def __init__(self, config: OpenAIPolicyConfig | None = None, *, client: Any | None = None) -> None:
        self.config = config or OpenAIPolicyConfig()
        if client is None:
            try:
                client = openai.OpenAI(
                    api_key=self.config.api_key,
                    base_url=self.config.base_url,
                    timeout=self.config.timeout,
                )
            except openai.OpenAIError as exc:
                raise PolicyInvocationFailed(f"Failed to initialize OpenAI client: {exc}") from exc
            logger.info("OpenAI client initialized (model=%s)", self.config.model)
        self._client = client

    def invoke(
        self,
        theta: Theta,
        memory_window: Sequence[MemoryEntry],
        observation: str,
        reference_tasks: Sequence[Task] = (),
    ) -> PolicyDecision:
        prompt = compose_policy_prompt(
            theta=theta,
            memory_window=memory_window,
            observation=observation,
            reference_tasks=reference_tasks,
        )
        logger.debug("OpenAI prompt (%d chars) for observation %.80r", len(prompt), observation)
        try:
            completion = self._client.chat.completions.create(
                model=self.config.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self.config.temperature,
            )
        except openai.APIError as exc:
            logger.error("OpenAI API Error (model: %s): %s", self.config.model, exc)
            raise PolicyInvocationFailed(f"OpenAI API error: {exc}") from exc
        except openai.OpenAIError as exc:
            logger.error("OpenAI client error (model: %s): %s", self.config.model, exc)
            raise PolicyInvocationFailed(f"OpenAI client error: {exc}") from exc

        try:
            content = completion.choices[0].message.content
        except (AttributeError, IndexError):
            logger.warning("OpenAI call to %s returned an unexpected structure", self.config.model)
            content = None
        return decode_action(content)


__all__ = [
    "OpenAIPolicy",
    "OpenAIPolicyConfig",
]
