"""
Model Engine - Local Hugging Face model policy

WHAT: Model loading and generation wrapper for an in-process causal LM
WHERE: gem/runtime/agent/model_engine.py - manages model resources and generation
WHO: Control loop and evaluator when settings select ``policy=local``
TIME: Load once at startup; generation dominated by model size and device

Heavy packages (``transformers``, ``accelerate``, ``torch``) are imported
lazily so the rest of the runtime never requires them. Asking for generation
before ``load()`` raises ``ModelNotLoadedError``.

Boundary Notes:
- Generation errors surface as ``PolicyInvocationFailed`` from the policy
- Decoding of model text is shared with the network policy
"""

from __future__ import annotations

import importlib
import logging
from dataclasses import dataclass
from typing import Any, Dict, Sequence

from .errors import GEMError, PolicyInvocationFailed
from .models import MemoryEntry, PolicyDecision, Task, Theta
from .policy import decode_action
from .prompting import compose_policy_prompt

logger = logging.getLogger(__name__)


class ModelNotLoadedError(PolicyInvocationFailed):
    """Raised when generation is attempted before the model is loaded."""


class MissingDependencyError(GEMError):
    """Raised when required model packages are unavailable in the environment."""


REQUIRED_PACKAGES = ("transformers", "accelerate")


@dataclass(slots=True)
class LocalModelConfig:
    """Configuration for the in-process model."""

    model_id: str = "Qwen/Qwen2.5-1.5B-Instruct"
    device: str = "cpu"
    dtype: str = "float32"
    max_new_tokens: int = 512
    temperature: float = 0.7
    top_p: float = 0.9
    trust_remote_code: bool = False


class LocalModelEngine:
    """Handles loading and generation for a local causal language model."""

    def __init__(self, config: LocalModelConfig | None = None) -> None:
        self.config = config or LocalModelConfig()
        self._tokenizer = None
        self._model = None
        self._generation_kwargs: Dict[str, Any] = {}
        self._modules: Dict[str, Any] = {}

    @staticmethod
    def dependencies_available() -> bool:
        for package in REQUIRED_PACKAGES:
            try:
                importlib.import_module(package)
            except ImportError:
                return False
        return True

    def _ensure_dependencies(self) -> None:
        missing: list[str] = []
        modules = {}
        for package in REQUIRED_PACKAGES:
            try:
                modules[package] = importlib.import_module(package)
            except ImportError:
                missing.append(package)

        if missing:
            raise MissingDependencyError(
                "Missing model dependencies: "
                + ", ".join(missing)
                + ". Install with `pip install gem-agent[local]`."
            )
        self._modules = modules

    def load(self) -> None:
        """Load tokenizer and model into memory."""

        self._ensure_dependencies()
        transformers = self._modules["transformers"]
        try:
            import torch
        except ImportError:
            torch = None  # type: ignore[assignment]

        model_id = self.config.model_id
        logger.info("Loading local model %s on %s", model_id, self.config.device)
        self._tokenizer = transformers.AutoTokenizer.from_pretrained(
            model_id, trust_remote_code=self.config.trust_remote_code
        )

        dtype = None
        if torch is not None:
            dtype = getattr(torch, self.config.dtype, None)
        self._model = transformers.AutoModelForCausalLM.from_pretrained(
            model_id,
            torch_dtype=dtype,
            trust_remote_code=self.config.trust_remote_code,
        )
        self._model.to(self.config.device)

        self._generation_kwargs = {
            "max_new_tokens": self.config.max_new_tokens,
            "temperature": self.config.temperature,
            "top_p": self.config.top_p,
            "do_sample": self.config.temperature > 0,
        }

    def is_loaded(self) -> bool:
        return self._model is not None and self._tokenizer is not None

    def generate(self, prompt: str, **overrides: Any) -> str:
        if not self.is_loaded():
            raise ModelNotLoadedError("Local model is not loaded; call load() first")

        tokenizer = self._tokenizer
        model = self._model
        kwargs = dict(self._generation_kwargs)
        kwargs.update(overrides)

        if getattr(tokenizer, "chat_template", None):
            prompt = tokenizer.apply_chat_template(
                [{"role": "user", "content": prompt}],
                tokenize=False,
                add_generation_prompt=True,
            )

        try:
            model_device = model.device  # type: ignore[attr-defined]
        except AttributeError:  # sharded models may not expose .device
            model_device = next(model.parameters()).device  # type: ignore[call-arg]

        input_ids = tokenizer(prompt, return_tensors="pt").to(model_device)
        output_ids = model.generate(**input_ids, **kwargs)
        response = tokenizer.decode(output_ids[0][input_ids["input_ids"].shape[-1] :], skip_special_tokens=True)
        return response.strip()


class LocalModelPolicy:
    """Policy backed by a ``LocalModelEngine``."""

    def __init__(self, engine: LocalModelEngine | None = None, *, auto_load: bool = False) -> None:
        self.engine = engine or LocalModelEngine()
        if auto_load and not self.engine.is_loaded():
            self.engine.load()

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
        try:
            text = self.engine.generate(prompt)
        except ModelNotLoadedError:
            raise
        except Exception as exc:
            logger.error("Local model generation failed: %s", exc, exc_info=True)
            raise PolicyInvocationFailed(f"local generation failed: {exc}") from exc
        return decode_action(text)


__all__ = [
    "LocalModelConfig",
    "LocalModelEngine",
    "LocalModelPolicy",
    "MissingDependencyError",
    "ModelNotLoadedError",
]
