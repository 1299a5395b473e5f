"""
Agent Models - Type-safe data structures for the self-improvement loop

WHAT: Pydantic models for configuration, patches, actions, tasks and log records
WHERE: gem/runtime/agent/models.py - data layer
WHO: Stores, policies, evaluator and control loop exchanging agent state
TIME: Model validation <1ms

All models are frozen value objects. Configuration and Patch keep a fixed set
of known fields plus a bounded ``extensions`` map; on disk the extension keys
are flattened to the top level of the JSON document so older readers see a
plain record.

Action is a closed tagged union over ``world``, ``mem`` and ``sys``. Decoded
policy output that matches none of the three shapes exactly is carried as an
``UnrecognizedAction`` and rejected at dispatch.
"""

from __future__ import annotations

import copy
from datetime import datetime, timezone
from typing import Annotated, Any, Dict, Literal, Mapping, Optional, Tuple, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_serializer,
    model_validator,
)

EvalType = Literal["exact", "includes", "regex"]
EVAL_TYPES: Tuple[str, ...] = ("exact", "includes", "regex")


def utc_timestamp() -> str:
    """ISO 8601 UTC timestamp with a trailing ``Z``."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _split_extensions(data: Any, known: frozenset[str]) -> Any:
    if not isinstance(data, Mapping):
        return data
    extras = {k: v for k, v in data.items() if k not in known}
    if not extras:
        return data
    merged = dict(data.get("extensions") or {})
    merged.update(extras)
    out = {k: v for k, v in data.items() if k in known}
    out["extensions"] = merged
    return out


class Tool(BaseModel):
    """A callable capability advertised to the policy."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(min_length=1)
    signature: str = ""
    description: str = ""


class Theta(BaseModel):
    """
    The agent configuration.

    Examples:
    - ``{"system_prompt": "You are a helpful agent.", "tools": []}``
    - ``{"system_prompt": "...", "tools": [...], "temperature_hint": 0.2}``
      (``temperature_hint`` lands in ``extensions``)
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    system_prompt: str
    tools: Tuple[Tool, ...] = ()
    extensions: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _collect_extensions(cls, data: Any) -> Any:
        return _split_extensions(data, frozenset({"system_prompt", "tools", "extensions"}))

    @model_serializer(mode="wrap")
    def _flatten_extensions(self, handler) -> Dict[str, Any]:
        data = handler(self)
        extensions = data.pop("extensions", None) or {}
        return {**extensions, **data}

    def to_document(self) -> Dict[str, Any]:
        """Convert to the persisted JSON document."""
        return self.model_dump(mode="json")


class Patch(BaseModel):
    """Partial configuration proposed by a ``sys`` action."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    system_prompt: Optional[str] = None
    tools: Optional[Tuple[Tool, ...]] = None
    extensions: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _collect_extensions(cls, data: Any) -> Any:
        return _split_extensions(data, frozenset({"system_prompt", "tools", "extensions"}))

    @model_serializer(mode="wrap")
    def _flatten_extensions(self, handler) -> Dict[str, Any]:
        data = handler(self)
        extensions = data.pop("extensions", None) or {}
        present = {k: v for k, v in data.items() if v is not None}
        return {**extensions, **present}

    def is_empty(self) -> bool:
        return self.system_prompt is None and self.tools is None and not self.extensions


def apply_patch(base: Theta, patch: Patch | Mapping[str, Any]) -> Theta:
    """
    Shallow top-level merge of ``patch`` onto ``base``.

    Never mutates ``base``. A ``tools`` entry replaces the whole tool sequence;
    extension keys overwrite individually. An empty patch yields an equal
    configuration.
    """
    if not isinstance(patch, Patch):
        patch = Patch.model_validate(patch)

    update: Dict[str, Any] = {}
    if patch.system_prompt is not None:
        update["system_prompt"] = patch.system_prompt
    if patch.tools is not None:
        update["tools"] = tuple(patch.tools)
    extensions = copy.deepcopy(dict(base.extensions))
    extensions.update(copy.deepcopy(patch.extensions))
    update["extensions"] = extensions
    return base.model_copy(update=update)


class WorldAction(BaseModel):
    """Externally observable output."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: Literal["world"] = "world"
    message: str


class MemAction(BaseModel):
    """A note appended verbatim to episodic memory."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: Literal["mem"] = "mem"
    note: str


class SysAction(BaseModel):
    """A proposed configuration mutation, not yet applied."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: Literal["sys"] = "sys"
    patch: Patch


Action = Annotated[Union[WorldAction, MemAction, SysAction], Field(discriminator="type")]
ACTION_ADAPTER: TypeAdapter = TypeAdapter(Action)


class UnrecognizedAction(BaseModel):
    """Decoded policy output that is not one of the three action shapes."""

    model_config = ConfigDict(frozen=True)

    type: Optional[str] = None
    payload: Dict[str, Any] = Field(default_factory=dict)
    reason: str = ""


PolicyDecision = Union[WorldAction, MemAction, SysAction, UnrecognizedAction]


def parse_action(data: Any) -> PolicyDecision:
    """Validate decoded JSON into an Action, or an ``UnrecognizedAction``."""
    if not isinstance(data, Mapping):
        return UnrecognizedAction(reason=f"expected a JSON object, got {type(data).__name__}")
    try:
        return ACTION_ADAPTER.validate_python(dict(data))
    except ValidationError as exc:
        kind = data.get("type")
        return UnrecognizedAction(
            type=str(kind) if kind is not None else None,
            payload=dict(data),
            reason=f"{exc.error_count()} validation error(s)",
        )


class Task(BaseModel):
    """One graded probe of policy behaviour."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    input: str
    expected: str
    eval_type: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @property
    def grading_rule(self) -> EvalType:
        """Absent or unknown ``eval_type`` grades as ``includes``."""
        if self.eval_type in ("exact", "regex"):
            return self.eval_type  # type: ignore[return-value]
        return "includes"


class MemoryEntry(BaseModel):
    """Immutable episodic record; kind-specific fields ride along as extras."""

    model_config = ConfigDict(frozen=True, extra="allow")

    timestamp: str
    type: str


class ConfigLogEntry(BaseModel):
    """Audit record for one evaluated patch."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    timestamp: str = Field(default_factory=utc_timestamp)
    theta_before: Theta
    theta_after: Theta
    j_before: float
    j_after: float
    committed: bool


__all__ = [
    "Action",
    "ACTION_ADAPTER",
    "ConfigLogEntry",
    "EVAL_TYPES",
    "EvalType",
    "MemAction",
    "MemoryEntry",
    "Patch",
    "PolicyDecision",
    "SysAction",
    "Task",
    "Theta",
    "Tool",
    "UnrecognizedAction",
    "WorldAction",
    "apply_patch",
    "parse_action",
    "utc_timestamp",
]
