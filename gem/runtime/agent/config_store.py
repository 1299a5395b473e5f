"""
Configuration Store - Persistence for the agent configuration (theta)

WHAT: Load, persist and patch the versioned agent configuration
WHERE: gem/runtime/agent/config_store.py - single JSON document on disk
WHO: Session bootstrap (load) and the control loop commit step (save)
TIME: Load/save <5ms for typical configurations

The store owns the canonical in-memory copy. There is no implicit default:
a missing document is fatal at startup. Saves are total overwrites; the config
log, not the file, is the version history.

Boundary Notes:
- Writes go through a temporary sibling file and an atomic rename
- ``patch`` is pure and delegates to ``models.apply_patch``
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

from pydantic import ValidationError

from .errors import ConfigCorrupt, ConfigMissing
from .models import Patch, Theta, apply_patch

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ConfigStore:
    """JSON-file backed configuration store."""

    path: Path
    _current: Optional[Theta] = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        self.path = Path(self.path)

    @property
    def current(self) -> Optional[Theta]:
        """Last configuration loaded or saved through this store."""
        return self._current

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> Theta:
        if not self.exists():
            raise ConfigMissing(f"Theta config not found at {self.path}")
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ConfigCorrupt(f"Theta config at {self.path} is not valid JSON: {exc}") from exc
        try:
            theta = Theta.model_validate(raw)
        except ValidationError as exc:
            raise ConfigCorrupt(f"Theta config at {self.path} is invalid: {exc}") from exc
        self._current = theta
        logger.info("Loaded configuration from %s (%d tools)", self.path, len(theta.tools))
        return theta

    def save(self, theta: Theta) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(theta.to_document(), indent=2, ensure_ascii=False)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
                fh.write("\n")
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        self._current = theta
        logger.info("Persisted configuration to %s", self.path)

    @staticmethod
    def patch(base: Theta, patch: Patch | Mapping[str, Any]) -> Theta:
        return apply_patch(base, patch)


__all__ = ["ConfigStore"]
