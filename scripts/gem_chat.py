#!/usr/bin/env python3
"""
Module: scripts/gem_chat.py
Summary: Interactive GEM agent loop with self-modifying configuration.
Inputs: GEM_* env (paths, policy, commit rule); CLI flags
Outputs: Actions printed to stdout; memory, theta and config log written under GEM_HOME
Data-Contracts: theta.json, memory/episodes.jsonl, R/tasks.jsonl, memory/config_log.jsonl
Related: gem/runtime/agent/*, gem/config/settings.py

Usage:
  python scripts/gem_chat.py
  python scripts/gem_chat.py --home data --policy openai --telemetry

Environment:
  - GEM_HOME, GEM_THETA_PATH, GEM_MEMORY_PATH, GEM_REFERENCE_PATH, GEM_CONFIG_LOG_PATH
  - GEM_POLICY, GEM_COMMIT_RULE, GEM_RECENT_WINDOW, GEM_LOG_LEVEL
  - GEM_OPENAI_* / GEM_LOCAL_* (see gem/config/settings.py)
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from gem.config import POLICY_KINDS, resolve_settings
from gem.logging import configure_logging
from gem.runtime.agent import (
    AgentSession,
    ConfigCorrupt,
    ConfigMissing,
    ConsoleTelemetryClient,
    GEMError,
)
from gem.runtime.agent.executive import COMMIT_RULES

PROMPT = "\nUser (or 'exit'): "


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Run the GEM agent interactively")
    p.add_argument("--home", default=None, help="Data directory (default: $GEM_HOME or ./data)")
    p.add_argument("--policy", choices=POLICY_KINDS, default=None, help="Policy backend override")
    p.add_argument("--commit-rule", choices=COMMIT_RULES, default=None, help="Commit rule override")
    p.add_argument("--log-level", default=None, help="Logging level override")
    p.add_argument("--telemetry", action="store_true", help="Log telemetry spans")
    return p.parse_args()


def read_line() -> Optional[str]:
    try:
        return input(PROMPT).strip()
    except EOFError:
        print()
        return None


def main() -> int:
    args = parse_args()
    overrides = {}
    if args.policy:
        overrides["policy"] = args.policy
    if args.commit_rule:
        overrides["commit_rule"] = args.commit_rule
    if args.log_level:
        overrides["log_level"] = args.log_level.upper()

    try:
        settings = resolve_settings(args.home, **overrides)
    except ValueError as exc:
        print(f"[error] invalid settings: {exc}")
        return 2
    configure_logging(settings.log_level)

    telemetry = ConsoleTelemetryClient() if args.telemetry else None
    try:
        session = AgentSession.from_settings(settings, telemetry=telemetry, emit=print)
    except (ConfigMissing, ConfigCorrupt) as exc:
        print(f"[error] {exc}")
        return 1
    except GEMError as exc:
        print(f"[error] failed to start agent: {exc}")
        return 1

    print("GEM Agent Initialized.")
    print(f"Current System Prompt: {session.orchestrator.theta.system_prompt}")
    iterations = session.orchestrator.run(read_line)
    print(f"[chat] exiting after {iterations} turns")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
