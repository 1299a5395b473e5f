#!/usr/bin/env python3
"""
Module: scripts/verify_gem.py
Summary: One-shot check that the configured policy yields world and sys actions
  and that one evaluate-and-commit cycle reports both scores.
Inputs: GEM_* env; CLI flags
Outputs: Progress on stdout; one config log entry; exit code 0 on success, 1 on failure

Usage:
  python scripts/verify_gem.py
  python scripts/verify_gem.py --home /tmp/gem --policy rule
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from gem.config import POLICY_KINDS, resolve_settings
from gem.logging import configure_logging
from gem.runtime.agent import AgentSession, GEMError, run_verification


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Verify GEM components end to end")
    p.add_argument("--home", default=None, help="Data directory (default: $GEM_HOME or ./data)")
    p.add_argument("--policy", choices=POLICY_KINDS, default=None, help="Policy backend override")
    return p.parse_args()


def main() -> int:
    args = parse_args()
    overrides = {"policy": args.policy} if args.policy else {}
    try:
        settings = resolve_settings(args.home, **overrides)
    except ValueError as exc:
        print(f"[error] invalid settings: {exc}")
        return 2
    configure_logging(settings.log_level)

    print("Verifying GEM components...")
    try:
        session = AgentSession.from_settings(settings, emit=print)
        report = run_verification(session, report=print)
    except GEMError as exc:
        print(f"[fail] {exc}")
        return 1

    verdict = "committed" if report.commit.committed else "rejected"
    print(f"[ok] verification passed; patch {verdict}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
