#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
===============================================================================
Autofix‑Action ▸ Command Line Interface
===============================================================================

Subcommands
-----------
• run        – detect changes in the workspace and dispatch them to autofix.ci
• validate   – validate a payload JSON file against the bundled schema
• schema     – print the active payload JSON schema
• version    – print package version

Global flags
------------
• --version  – print package version (equivalent to the `version` subcommand)

Examples
--------
  # Inside the "autofix.ci" workflow, after the formatters have run
  autofix-action run

  # Explicit workspace / event (useful when reproducing a run locally)
  autofix-action run --repo . --event-path ./event.json

  # Check an uploaded payload
  autofix-action validate ./autofix.json

Exit status
-----------
0 when there is nothing to do, 1 otherwise (including a successfully
dispatched fix, which must keep the check red until the fix lands).
"""
from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path
from typing import Optional

from autofix_action import actions, get_logger, get_version
from autofix_action.artifact import ResultsServiceUploader
from autofix_action.dispatch import FixerClient
from autofix_action.errors import AutofixError
from autofix_action.event import load_event
from autofix_action.git_ops import GitOps
from autofix_action.packager import SCHEMA, RunConfig, validate_payload
from autofix_action.runner import OUTPUT_AUTOFIX_STARTED, AutofixRun, Outcome, clean_message

log = get_logger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Subcommand handlers
# ─────────────────────────────────────────────────────────────────────────────
def _cmd_run(ns: argparse.Namespace) -> int:
    repo = Path(ns.repo or os.getenv("GITHUB_WORKSPACE") or ".")
    event_path = ns.event_path or os.getenv("GITHUB_EVENT_PATH")
    debug = actions.is_debug()

    try:
        if not event_path:
            raise AutofixError("GITHUB_EVENT_PATH is not set; pass --event-path.")
        context = load_event(Path(event_path))
        result = AutofixRun(
            workflow=os.getenv("GITHUB_WORKFLOW"),
            context=context,
            config=RunConfig.from_inputs(),
            git=GitOps(repo),
            uploader=ResultsServiceUploader.from_env(),
            fixer=FixerClient(),
            debug=debug,
        ).run()
    except AutofixError as exc:
        actions.set_output(OUTPUT_AUTOFIX_STARTED, False)
        actions.set_failed(clean_message(str(exc)))
        return 1
    except Exception as exc:
        log.exception("Unhandled error: %s", exc)
        actions.set_failed(clean_message(str(exc)))
        return 1

    if result.outcome is Outcome.NOTHING_TO_DO:
        log.info("%s", result.message)
        return 0
    if result.outcome is Outcome.FAILED:
        log.error("Step %r failed: %s", result.step, result.message)
    actions.set_failed(result.message)
    return 1


def _cmd_validate(ns: argparse.Namespace) -> int:
    try:
        payload = json.loads(Path(ns.file).read_text(encoding="utf-8"))
        validate_payload(payload)
    except (OSError, json.JSONDecodeError, AutofixError) as exc:
        print(f"INVALID: {exc}", file=sys.stderr)
        return 1
    adds = len(payload["changes"]["additions"])
    dels = len(payload["changes"]["deletions"])
    print(f"OK: {adds} addition(s), {dels} deletion(s)")
    return 0


def _cmd_schema(_: argparse.Namespace) -> int:
    print(json.dumps(SCHEMA, indent=2))
    return 0


def _cmd_version(_: argparse.Namespace) -> int:
    print(get_version())
    return 0


# ─────────────────────────────────────────────────────────────────────────────
# Parser
# ─────────────────────────────────────────────────────────────────────────────
def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="autofix-action",
        description="Send formatter/linter changes made in CI to autofix.ci.",
    )
    p.add_argument("--version", action="store_true", help="Print package version and exit.")
    sub = p.add_subparsers(dest="cmd")

    run = sub.add_parser("run", help="Detect changes and dispatch an autofix job.")
    run.add_argument("--repo", help="Repository working tree (default: $GITHUB_WORKSPACE or .).")
    run.add_argument("--event-path", help="Event JSON file (default: $GITHUB_EVENT_PATH).")
    run.set_defaults(func=_cmd_run)

    val = sub.add_parser("validate", help="Validate a payload file against the schema.")
    val.add_argument("file", help="Path to an autofix.json payload.")
    val.set_defaults(func=_cmd_validate)

    sch = sub.add_parser("schema", help="Print the payload JSON schema.")
    sch.set_defaults(func=_cmd_schema)

    ver = sub.add_parser("version", help="Print package version.")
    ver.set_defaults(func=_cmd_version)
    return p


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    ns = parser.parse_args(argv)
    if ns.version:
        return _cmd_version(ns)
    if not getattr(ns, "func", None):
        parser.print_help()
        return 2
    return ns.func(ns)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
