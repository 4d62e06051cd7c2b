#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
===============================================================================
Autofix‑Action ▸ CI platform plumbing (GitHub Actions)
===============================================================================

The handful of runner interactions the action needs, done the way the Actions
toolkit does them:

* get_input(name)        – `INPUT_<NAME>` env var, upper‑cased, spaces → `_`,
                            trimmed; empty string when unset.
* set_output(name, val)  – append to `$GITHUB_OUTPUT` (heredoc file command).
* set_failed(message)    – emit an `::error::` workflow command; the caller
                            returns the non‑zero exit status.
* is_debug()             – runner debug logging enabled (`RUNNER_DEBUG=1`).
* echo(text)             – write a block of text to the run log (stdout).
"""
from __future__ import annotations

import os
import sys
import uuid
from typing import Mapping, Optional

from autofix_action import get_logger

log = get_logger(__name__)


def _env(environ: Optional[Mapping[str, str]]) -> Mapping[str, str]:
    return os.environ if environ is None else environ


def get_input(name: str, environ: Optional[Mapping[str, str]] = None) -> str:
    key = f"INPUT_{name.replace(' ', '_').upper()}"
    return _env(environ).get(key, "").strip()


def is_debug(environ: Optional[Mapping[str, str]] = None) -> bool:
    return _env(environ).get("RUNNER_DEBUG") == "1"


def _escape_data(value: str) -> str:
    return value.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


def _to_command_value(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return "" if value is None else str(value)


def set_output(name: str, value: object, environ: Optional[Mapping[str, str]] = None) -> None:
    """
    Record a step output.

    Values always use the heredoc form with a random delimiter so multi‑line
    values cannot break the file format.
    """
    text = _to_command_value(value)
    path = _env(environ).get("GITHUB_OUTPUT")
    if not path:
        log.debug("GITHUB_OUTPUT not set; output %s=%s not recorded", name, text)
        return
    delim = f"ghadelimiter_{uuid.uuid4()}"
    with open(path, "a", encoding="utf-8") as fh:
        fh.write(f"{name}<<{delim}\n{text}\n{delim}\n")
    log.debug("Output %s=%s", name, text)


def set_failed(message: str) -> None:
    """Mark the step as failed with *message* (exit status is the caller's job)."""
    sys.stdout.write(f"::error::{_escape_data(message)}\n")
    sys.stdout.flush()


def echo(text: str) -> None:
    sys.stdout.write(text if text.endswith("\n") else text + "\n")
    sys.stdout.flush()
