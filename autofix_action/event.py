#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
===============================================================================
Autofix‑Action ▸ Triggering event
===============================================================================

The CI platform hands us the event that started the workflow as a JSON file
(`$GITHUB_EVENT_PATH`). We only need three facts from it:

* repository owner login and repository name,
* either the pull‑request number **or** the pushed ref.

Exactly one of `PullRequestTarget` / `BranchTarget` is produced per run; it
decides both whether the PR‑head reconciliation runs and which query
parameter the fixer URL carries.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Union

from autofix_action import get_logger
from autofix_action.errors import ConfigurationError

log = get_logger(__name__)

BRANCH_REF_PREFIX = "refs/heads/"


@dataclass(frozen=True)
class PullRequestTarget:
    number: int

    @property
    def head_refspec(self) -> str:
        """Forced refspec for the PR's current head in the pull‑ref namespace."""
        return f"+refs/pull/{self.number}/head"


@dataclass(frozen=True)
class BranchTarget:
    name: str

    @classmethod
    def from_ref(cls, ref: str) -> "BranchTarget":
        """Build from a full ref, dropping a leading ``refs/heads/``."""
        if ref.startswith(BRANCH_REF_PREFIX):
            ref = ref[len(BRANCH_REF_PREFIX):]
        return cls(ref)


Target = Union[PullRequestTarget, BranchTarget]


@dataclass(frozen=True)
class RunContext:
    owner: str
    repo: str
    target: Target

    @property
    def is_pull_request(self) -> bool:
        return isinstance(self.target, PullRequestTarget)


def parse_event(event: Dict[str, Any]) -> RunContext:
    """
    Extract the run context from a decoded event document.

    Raises
    ------
    ConfigurationError
        If a required field is missing or has the wrong shape.
    """
    try:
        repository = event["repository"]
        owner = str(repository["owner"]["login"])
        repo = str(repository["name"])
    except (KeyError, TypeError) as exc:
        raise ConfigurationError(f"Event payload lacks repository owner/name: {exc}") from exc

    pull_request = event.get("pull_request")
    if pull_request:
        try:
            target: Target = PullRequestTarget(int(pull_request["number"]))
        except (KeyError, TypeError, ValueError) as exc:
            raise ConfigurationError(f"Event payload has an invalid pull_request.number: {exc}") from exc
    else:
        ref = event.get("ref")
        if not isinstance(ref, str) or not ref:
            raise ConfigurationError("Event payload has neither pull_request nor ref.")
        target = BranchTarget.from_ref(ref)

    return RunContext(owner=owner, repo=repo, target=target)


def load_event(path: Path) -> RunContext:
    """Read and parse the event JSON file at *path*."""
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"Cannot read event payload {path}: {exc}") from exc
    try:
        event = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Event payload {path} is not valid JSON: {exc}") from exc
    log.debug("Event payload: %s", json.dumps(event, indent=2, sort_keys=True))
    if not isinstance(event, dict):
        raise ConfigurationError(f"Event payload {path} is not a JSON object.")
    return parse_event(event)
