#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
===============================================================================
Autofix‑Action ▸ Security gate & forbidden‑path validator
===============================================================================

Two cheap checks that run before anything expensive:

* `check_workflow(name)` – the fixer service trusts requests on repository
  identity alone, so the action only runs inside a workflow with one fixed
  name. A differently named workflow usually carries different permissions.
* `check_forbidden_paths(paths)` – refuse change‑sets that touch the CI
  configuration directory. The server enforces the same rule; doing it here
  just gives a clearer message.
"""
from __future__ import annotations

from pathlib import PurePosixPath
from typing import Iterable, List, Optional

from autofix_action import get_logger
from autofix_action.errors import ConfigurationError, ForbiddenPathError

log = get_logger(__name__)

REQUIRED_WORKFLOW_NAME = "autofix.ci"
FORBIDDEN_DIR = ".github"


def check_workflow(name: Optional[str]) -> None:
    """Raise ConfigurationError unless *name* is exactly the required workflow name."""
    if name != REQUIRED_WORKFLOW_NAME:
        log.debug("Rejecting workflow name %r", name)
        raise ConfigurationError(
            "For security reasons, the workflow in which the autofix.ci action "
            f'is used must be named "{REQUIRED_WORKFLOW_NAME}".'
        )


def forbidden_paths(paths: Iterable[str]) -> List[str]:
    """Return the paths that lie inside the forbidden directory (any depth)."""
    return [p for p in paths if FORBIDDEN_DIR in PurePosixPath(p).parts]


def check_forbidden_paths(paths: Iterable[str]) -> None:
    """Raise ForbiddenPathError if any path lies within the .github directory."""
    bad = forbidden_paths(paths)
    if bad:
        log.error("Refusing to touch %d protected path(s): %s", len(bad), ", ".join(bad))
        raise ForbiddenPathError(
            f"The autofix.ci action is not allowed to modify the {FORBIDDEN_DIR} directory.",
            bad,
        )
