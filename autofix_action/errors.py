#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
===============================================================================
Autofix‑Action ▸ Error taxonomy
===============================================================================

Every failure the pipeline knows how to report derives from `AutofixError`.
The runner converts these into a failed step result; anything else is an
unexpected crash and is reported with a traceback by the CLI.

    AutofixError
    ├── ConfigurationError      wrong workflow name, malformed event
    ├── GitCommandError         a git subprocess returned non‑zero
    │   └── ReconciliationError   … while syncing onto the PR head
    ├── ForbiddenPathError      the diff touches the .github directory
    ├── PathEncodingError       a changed file name is not valid UTF‑8
    ├── PayloadValidationError  payload does not match schema.json
    ├── UploadError             artifact storage rejected the payload
    └── DispatchError           fixer service did not accept the job
"""
from __future__ import annotations

from typing import Optional, Sequence


class AutofixError(Exception):
    """Base class for every reportable autofix failure."""


class ConfigurationError(AutofixError):
    """The invocation environment is not one we are allowed to run in."""


class GitCommandError(AutofixError):
    """
    A git subprocess failed.

    The captured output is kept so the top‑level reporter can surface it
    for diagnosis.
    """

    def __init__(
        self,
        message: str,
        *,
        args: Sequence[str] = (),
        code: int = 1,
        out: str = "",
        err: str = "",
    ) -> None:
        super().__init__(message)
        self.git_args = tuple(args)
        self.code = code
        self.out = out
        self.err = err

    def __str__(self) -> str:
        base = super().__str__()
        details = "\n".join(part for part in (self.out, self.err) if part)
        return f"{base}\n{details}" if details else base


class ReconciliationError(GitCommandError):
    """A transition of the PR‑head state machine failed."""

    def __init__(self, state: str, cause: GitCommandError) -> None:
        super().__init__(
            f"{cause.args[0]} (reconciliation stopped in state {state})",
            args=cause.git_args,
            code=cause.code,
            out=cause.out,
            err=cause.err,
        )
        self.state = state


class ForbiddenPathError(AutofixError):
    """The change‑set touches a directory the fixer refuses to modify."""

    def __init__(self, message: str, paths: Sequence[str] = ()) -> None:
        super().__init__(message)
        self.paths = tuple(paths)


class PathEncodingError(AutofixError):
    """A changed path cannot be represented in the JSON payload."""

    def __init__(self, message: str, paths: Sequence[str] = ()) -> None:
        super().__init__(message)
        self.paths = tuple(paths)


class PayloadValidationError(AutofixError):
    """The dispatch payload does not satisfy the bundled schema."""


class UploadError(AutofixError):
    """The artifact service did not accept the payload."""


class DispatchError(AutofixError):
    """The fixer service rejected the request (or could not be reached)."""

    def __init__(self, message: str, *, status: Optional[int] = None, body: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.body = body


__all__ = [
    "AutofixError",
    "ConfigurationError",
    "GitCommandError",
    "ReconciliationError",
    "ForbiddenPathError",
    "PathEncodingError",
    "PayloadValidationError",
    "UploadError",
    "DispatchError",
]
