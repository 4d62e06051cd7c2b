#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
===============================================================================
Autofix‑Action ▸ Pipeline
===============================================================================

One run is a straight line of fallible steps:

    gate → stage → validate → reconcile → build → upload → dispatch

Each step returns a `StepResult`. `Outcome.CONTINUE` hands over to the next
step; anything else ends the run right there. A step that raises an
`AutofixError` becomes `Outcome.FAILED` for that step, so the first failure
wins and nothing is retried.

Outcomes
--------
* NOTHING_TO_DO  – no staged difference; success, exit 0.
* DISPATCHED     – the fixer accepted the job. The run is still reported as
                   failed: pending autofixes must block the merge. The
                   `autofix_started` output tells callers this apart from a
                   real error.
* FAILED         – any error; message reported verbatim.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from autofix_action import actions, get_logger
from autofix_action.artifact import ArtifactUploader
from autofix_action.changeset import ChangeSet, build_changeset
from autofix_action.dispatch import FixerClient
from autofix_action.errors import AutofixError
from autofix_action.event import RunContext
from autofix_action.git_ops import GitOps
from autofix_action.guards import check_forbidden_paths, check_workflow
from autofix_action.packager import RunConfig, build_payload, package_and_upload
from autofix_action.reconcile import Reconciler

log = get_logger(__name__)

OUTPUT_AUTOFIX_STARTED = "autofix_started"
NOTHING_TO_DO = "Nothing to do! ✨"
FIX_STARTED = "✅ Autofix task started."


class Outcome(enum.Enum):
    CONTINUE = "continue"
    NOTHING_TO_DO = "nothing-to-do"
    DISPATCHED = "dispatched"
    FAILED = "failed"


@dataclass(frozen=True)
class StepResult:
    outcome: Outcome
    message: str = ""
    step: str = ""
    error: Optional[BaseException] = None

    @classmethod
    def proceed(cls) -> "StepResult":
        return cls(Outcome.CONTINUE)

    @classmethod
    def finish(cls, message: str) -> "StepResult":
        return cls(Outcome.NOTHING_TO_DO, message)

    @classmethod
    def dispatched(cls, message: str) -> "StepResult":
        return cls(Outcome.DISPATCHED, message)

    @classmethod
    def failed(cls, step: str, error: BaseException) -> "StepResult":
        return cls(Outcome.FAILED, clean_message(str(error)), step, error)

    @property
    def run_failed(self) -> bool:
        """Whether the CI step must be marked as failed."""
        return self.outcome in (Outcome.DISPATCHED, Outcome.FAILED)


def clean_message(message: str) -> str:
    return message[len("Error: "):] if message.startswith("Error: ") else message


@dataclass
class RunState:
    """Everything the steps hand to each other during one run."""
    paths: List[str] = field(default_factory=list)
    changes: ChangeSet = field(default_factory=ChangeSet)
    fix_commit: Optional[str] = None
    staged_diff: Optional[str] = None
    autofix_started: bool = False


class AutofixRun:
    """
    Wire the collaborators together and execute the steps in order.

    Parameters
    ----------
    workflow : str | None
        Name of the workflow we are running in (security gate input).
    context : RunContext
        Repository identity and PR/branch target from the event.
    config : RunConfig
        Action inputs copied into the payload.
    git : GitOps
        Working‑tree access (its repo is also where files are read from).
    uploader : ArtifactUploader
        Artifact storage for the payload.
    fixer : FixerClient
        Fixer endpoint.
    debug : bool
        Runner debug mode; adds diagnostics to the log.
    """

    def __init__(
        self,
        *,
        workflow: Optional[str],
        context: RunContext,
        config: RunConfig,
        git: GitOps,
        uploader: ArtifactUploader,
        fixer: FixerClient,
        debug: bool = False,
    ) -> None:
        self.workflow = workflow
        self.context = context
        self.config = config
        self.git = git
        self.uploader = uploader
        self.fixer = fixer
        self.debug = debug
        self.state = RunState()

    @property
    def root(self) -> Path:
        return self.git.repo

    # ------------------------------------------------------------------ #
    # Steps
    # ------------------------------------------------------------------ #
    def _gate(self) -> StepResult:
        check_workflow(self.workflow)
        return StepResult.proceed()

    def _stage(self) -> StepResult:
        self.git.reset_index()
        self.git.stage_all()
        self.state.paths = self.git.diff_staged_paths()
        if not self.state.paths:
            return StepResult.finish(NOTHING_TO_DO)
        return StepResult.proceed()

    def _validate(self) -> StepResult:
        check_forbidden_paths(self.state.paths)
        log.info("Need to update %d files.", len(self.state.paths))
        return StepResult.proceed()

    def _reconcile(self) -> StepResult:
        if not self.context.is_pull_request:
            return StepResult.proceed()
        self.state.fix_commit = Reconciler(self.git, self.context.target, debug=self.debug).run()
        self.state.paths = self.git.diff_staged_paths()
        if not self.state.paths:
            log.info("Pull request head already contains these changes.")
            return StepResult.finish(NOTHING_TO_DO)
        check_forbidden_paths(self.state.paths)
        return StepResult.proceed()

    def _build(self) -> StepResult:
        self.state.changes = build_changeset(self.state.paths, self.root)
        if self.debug:
            for a in sorted(self.state.changes.additions, key=lambda a: a.path):
                log.debug("addition: %s (%d bytes)", a.path, len(a.content))
            for d in sorted(self.state.changes.deletions, key=lambda d: d.path):
                log.debug("deletion: %s", d.path)
        return StepResult.proceed()

    def _upload(self) -> StepResult:
        payload = build_payload(self.state.changes, self.config)
        package_and_upload(payload, self.uploader)
        return StepResult.proceed()

    def _dispatch(self) -> StepResult:
        try:
            resp = self.fixer.start_fix(self.context)
            if resp.accepted:
                self.state.autofix_started = True
                actions.set_output(OUTPUT_AUTOFIX_STARTED, True)
                return StepResult.dispatched(FIX_STARTED)
            log.info("%s %s", resp.status, resp.body)
            return StepResult(Outcome.FAILED, resp.body, "dispatch")
        finally:
            self._show_staged_diff()

    def _show_staged_diff(self) -> None:
        """Print what the fixer is about to change."""
        try:
            self.state.staged_diff = self.git.diff_staged()
        except AutofixError as exc:
            log.error("Could not render the staged diff: %s", exc)
            return
        actions.echo(self.state.staged_diff)

    def steps(self) -> List[Tuple[str, Callable[[], StepResult]]]:
        return [
            ("gate", self._gate),
            ("stage", self._stage),
            ("validate", self._validate),
            ("reconcile", self._reconcile),
            ("build", self._build),
            ("upload", self._upload),
            ("dispatch", self._dispatch),
        ]

    # ------------------------------------------------------------------ #
    # Driver
    # ------------------------------------------------------------------ #
    def run(self) -> StepResult:
        """
        Execute all steps; return the first terminal result.

        Exceptions that are not `AutofixError` propagate to the caller.
        """
        actions.set_output(OUTPUT_AUTOFIX_STARTED, False)
        for name, step in self.steps():
            log.debug("step: %s", name)
            try:
                result = step()
            except AutofixError as exc:
                result = StepResult.failed(name, exc)
            if result.outcome is not Outcome.CONTINUE:
                return result
        raise RuntimeError("pipeline ended without a terminal step")
