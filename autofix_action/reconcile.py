#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
===============================================================================
Autofix‑Action ▸ PR‑head reconciliation
===============================================================================

The checkout a pull‑request job starts from is the PR head *at trigger time*.
By the time the fix is ready, more commits may have landed on the PR. Sending
a change‑set computed against a stale head lets the fixer apply content that
no longer matches. So before building the change‑set we move the fix onto the
current head:

    DIRTY ──commit──▶ COMMITTED ──fetch──▶ FETCHED ──checkout──▶ CHECKED_OUT
                                                                      │
                                                          cherry‑pick │
                                                                      ▼
                                                                  REAPPLIED

* COMMITTED   – commit the staged fix under the bot identity, remember its hash
* FETCHED     – shallow fetch of ``refs/pull/<n>/head`` (tip only)
* CHECKED_OUT – force‑checkout FETCH_HEAD (the fix commit stays reachable)
* REAPPLIED   – ``cherry-pick --no-commit`` the fix: staged, not committed

Any failed transition raises `ReconciliationError` naming the state the
machine was in. Conflicts are not resolved; git's message is surfaced as is.
"""
from __future__ import annotations

import enum
from typing import Callable, Dict, Optional, Tuple

from autofix_action import get_logger
from autofix_action.errors import GitCommandError, ReconciliationError
from autofix_action.event import PullRequestTarget
from autofix_action.git_ops import GitOps

log = get_logger(__name__)

BOT_NAME = "autofix.ci"
BOT_EMAIL = "noreply@autofix.ci"
FIX_COMMIT_MESSAGE = "autofix"


class ReconciliationState(enum.Enum):
    DIRTY = "dirty"
    COMMITTED = "committed"
    FETCHED = "fetched"
    CHECKED_OUT = "checked-out"
    REAPPLIED = "reapplied"


class Reconciler:
    """Drive one pull‑request working tree from DIRTY to REAPPLIED."""

    def __init__(self, git: GitOps, target: PullRequestTarget, *, debug: bool = False) -> None:
        self.git = git
        self.target = target
        self.debug = debug
        self.state = ReconciliationState.DIRTY
        self.commit_hash: Optional[str] = None

    # ------------------------------------------------------------------ #
    # Transitions (one per edge)
    # ------------------------------------------------------------------ #
    def commit(self) -> None:
        self.git.set_identity(BOT_NAME, BOT_EMAIL)
        self.git.commit(FIX_COMMIT_MESSAGE)
        self.commit_hash = self.git.head_commit()
        log.debug("Fix commit %s", self.commit_hash)
        if self.debug:
            log.debug("%s", self.git.show(self.commit_hash))

    def fetch(self) -> None:
        self.git.fetch(self.target.head_refspec, depth=1)

    def checkout(self) -> None:
        self.git.checkout_force("FETCH_HEAD")
        if self.debug:
            log.debug("%s", self.git.status())

    def reapply(self) -> None:
        assert self.commit_hash is not None
        self.git.cherry_pick_no_commit(self.commit_hash)

    _EDGES: Dict[ReconciliationState, Tuple[ReconciliationState, Callable[["Reconciler"], None]]] = {
        ReconciliationState.DIRTY: (ReconciliationState.COMMITTED, commit),
        ReconciliationState.COMMITTED: (ReconciliationState.FETCHED, fetch),
        ReconciliationState.FETCHED: (ReconciliationState.CHECKED_OUT, checkout),
        ReconciliationState.CHECKED_OUT: (ReconciliationState.REAPPLIED, reapply),
    }

    # ------------------------------------------------------------------ #
    # Driver
    # ------------------------------------------------------------------ #
    def step(self) -> ReconciliationState:
        """Take the single transition out of the current state."""
        try:
            nxt, transition = self._EDGES[self.state]
        except KeyError:
            raise RuntimeError(f"no transition out of {self.state.value}") from None
        try:
            transition(self)
        except GitCommandError as exc:
            raise ReconciliationError(self.state.value, exc) from exc
        log.debug("Reconciliation %s → %s", self.state.value, nxt.value)
        self.state = nxt
        return nxt

    def run(self) -> str:
        """
        Run every transition; return the fix‑commit hash.

        Raises
        ------
        ReconciliationError
            On the first failing transition.
        """
        log.info("Rebasing fixes onto the current head of pull request #%s", self.target.number)
        while self.state is not ReconciliationState.REAPPLIED:
            self.step()
        assert self.commit_hash is not None
        return self.commit_hash
