#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
===============================================================================
Autofix‑Action ▸ Git helpers for the working‑tree diff engine
===============================================================================

Responsibilities
----------------
* Reset whatever index state earlier CI steps left behind.
* Stage every modified / added / removed path, ignoring file‑mode‑only changes
  (executable bits flipped by checkout mechanics are not fixes).
* List the staged paths versus HEAD with rename detection **off**, so a rename
  shows up as a deletion plus an addition.
* Provide the primitives the PR‑head reconciliation needs: identity, commit,
  rev‑parse, shallow fetch, forced checkout, non‑committing cherry‑pick.
* Render the full staged diff for the run log.

Design notes
------------
* All interactions go through `_git()` which logs commands and captures output.
* Git consistently reports unix‑style paths (also on Windows runners), so paths
  returned by `diff_staged_paths()` are used as‑is; no conversion is done.
* Failures raise `GitCommandError` carrying stdout/stderr for diagnosis.

Usage (example)
---------------
    from pathlib import Path
    from autofix_action.git_ops import GitOps

    repo = GitOps(Path("."))
    repo.reset_index()
    repo.stage_all()
    paths = repo.diff_staged_paths()     # [] → nothing to do
"""
from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List

from autofix_action import get_logger
from autofix_action.errors import GitCommandError

log = get_logger(__name__)


@dataclass(frozen=True)
class GitRunResult:
    """Simple carrier for git command results."""
    ok: bool
    code: int
    out: str
    err: str


class GitOps:
    """
    Convenience wrapper around the `git` operations the pipeline needs.

    Every mutating method raises `GitCommandError` on a non‑zero exit; nothing
    is retried.
    """

    def __init__(self, repo: Path):
        self.repo = Path(repo).expanduser().resolve()

    # --------------------------------------------------------------------- #
    # Core plumbing
    # --------------------------------------------------------------------- #
    def _git(
        self, *args: str, check: bool = False, what: str = "", strip: bool = True,
        errors: str = "replace",
    ) -> GitRunResult:
        """
        Run `git -C <repo> <args...>` and return a structured result.

        Parameters
        ----------
        args : str
            Raw git arguments, e.g. ("diff", "--staged").
        check : bool
            If True, raise GitCommandError on non‑zero exit codes.
        what : str
            Short human description used as the error message ("could not stage").
        strip : bool
            Strip surrounding whitespace from stdout/stderr.
        errors : str
            Decoding error handler for the UTF‑8 output. "surrogateescape"
            keeps undecodable bytes so file names round‑trip to the filesystem.

        Returns
        -------
        GitRunResult
        """
        cmd = ["git", "-C", str(self.repo), *args]
        log.debug("git %s", " ".join(args))
        try:
            res = subprocess.run(
                cmd, capture_output=True, text=True, encoding="utf-8", errors=errors, check=False
            )
        except OSError as exc:
            raise GitCommandError(f"Failed to execute git: {exc}", args=args) from exc

        ok = res.returncode == 0
        out = res.stdout or ""
        err = res.stderr or ""
        if strip:
            out, err = out.strip(), err.strip()

        if check and not ok:
            msg = what or f"git {' '.join(args)} failed (rc={res.returncode})"
            log.error("%s: git %s (rc=%s)", msg, " ".join(args), res.returncode)
            raise GitCommandError(msg, args=args, code=res.returncode, out=out.strip(), err=err.strip())

        if not ok:
            log.debug("git returned rc=%s | stdout=%r | stderr=%r", res.returncode, out, err)

        return GitRunResult(ok=ok, code=res.returncode, out=out, err=err)

    # --------------------------------------------------------------------- #
    # Working‑tree diff engine
    # --------------------------------------------------------------------- #
    def reset_index(self) -> None:
        """Unstage everything previous steps may have staged."""
        self._git("reset", "--quiet", check=True, what="could not reset")

    def stage_all(self) -> None:
        """
        Stage all changes in the working tree.

        `core.fileMode=false` makes git ignore executable‑bit‑only changes.
        """
        self._git("-c", "core.fileMode=false", "add", "--all", check=True, what="could not stage")

    def diff_staged_paths(self) -> List[str]:
        """
        Return the staged paths that differ from HEAD, in git's order.

        Rename detection is disabled; NUL separation keeps unusual file names
        intact (no C‑style quoting). Bytes that are not UTF‑8 are surrogate‑escaped,
        as `os.fsdecode` does, so every path still opens on disk.
        """
        res = self._git(
            "diff", "--name-only", "--staged", "--no-renames", "-z",
            check=True, what="could not diff staged changes", strip=False, errors="surrogateescape",
        )
        return [p for p in res.out.split("\0") if p]

    def diff_staged(self) -> str:
        """Full patch of the staged changes (for the run log)."""
        return self._git("diff", "--staged", check=True, what="could not render staged diff").out

    # --------------------------------------------------------------------- #
    # Primitives for the PR‑head reconciliation
    # --------------------------------------------------------------------- #
    def set_identity(self, name: str, email: str) -> None:
        self._git("config", "user.name", name, check=True, what="could not set git user.name")
        self._git("config", "user.email", email, check=True, what="could not set git user.email")

    def commit(self, message: str) -> None:
        self._git("commit", "--quiet", "-m", message, check=True, what="could not commit")

    def head_commit(self) -> str:
        return self._git("rev-parse", "HEAD", check=True, what="could not resolve HEAD").out

    def fetch(self, refspec: str, *, remote: str = "origin", depth: int = 1) -> None:
        self._git("fetch", f"--depth={depth}", remote, refspec, check=True, what=f"could not fetch {refspec}")

    def checkout_force(self, ref: str) -> None:
        self._git("checkout", "--force", ref, check=True, what=f"could not check out {ref}")

    def cherry_pick_no_commit(self, commit: str) -> None:
        self._git("cherry-pick", "--no-commit", commit, check=True, what=f"could not cherry-pick {commit}")

    # --------------------------------------------------------------------- #
    # Diagnostics (debug mode only)
    # --------------------------------------------------------------------- #
    def show(self, commit: str) -> str:
        return self._git("show", "--stat", commit).out

    def status(self) -> str:
        return self._git("status").out
