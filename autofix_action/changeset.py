#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
===============================================================================
Autofix‑Action ▸ Change‑set builder
===============================================================================

Turns the list of changed paths into the additions/deletions partition the
fixer service applies:

* readable path   → `Addition(path, content)` with the literal bytes
* unreadable path → `Deletion(path)` (the file no longer exists)

Paths travel as JSON strings, so a file name that is not valid UTF‑8 stops
the build with `PathEncodingError` instead of turning into a bogus entry.

Reads are independent and fan out over a thread pool. Each task returns its
own result; the partition is assembled only after every task has finished,
so no container is shared between threads.
"""
from __future__ import annotations

import base64
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Union

from autofix_action import get_logger
from autofix_action.errors import PathEncodingError

log = get_logger(__name__)

DEFAULT_WORKERS = 8


@dataclass(frozen=True)
class Addition:
    path: str
    content: bytes = field(repr=False)

    def to_dict(self) -> Dict[str, str]:
        return {"path": self.path, "contents": base64.b64encode(self.content).decode("ascii")}


@dataclass(frozen=True)
class Deletion:
    path: str

    def to_dict(self) -> Dict[str, str]:
        return {"path": self.path}


FileChange = Union[Addition, Deletion]


@dataclass(frozen=True)
class ChangeSet:
    """Immutable partition of changed paths; a path appears at most once."""

    additions: FrozenSet[Addition] = frozenset()
    deletions: FrozenSet[Deletion] = frozenset()

    def __post_init__(self) -> None:
        added = {a.path for a in self.additions}
        if len(added) != len(self.additions):
            raise ValueError("duplicate paths in additions")
        clash = added & {d.path for d in self.deletions}
        if clash:
            raise ValueError(f"paths both added and deleted: {sorted(clash)}")

    @property
    def paths(self) -> FrozenSet[str]:
        return frozenset(a.path for a in self.additions) | frozenset(d.path for d in self.deletions)

    def __len__(self) -> int:
        return len(self.additions) + len(self.deletions)

    def to_dict(self) -> Dict[str, List[Dict[str, Any]]]:
        """Wire representation (sorted by path so output is reproducible)."""
        return {
            "additions": [a.to_dict() for a in sorted(self.additions, key=lambda a: a.path)],
            "deletions": [d.to_dict() for d in sorted(self.deletions, key=lambda d: d.path)],
        }


def _is_utf8(path: str) -> bool:
    try:
        path.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


def _display(path: str) -> str:
    """Printable form of *path*, showing undecodable bytes as ``\\xNN``."""
    try:
        raw = path.encode("utf-8", "surrogateescape")
    except UnicodeEncodeError:
        return path.encode("utf-8", "backslashreplace").decode("utf-8")
    return raw.decode("utf-8", "backslashreplace")


def read_change(root: Path, path: str) -> FileChange:
    """Classify one path: its bytes if readable, otherwise a deletion."""
    try:
        return Addition(path, (root / path).read_bytes())
    except OSError:
        return Deletion(path)


def build_changeset(paths: Iterable[str], root: Path, *, workers: Optional[int] = None) -> ChangeSet:
    """
    Read every changed path below *root* concurrently and partition the results.

    Duplicate input paths collapse to one entry.

    Raises
    ------
    PathEncodingError
        When any path is not valid UTF‑8; nothing is read in that case.
    """
    unique = list(dict.fromkeys(paths))
    if not unique:
        return ChangeSet()

    bad = [p for p in unique if not _is_utf8(p)]
    if bad:
        raise PathEncodingError(
            "Cannot send file names that are not valid UTF-8: "
            + ", ".join(_display(p) for p in bad),
            bad,
        )

    root = Path(root)
    with ThreadPoolExecutor(max_workers=min(workers or DEFAULT_WORKERS, len(unique))) as pool:
        results = list(pool.map(lambda p: read_change(root, p), unique))

    changes = ChangeSet(
        additions=frozenset(r for r in results if isinstance(r, Addition)),
        deletions=frozenset(r for r in results if isinstance(r, Deletion)),
    )
    log.debug(
        "Change-set: %d addition(s), %d deletion(s)", len(changes.additions), len(changes.deletions)
    )
    return changes
