"""
===============================================================================
Shared test helpers: throw‑away git repositories and offline fakes
===============================================================================

* `git(repo, *args)`            – run git in *repo*, return stdout
* `init_repo(path, files)`      – repo with one seed commit
* `FakeSession` / `FakeResponse` – stand‑ins for `requests.Session`
* `FakeUploader`                – records what the packager uploads
* `read_outputs(path)`          – parse a $GITHUB_OUTPUT file
"""
from __future__ import annotations

import json
import os
import subprocess
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pytest

from autofix_action.artifact import ArtifactInfo
from autofix_action.errors import UploadError


# -----------------------------------------------------------------------------
# Git helpers
# -----------------------------------------------------------------------------
def git(repo: Path, *args: str) -> str:
    res = subprocess.run(
        ["git", "-C", str(repo), *args],
        text=True,
        capture_output=True,
        check=True,
    )
    return res.stdout


def init_repo(repo: Path, files: Dict[str, str]) -> Path:
    """Initialise *repo* with *files* committed on branch main."""
    repo.mkdir(parents=True, exist_ok=True)
    git(repo, "init", "-q", "-b", "main")
    git(repo, "config", "user.email", "t@example.com")
    git(repo, "config", "user.name", "Test")
    git(repo, "config", "commit.gpgsign", "false")
    for rel, text in files.items():
        p = repo / rel
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(text, encoding="utf-8")
    git(repo, "add", "--all")
    git(repo, "commit", "-q", "-m", "seed")
    return repo


def commit_all(repo: Path, message: str) -> str:
    git(repo, "add", "--all")
    git(repo, "commit", "-q", "-m", message)
    return git(repo, "rev-parse", "HEAD").strip()


@pytest.fixture
def pr_setup(tmp_path: Path):
    """
    An upstream repo exposing ``refs/pull/7/head`` and a CI checkout of it.

    Returns (upstream, work). `work` is detached at the PR head as it was
    when the job started, with `origin` pointing at upstream via file://.
    """
    upstream = init_repo(
        tmp_path / "upstream",
        {"src/a.txt": "a = 1\n", "src/b.txt": "b = 2\n", "src/c.txt": "c = 3\n"},
    )
    git(upstream, "update-ref", "refs/pull/7/head", "HEAD")

    work = tmp_path / "work"
    subprocess.run(
        ["git", "clone", "-q", f"file://{upstream}", str(work)],
        check=True,
        capture_output=True,
    )
    git(work, "config", "user.email", "ci@example.com")
    git(work, "config", "user.name", "CI")
    git(work, "config", "commit.gpgsign", "false")
    git(work, "fetch", "-q", "origin", "+refs/pull/7/head")
    git(work, "checkout", "-q", "--force", "FETCH_HEAD")
    return upstream, work


def advance_pr_head(upstream: Path, rel: str, text: str) -> str:
    """Land another commit on the PR in *upstream*; return the new head."""
    git(upstream, "checkout", "-q", "refs/pull/7/head")
    (upstream / rel).write_text(text, encoding="utf-8")
    sha = commit_all(upstream, f"update {rel}")
    git(upstream, "update-ref", "refs/pull/7/head", sha)
    return sha


def write_raw_name(directory: Path, raw: bytes, data: bytes = b"x\n") -> str:
    """Create a file whose name is the byte string *raw*; return it fs-decoded."""
    name = os.fsdecode(raw)
    try:
        (directory / name).write_bytes(data)
    except (OSError, UnicodeEncodeError):
        pytest.skip("filesystem rejects file names that are not valid UTF-8")
    return name


# -----------------------------------------------------------------------------
# HTTP fakes
# -----------------------------------------------------------------------------
class FakeResponse:
    def __init__(self, status_code: int = 200, text: str = "", payload: Any = None):
        self.status_code = status_code
        self.text = text if payload is None else json.dumps(payload)
        self._payload = payload

    def json(self) -> Any:
        if self._payload is None:
            return json.loads(self.text)
        return self._payload


class FakeSession:
    """Records calls; answers from a queue of responses (or raises)."""

    def __init__(self, responses: Optional[List[Any]] = None):
        self.responses = list(responses or [])
        self.calls: List[Dict[str, Any]] = []

    def _next(self, method: str, url: str, **kw: Any) -> FakeResponse:
        self.calls.append({"method": method, "url": url, **kw})
        item = self.responses.pop(0) if self.responses else FakeResponse(200)
        if isinstance(item, BaseException):
            raise item
        return item

    def post(self, url: str, **kw: Any) -> FakeResponse:
        return self._next("POST", url, **kw)

    def put(self, url: str, **kw: Any) -> FakeResponse:
        return self._next("PUT", url, **kw)


class FakeUploader:
    """Captures the uploaded payload (read while the temp file still exists)."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: List[Dict[str, Any]] = []

    def upload(self, name: str, files: Sequence[Path], root: Path, *, retention_days: int) -> ArtifactInfo:
        paths = [Path(f) for f in files]
        self.calls.append(
            {
                "name": name,
                "files": paths,
                "root": Path(root),
                "retention_days": retention_days,
                "payload": json.loads(paths[0].read_text(encoding="utf-8")),
            }
        )
        if self.fail:
            raise UploadError("artifact storage said no")
        return ArtifactInfo(name=name, id="1", size=paths[0].stat().st_size, digest="x")


def read_outputs(path: Path) -> List[tuple]:
    """Parse heredoc entries of a GITHUB_OUTPUT file into (name, value) pairs."""
    entries = []
    lines = path.read_text(encoding="utf-8").splitlines() if path.exists() else []
    i = 0
    while i < len(lines):
        name, delim = lines[i].split("<<", 1)
        j = lines.index(delim, i + 1)
        entries.append((name, "\n".join(lines[i + 1:j])))
        i = j + 1
    return entries


@pytest.fixture
def gh_output(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    out = tmp_path / "github_output"
    monkeypatch.setenv("GITHUB_OUTPUT", str(out))
    return out
