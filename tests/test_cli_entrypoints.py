#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
===============================================================================
CLI smoke tests for entrypoints
===============================================================================

Goals
-----
* Ensure the module entrypoint works:

      python -m autofix_action --version

  This path must **not** touch git or the network; it should return quickly
  with the package version.

* Ensure the console script is available and shows help:

      autofix-action --help

* Drive `cli.main()` in‑process for `schema`, `validate` and `run`, with the
  artifact uploader and fixer client replaced by offline fakes.
"""
from __future__ import annotations

import json
import logging
import re
import shutil
import subprocess
import sys
from pathlib import Path

import pytest

from autofix_action import cli
from autofix_action.dispatch import FixerClient
from conftest import FakeResponse, FakeSession, FakeUploader, init_repo, read_outputs

log = logging.getLogger(__name__)


def _run(cmd: list[str]) -> tuple[int, str]:
    """
    Run *cmd*, returning (returncode, combined stdout+stderr).
    """
    proc = subprocess.run(cmd, capture_output=True, text=True)
    out = (proc.stdout or "") + (proc.stderr or "")
    log.info("Ran: %s\n%s", " ".join(cmd), out.strip())
    return proc.returncode, out


# Accept classic "X.Y.Z" or PEP 440 local/dev segments (e.g., 2.0.0.dev1, 2.0.0+local)
_PEP440ish = re.compile(r"\b\d+\.\d+\.\d+(?:[A-Za-z0-9_.+-]+)?\b")


def test_module_entrypoint_version() -> None:
    code, out = _run([sys.executable, "-m", "autofix_action", "--version"])
    assert code == 0, "Module entrypoint should exit 0 for --version"
    assert _PEP440ish.search(out), f"Unexpected version output: {out!r}"


def test_console_script_help() -> None:
    """
    `autofix-action --help` should render argparse help and exit 0.

    Skipped when the console script is not on PATH (no editable install).
    """
    exe = shutil.which("autofix-action")
    if not exe:
        pytest.skip("console script `autofix-action` not found on PATH")

    code, out = _run([exe, "--help"])
    assert code == 0
    assert "autofix-action" in out
    assert "run" in out and "validate" in out


# -----------------------------------------------------------------------------
# In‑process subcommands
# -----------------------------------------------------------------------------
def test_no_subcommand_prints_help(capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main([]) == 2
    assert "usage: autofix-action" in capsys.readouterr().out


def test_schema_subcommand(capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["schema"]) == 0
    schema = json.loads(capsys.readouterr().out)
    assert schema["$schema"].startswith("http://json-schema.org/draft-07")


def test_validate_subcommand(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    good = tmp_path / "good.json"
    good.write_text(
        json.dumps(
            {
                "version": 1,
                "changes": {"additions": [{"path": "a.txt", "contents": "eA=="}], "deletions": []},
                "failFast": False,
            }
        ),
        encoding="utf-8",
    )
    assert cli.main(["validate", str(good)]) == 0
    assert "OK: 1 addition(s), 0 deletion(s)" in capsys.readouterr().out

    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps({"version": 2}), encoding="utf-8")
    assert cli.main(["validate", str(bad)]) == 1
    assert "INVALID" in capsys.readouterr().err


# -----------------------------------------------------------------------------
# `run` with fakes
# -----------------------------------------------------------------------------
@pytest.fixture
def ci_env(tmp_path: Path, gh_output: Path, monkeypatch: pytest.MonkeyPatch):
    repo = init_repo(tmp_path / "repo", {"a.txt": "a\n"})
    event = tmp_path / "event.json"
    event.write_text(
        json.dumps({"repository": {"owner": {"login": "acme"}, "name": "widgets"}, "ref": "refs/heads/main"}),
        encoding="utf-8",
    )
    session = FakeSession([FakeResponse(200, "ok")])
    uploader = FakeUploader()

    monkeypatch.setenv("GITHUB_WORKSPACE", str(repo))
    monkeypatch.setenv("GITHUB_EVENT_PATH", str(event))
    monkeypatch.setenv("GITHUB_WORKFLOW", "autofix.ci")
    monkeypatch.setenv("INPUT_FAIL-FAST", "true")
    monkeypatch.setattr(cli.ResultsServiceUploader, "from_env", classmethod(lambda cls, *a, **k: uploader))
    monkeypatch.setattr(cli, "FixerClient", lambda: FixerClient("https://api.autofix.ci", session=session))
    return repo, session, uploader


def test_run_nothing_to_do(ci_env, gh_output: Path) -> None:
    _, session, _ = ci_env
    assert cli.main(["run"]) == 0
    assert session.calls == []
    assert read_outputs(gh_output) == [("autofix_started", "false")]


def test_run_dispatched_exits_nonzero(ci_env, gh_output: Path, capsys: pytest.CaptureFixture[str]) -> None:
    repo, session, uploader = ci_env
    (repo / "a.txt").write_text("A\n", encoding="utf-8")

    assert cli.main(["run"]) == 1

    out = capsys.readouterr().out
    assert "::error::✅ Autofix task started." in out
    assert session.calls[0]["url"].endswith("?owner=acme&repo=widgets&branch=main")
    assert uploader.calls[0]["payload"]["failFast"] is True
    assert read_outputs(gh_output)[-1] == ("autofix_started", "true")


def test_run_without_event_fails(
    tmp_path: Path, gh_output: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.delenv("GITHUB_EVENT_PATH", raising=False)
    assert cli.main(["run", "--repo", str(tmp_path)]) == 1
    assert "::error::GITHUB_EVENT_PATH is not set" in capsys.readouterr().out
    assert read_outputs(gh_output) == [("autofix_started", "false")]
