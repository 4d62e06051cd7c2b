"""
Offline unit‑tests ▸ Actions results‑service artifact client
"""
from __future__ import annotations

import base64
import hashlib
import io
import json
import zipfile
from pathlib import Path

import pytest
import requests

from autofix_action.artifact import ResultsServiceUploader, backend_ids_from_token
from autofix_action.dispatch import FixerClient
from autofix_action.errors import UploadError
from conftest import FakeResponse, FakeSession

RESULTS = "https://results.example.com/"


def _jwt(claims: dict) -> str:
    def seg(obj) -> str:
        return base64.urlsafe_b64encode(json.dumps(obj).encode()).decode().rstrip("=")

    return f"{seg({'alg': 'none'})}.{seg(claims)}.sig"


TOKEN = _jwt({"scp": "Actions.ExampleScope Actions.Results:run-123:job-456"})


@pytest.fixture
def payload(tmp_path: Path) -> Path:
    f = tmp_path / "autofix.json"
    f.write_text('{"version": 1}', encoding="utf-8")
    return f


def test_backend_ids_from_scope_claim() -> None:
    assert backend_ids_from_token(TOKEN) == ("run-123", "job-456")


@pytest.mark.parametrize("token", ["not-a-jwt", _jwt({"scp": "Actions.Other"}), "a.!!!.c"])
def test_bad_tokens(token: str) -> None:
    with pytest.raises(UploadError):
        backend_ids_from_token(token)


def test_upload_sequence(payload: Path) -> None:
    session = FakeSession(
        [
            FakeResponse(200, payload={"ok": True, "signedUploadUrl": "https://blob.example.com/up?sig=1"}),
            FakeResponse(201, ""),
            FakeResponse(200, payload={"ok": True, "artifactId": "99"}),
        ]
    )
    up = ResultsServiceUploader(token=TOKEN, results_url=RESULTS, session=session)
    info = up.upload("autofix.ci", [payload], payload.parent, retention_days=1)

    create, put, finalize = session.calls
    assert create["url"] == (
        "https://results.example.com/twirp/github.actions.results.api.v1.ArtifactService/CreateArtifact"
    )
    assert create["headers"]["Authorization"] == f"Bearer {TOKEN}"
    assert create["json"]["workflowRunBackendId"] == "run-123"
    assert create["json"]["workflowJobRunBackendId"] == "job-456"
    assert create["json"]["name"] == "autofix.ci"
    assert create["json"]["version"] == 4
    assert create["json"]["expiresAt"].endswith("Z")

    assert put["method"] == "PUT"
    assert put["url"] == "https://blob.example.com/up?sig=1"
    assert put["headers"]["x-ms-blob-type"] == "BlockBlob"
    with zipfile.ZipFile(io.BytesIO(put["data"])) as zf:
        assert zf.namelist() == ["autofix.json"]
        assert zf.read("autofix.json") == b'{"version": 1}'

    assert finalize["url"].endswith("/FinalizeArtifact")
    assert finalize["json"]["size"] == str(len(put["data"]))
    assert finalize["json"]["hash"] == "sha256:" + hashlib.sha256(put["data"]).hexdigest()
    assert (info.id, info.size) == ("99", len(put["data"]))


def test_missing_environment_fails_at_upload_time(payload: Path) -> None:
    up = ResultsServiceUploader.from_env({})
    with pytest.raises(UploadError, match="ACTIONS_RUNTIME_TOKEN"):
        up.upload("autofix.ci", [payload], payload.parent, retention_days=1)


@pytest.mark.parametrize(
    "first",
    [
        FakeResponse(403, "forbidden"),
        FakeResponse(200, payload={"ok": False}),
        FakeResponse(200, "<html>"),
        requests.Timeout("slow"),
    ],
)
def test_create_failures_raise_upload_error(payload: Path, first) -> None:
    session = FakeSession([first])
    up = ResultsServiceUploader(token=TOKEN, results_url=RESULTS, session=session)
    with pytest.raises(UploadError):
        up.upload("autofix.ci", [payload], payload.parent, retention_days=1)
    assert len(session.calls) == 1


def test_blob_put_failure(payload: Path) -> None:
    session = FakeSession(
        [
            FakeResponse(200, payload={"ok": True, "signedUploadUrl": "https://blob/x"}),
            FakeResponse(403, "AuthenticationFailed"),
        ]
    )
    up = ResultsServiceUploader(token=TOKEN, results_url=RESULTS, session=session)
    with pytest.raises(UploadError, match="AuthenticationFailed"):
        up.upload("autofix.ci", [payload], payload.parent, retention_days=1)


def test_upload_and_dispatch_share_one_timeout(payload: Path) -> None:
    session = FakeSession([FakeResponse(403, "forbidden")])
    up = ResultsServiceUploader(token=TOKEN, results_url=RESULTS, session=session)
    assert up.timeout == FixerClient(session=FakeSession()).timeout

    with pytest.raises(UploadError):
        up.upload("autofix.ci", [payload], payload.parent, retention_days=1)
    assert session.calls[0]["timeout"] == up.timeout
