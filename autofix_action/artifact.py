#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
===============================================================================
Autofix‑Action ▸ Artifact storage client
===============================================================================

The packager only needs a blind uploader: "store these files under this name
for N days". `ArtifactUploader` is that contract; `ResultsServiceUploader`
implements it against the GitHub Actions results service (artifacts v4):

    1. CreateArtifact     → signed blob upload URL
    2. PUT <signed url>   → zip of the files (Azure block blob)
    3. FinalizeArtifact   → size + sha256, returns the artifact id

Environment
-----------
ACTIONS_RUNTIME_TOKEN – bearer token; its `scp` claim carries the backend ids
ACTIONS_RESULTS_URL   – base URL of the results service
"""
from __future__ import annotations

import base64
import datetime as _dt
import hashlib
import io
import json
import os
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Protocol, Sequence, Tuple

import requests

from autofix_action import get_logger, get_version
from autofix_action.dispatch import DEFAULT_TIMEOUT
from autofix_action.errors import UploadError

log = get_logger(__name__)

_SERVICE = "twirp/github.actions.results.api.v1.ArtifactService"
ARTIFACT_VERSION = 4


@dataclass(frozen=True)
class ArtifactInfo:
    name: str
    id: Optional[str]
    size: int
    digest: str


class ArtifactUploader(Protocol):
    def upload(
        self, name: str, files: Sequence[Path], root: Path, *, retention_days: int
    ) -> ArtifactInfo:
        ...


# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────
def backend_ids_from_token(token: str) -> Tuple[str, str]:
    """
    Extract (workflowRunBackendId, workflowJobRunBackendId) from the runtime JWT.

    The ids live in the space‑separated `scp` claim as
    ``Actions.Results:<run>:<job>``.
    """
    parts = token.split(".")
    if len(parts) != 3:
        raise UploadError("ACTIONS_RUNTIME_TOKEN is not a JWT.")
    claims_b64 = parts[1] + "=" * (-len(parts[1]) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(claims_b64))
    except (ValueError, TypeError) as exc:
        raise UploadError(f"Cannot decode ACTIONS_RUNTIME_TOKEN claims: {exc}") from exc

    scopes = claims.get("scp", "") if isinstance(claims, dict) else ""
    for scope in str(scopes).split():
        pieces = scope.split(":")
        if pieces[0] == "Actions.Results" and len(pieces) == 3:
            return pieces[1], pieces[2]
    raise UploadError("ACTIONS_RUNTIME_TOKEN does not grant Actions.Results access.")


def zip_files(files: Sequence[Path], root: Path) -> bytes:
    """Zip *files* with archive names relative to *root*."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for f in files:
            zf.write(f, arcname=Path(f).relative_to(root).as_posix())
    return buf.getvalue()


def _timestamp(days: int) -> str:
    when = _dt.datetime.now(_dt.timezone.utc) + _dt.timedelta(days=days)
    return when.strftime("%Y-%m-%dT%H:%M:%SZ")


# ─────────────────────────────────────────────────────────────────────────────
# Results service client
# ─────────────────────────────────────────────────────────────────────────────
class ResultsServiceUploader:
    """Upload artifacts through the Actions results service (twirp JSON)."""

    def __init__(
        self,
        *,
        token: Optional[str],
        results_url: Optional[str],
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.token = token
        self.base = (results_url or "").rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **kw: Any) -> "ResultsServiceUploader":
        env = os.environ if environ is None else environ
        return cls(token=env.get("ACTIONS_RUNTIME_TOKEN"), results_url=env.get("ACTIONS_RESULTS_URL"), **kw)

    def _rpc(self, method: str, body: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base}/{_SERVICE}/{method}"
        log.debug("POST %s %s", url, body)
        try:
            resp = self.session.post(
                url,
                json=body,
                headers={
                    "Authorization": f"Bearer {self.token}",
                    "User-Agent": f"autofix-action/{get_version()}",
                },
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise UploadError(f"{method} request failed: {exc}") from exc
        if resp.status_code != 200:
            raise UploadError(f"{method} failed with HTTP {resp.status_code}: {resp.text}")
        try:
            data = resp.json()
        except ValueError as exc:
            raise UploadError(f"{method} returned a non-JSON body: {resp.text[:200]}") from exc
        if not data.get("ok"):
            raise UploadError(f"{method} was rejected by the artifact service: {data}")
        return data

    def upload(
        self, name: str, files: Sequence[Path], root: Path, *, retention_days: int
    ) -> ArtifactInfo:
        if not self.token or not self.base:
            raise UploadError(
                "Artifact storage is unavailable: ACTIONS_RUNTIME_TOKEN / ACTIONS_RESULTS_URL not set."
            )
        run_id, job_id = backend_ids_from_token(self.token)
        ids = {"workflowRunBackendId": run_id, "workflowJobRunBackendId": job_id}
        created = self._rpc(
            "CreateArtifact",
            {**ids, "name": name, "version": ARTIFACT_VERSION, "expiresAt": _timestamp(retention_days)},
        )

        blob = zip_files(files, root)
        digest = hashlib.sha256(blob).hexdigest()
        try:
            put = self.session.put(
                created["signedUploadUrl"],
                data=blob,
                headers={"x-ms-blob-type": "BlockBlob", "Content-Type": "application/zip"},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise UploadError(f"Blob upload failed: {exc}") from exc
        if put.status_code >= 300:
            raise UploadError(f"Blob upload failed with HTTP {put.status_code}: {put.text}")

        finalized = self._rpc(
            "FinalizeArtifact",
            {**ids, "name": name, "size": str(len(blob)), "hash": f"sha256:{digest}"},
        )
        return ArtifactInfo(name=name, id=finalized.get("artifactId"), size=len(blob), digest=digest)
