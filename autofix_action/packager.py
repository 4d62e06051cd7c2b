#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
===============================================================================
Autofix‑Action ▸ Change‑set packager
===============================================================================

Purpose
-------
Wrap the change‑set and the run configuration into the versioned document
the fixer understands, validate it, and upload it as a short‑lived artifact.

Public API
----------
* `RunConfig.from_inputs()`                 – fail‑fast / commit‑message / comment
* `build_payload(changes, config) -> dict`  – version 1 wire document
* `validate_payload(payload) -> dict`       – JSON‑Schema check (schema.json)
* `package_and_upload(payload, uploader)`   – temp file → artifact, always cleaned up

Design notes
------------
* The schema is loaded **once** at import time via `importlib.resources` and
  compiled into a `Draft7Validator`.
* The uploaded artifact is an audit trail only; nothing reads it back here.
* The serialized file lives in a `TemporaryDirectory`, so it is removed on
  success, on upload failure and on any later exception alike.
"""
from __future__ import annotations

import json
import tempfile
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from jsonschema import Draft7Validator
from jsonschema.exceptions import best_match

from autofix_action import get_logger
from autofix_action.actions import get_input
from autofix_action.artifact import ArtifactInfo, ArtifactUploader
from autofix_action.changeset import ChangeSet
from autofix_action.errors import PayloadValidationError, UploadError

log = get_logger(__name__)

PAYLOAD_VERSION = 1
ARTIFACT_NAME = "autofix.ci"
PAYLOAD_FILENAME = "autofix.json"
RETENTION_DAYS = 1


def _load_schema() -> Dict[str, Any]:
    with resources.files("autofix_action").joinpath("schema.json").open(encoding="utf-8") as fh:
        return json.load(fh)


SCHEMA: Dict[str, Any] = _load_schema()
Draft7Validator.check_schema(SCHEMA)
_VALIDATOR = Draft7Validator(SCHEMA)


@dataclass(frozen=True)
class RunConfig:
    fail_fast: bool = False
    commit_message: Optional[str] = None
    comment: Optional[str] = None

    @classmethod
    def from_inputs(cls, environ: Optional[Mapping[str, str]] = None) -> "RunConfig":
        """Read the action inputs; only the literal string "true" enables fail‑fast."""
        return cls(
            fail_fast=get_input("fail-fast", environ) == "true",
            commit_message=get_input("commit-message", environ) or None,
            comment=get_input("comment", environ) or None,
        )


def build_payload(changes: ChangeSet, config: RunConfig) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "version": PAYLOAD_VERSION,
        "changes": changes.to_dict(),
        "failFast": config.fail_fast,
    }
    if config.commit_message:
        payload["commitMessage"] = config.commit_message
    if config.comment:
        payload["comment"] = config.comment
    return payload


def _pointer(path) -> str:
    return ".".join(["$", *(str(p) for p in path)])


def validate_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate *payload* against the bundled schema and return it unchanged.

    Raises
    ------
    PayloadValidationError
        Describing the first violation (JSON‑pointer‑ish location + message).
    """
    error = best_match(_VALIDATOR.iter_errors(payload))
    if error is not None:
        raise PayloadValidationError(f"Invalid payload at {_pointer(error.path)}: {error.message}")
    return payload


def package_and_upload(payload: Dict[str, Any], uploader: ArtifactUploader) -> ArtifactInfo:
    """
    Serialize *payload* to a temporary `autofix.json` and upload it.

    Raises
    ------
    UploadError
        When the uploader fails; the temporary file is removed either way.
    """
    validate_payload(payload)
    with tempfile.TemporaryDirectory(prefix="autofix-") as tmp:
        root = Path(tmp)
        target = root / PAYLOAD_FILENAME
        target.write_text(json.dumps(payload), encoding="utf-8")
        log.debug("Payload written to %s (%d bytes)", target, target.stat().st_size)
        try:
            info = uploader.upload(ARTIFACT_NAME, [target], root, retention_days=RETENTION_DAYS)
        except UploadError:
            raise
        except Exception as exc:
            raise UploadError(f"Failed to upload artifact {ARTIFACT_NAME}: {exc}") from exc
    log.info("Uploaded artifact %s (id=%s, %d bytes)", info.name, info.id, info.size)
    return info
