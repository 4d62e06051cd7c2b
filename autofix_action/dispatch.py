#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
===============================================================================
Autofix‑Action ▸ Remote dispatcher
===============================================================================

One request starts the fix job:

    POST <base>/fix?owner=<o>&repo=<r>&pull=<n>
    POST <base>/fix?owner=<o>&repo=<r>&branch=<name>

The body is empty; the fixer locates the uploaded change‑set by the run's
identity. There is no retry: a transport error or a non‑200 answer fails the
run. The response body of a rejected request is a human‑readable message and
is reported verbatim.

Environment
-----------
AUTOFIX_API_URL      – fixer base URL (default https://api.autofix.ci)
AUTOFIX_HTTP_TIMEOUT – request timeout in seconds (default 60)
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

import requests

from autofix_action import get_logger
from autofix_action.errors import DispatchError
from autofix_action.event import BranchTarget, PullRequestTarget, RunContext, Target

log = get_logger(__name__)

DEFAULT_API_URL = os.getenv("AUTOFIX_API_URL", "https://api.autofix.ci")
DEFAULT_TIMEOUT = float(os.getenv("AUTOFIX_HTTP_TIMEOUT", "60"))
USER_AGENT = "autofix-action/v2"

# Characters encodeURIComponent leaves alone besides the unreserved set.
_URI_COMPONENT_SAFE = "!~*'()"


def encode_component(value: object) -> str:
    return quote(str(value), safe=_URI_COMPONENT_SAFE)


def build_fix_url(base: str, owner: str, repo: str, target: Target) -> str:
    """
    Build the fixer URL; query order is owner, repo, then pull *or* branch.

    >>> build_fix_url("https://api.autofix.ci", "acme", "widgets", PullRequestTarget(42))
    'https://api.autofix.ci/fix?owner=acme&repo=widgets&pull=42'
    """
    url = f"{base.rstrip('/')}/fix?owner={encode_component(owner)}&repo={encode_component(repo)}"
    if isinstance(target, PullRequestTarget):
        return url + f"&pull={encode_component(target.number)}"
    if isinstance(target, BranchTarget):
        return url + f"&branch={encode_component(target.name)}"
    raise TypeError(f"unsupported dispatch target: {target!r}")


@dataclass(frozen=True)
class DispatchResponse:
    status: int
    body: str

    @property
    def accepted(self) -> bool:
        return self.status == 200


class FixerClient:
    """Thin `requests` wrapper for the fixer's `/fix` endpoint."""

    def __init__(
        self,
        base_url: str = DEFAULT_API_URL,
        *,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.base_url = base_url
        self.session = session or requests.Session()
        self.timeout = timeout

    def url_for(self, ctx: RunContext) -> str:
        return build_fix_url(self.base_url, ctx.owner, ctx.repo, ctx.target)

    def start_fix(self, ctx: RunContext) -> DispatchResponse:
        """
        Issue the single POST for *ctx*.

        Raises
        ------
        DispatchError
            If the request could not be sent at all. HTTP error statuses are
            returned, not raised; the caller decides how to report them.
        """
        url = self.url_for(ctx)
        log.debug("POST %s", url)
        try:
            resp = self.session.post(
                url, data=None, headers={"User-Agent": USER_AGENT}, timeout=self.timeout
            )
        except requests.RequestException as exc:
            raise DispatchError(f"Could not reach the autofix.ci service: {exc}") from exc
        return DispatchResponse(status=resp.status_code, body=resp.text)
