#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
===============================================================================
Autofix‑Action ▸ Module Entry Point  (python -m autofix_action)
===============================================================================

* Fast `--version` path that does not configure logging or import git/HTTP code.
* Logs a one‑line runtime banner (version, Python, platform) for CI output.
* Delegates everything else to `autofix_action.cli:main`.
"""
from __future__ import annotations

import platform
import sys
from importlib.metadata import PackageNotFoundError, version as _pkg_version


def _resolve_version() -> str:
    """Installed distribution version, else the package fallback."""
    try:
        return _pkg_version("autofix-action")
    except PackageNotFoundError:
        from autofix_action import __version__

        return __version__


def main() -> None:
    argv = sys.argv[1:]
    if argv[:1] in (["--version"], ["version"]):
        print(_resolve_version())
        sys.exit(0)

    from autofix_action import get_logger
    from autofix_action.cli import main as cli_main

    get_logger(__name__).debug(
        "autofix-action %s  |  Python %s  |  %s",
        _resolve_version(),
        platform.python_version(),
        platform.platform(),
    )
    try:
        sys.exit(cli_main(argv))
    except KeyboardInterrupt:
        get_logger(__name__).info("Interrupted. Exiting.")
        sys.exit(130)


if __name__ == "__main__":
    main()
