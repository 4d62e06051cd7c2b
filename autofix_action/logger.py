#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
===============================================================================
Autofix‑Action ▸ Unified Logging Facility
===============================================================================

Purpose
-------
Provide one **centralised**, **idempotent** logger configuration used across the
project.  Other modules obtain loggers via:

    from autofix_action import get_logger

Key features
------------
* Console output – INFO by default, DEBUG when the runner has debug logging
  enabled (RUNNER_DEBUG=1) or when overridden via env.
* Daily rotating file – DEBUG level, 7 days retention (both tunable).
* The log directory defaults to the runner's temp dir, **never** the working
  tree: everything in the workspace is staged by `git add --all`.
* Idempotent – root handlers are configured **once**; child loggers propagate.
* Resilient – falls back to the system temp dir, then console‑only.
* Environment overrides:
    AUTOFIX_LOG_DIR   – log directory (default: $RUNNER_TEMP/autofix-logs)
    AUTOFIX_LOG_LVL   – console level  (DEBUG / INFO / WARNING / … or numeric)
    AUTOFIX_LOG_ROT   – rotation schedule ("midnight", "H", "M", …)
    AUTOFIX_LOG_BACK  – number of backup files (default 7)
    AUTOFIX_LOG_UTC   – truthy → timestamps & rotation in UTC (1/true/yes/on)
    AUTOFIX_LOG_JSON  – truthy → emit JSON lines to console
"""
from __future__ import annotations

import json
import logging
import os
import tempfile
import time
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Optional

# Only the root project logger "autofix_action" owns handlers; children propagate.
_ROOT_LOGGER_NAME = "autofix_action"


# ════════════════════════════════════════════════════════════════════════════
# Helpers
# ════════════════════════════════════════════════════════════════════════════
def _is_truthy(val: str | None) -> bool:
    """Return True if *val* represents a truthy setting."""
    if val is None:
        return False
    return val.strip().lower() in {"1", "true", "yes", "on", "y", "t"}


def _parse_level(val: str | None, default: int = logging.INFO) -> int:
    """
    Parse an environment level value which may be a name ("INFO") or an integer ("20").
    Falls back to *default* on invalid input.
    """
    if val is None:
        return default
    s = val.strip()
    if not s:
        return default
    if s.isdigit():
        return int(s)
    level = logging.getLevelName(s.upper())
    return level if isinstance(level, int) else default


def _default_log_dir() -> Path:
    base = os.getenv("RUNNER_TEMP") or tempfile.gettempdir()
    return Path(base) / "autofix-logs"


# ════════════════════════════════════════════════════════════════════════════
# Defaults & environment overrides
# ════════════════════════════════════════════════════════════════════════════
_LOG_DIR_ENV = os.getenv("AUTOFIX_LOG_DIR") or str(_default_log_dir())

RUNNER_DEBUG = os.getenv("RUNNER_DEBUG") == "1"
_CONSOLE_LEVEL_ENV = os.getenv("AUTOFIX_LOG_LVL") or ("DEBUG" if RUNNER_DEBUG else "INFO")
CONSOLE_LEVEL = _parse_level(_CONSOLE_LEVEL_ENV, default=logging.INFO)
CONSOLE_LEVEL_NAME = _CONSOLE_LEVEL_ENV.strip().upper()

ROTATE_WHEN = os.getenv("AUTOFIX_LOG_ROT", "midnight")
BACKUP_COUNT = int(os.getenv("AUTOFIX_LOG_BACK", "7"))
USE_UTC = _is_truthy(os.getenv("AUTOFIX_LOG_UTC"))
JSON_CONSOLE = _is_truthy(os.getenv("AUTOFIX_LOG_JSON"))

# ════════════════════════════════════════════════════════════════════════════
# Formatters
# ════════════════════════════════════════════════════════════════════════════
FORMAT = "%(asctime)s | %(name)s | %(levelname)-8s | %(message)s"
DTFMT = "%Y-%m-%d %H:%M:%S"


class _JsonFormatter(logging.Formatter):
    """Minimal JSON formatter (useful for CI/log scraping)."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        data = {
            "ts": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(record.created))
            if USE_UTC
            else time.strftime("%Y-%m-%dT%H:%M:%S%z", time.localtime(record.created)),
            "name": record.name,
            "level": record.levelname,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            data["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(data, ensure_ascii=False)


def _human_formatter() -> logging.Formatter:
    fmt = logging.Formatter(fmt=FORMAT, datefmt=DTFMT)
    if USE_UTC:
        fmt.converter = time.gmtime  # type: ignore[assignment]
    return fmt


# ════════════════════════════════════════════════════════════════════════════
# Directory & handler utilities
# ════════════════════════════════════════════════════════════════════════════
def _ensure_log_dir(preferred: Path) -> Optional[Path]:
    """
    Ensure a writable log directory exists.

    Preference order:
      1) $AUTOFIX_LOG_DIR (or $RUNNER_TEMP/autofix-logs)
      2) $TMPDIR/autofix-logs

    Returns None when neither is writable (console‑only logging).
    """
    for candidate in (preferred, Path(tempfile.gettempdir()) / "autofix-logs"):
        try:
            candidate = candidate.expanduser().resolve()
            candidate.mkdir(parents=True, exist_ok=True)
            probe = candidate / ".writable"
            probe.write_text("ok", encoding="utf-8")
            probe.unlink(missing_ok=True)
            return candidate
        except OSError:
            continue
    return None


def _make_file_handler(log_dir: Path) -> Optional[TimedRotatingFileHandler]:
    """
    Create a rotating file handler inside *log_dir*.

    Returns None if the file handler cannot be created (permissions, etc.).
    """
    try:
        fh = TimedRotatingFileHandler(
            filename=log_dir / "autofix_action.log",
            when=ROTATE_WHEN,
            interval=1,
            backupCount=BACKUP_COUNT,
            encoding="utf-8",
            utc=USE_UTC,
        )
    except (OSError, ValueError):
        return None
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(_human_formatter())
    return fh


def _make_console_handler() -> logging.Handler:
    ch = logging.StreamHandler()
    ch.setLevel(CONSOLE_LEVEL)
    ch.setFormatter(_JsonFormatter() if JSON_CONSOLE else _human_formatter())
    return ch


# ════════════════════════════════════════════════════════════════════════════
# Public helper
# ════════════════════════════════════════════════════════════════════════════
def get_logger(name: str | None = None) -> logging.Logger:
    """
    Return a configured `logging.Logger`.

    Parameters
    ----------
    name : str | None
        • Explicit logger name, e.g. __name__ from caller.
        • *None* → root project logger "autofix_action".

    Notes
    -----
    Handlers are attached **only to the root** "autofix_action" logger. Child
    loggers are returned without handlers and **propagate** to the root,
    avoiding duplicate console/file outputs across modules.
    """
    root = logging.getLogger(_ROOT_LOGGER_NAME)

    if not root.handlers:
        root.setLevel(logging.DEBUG)

        log_dir = _ensure_log_dir(Path(_LOG_DIR_ENV))
        fh = _make_file_handler(log_dir) if log_dir is not None else None
        if fh is not None:
            root.addHandler(fh)

        root.addHandler(_make_console_handler())
        root.propagate = False

        root.debug(
            "Logger initialised | dir=%s | console=%s | rotate=%s | backups=%s | utc=%s | json-console=%s",
            log_dir,
            CONSOLE_LEVEL_NAME,
            ROTATE_WHEN,
            BACKUP_COUNT,
            USE_UTC,
            JSON_CONSOLE,
        )

    if name is None or name == _ROOT_LOGGER_NAME:
        return root

    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    logger.propagate = True
    return logger


if __name__ == "__main__":  # pragma: no cover
    log = get_logger()
    log.info("Console INFO message.")
    log.debug("Debug message (file handler if available).")
    print(f"Log directory configured as: {_LOG_DIR_ENV}")
