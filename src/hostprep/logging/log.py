# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

#src/hostprep/logging/log.py

from __future__ import annotations

import logging
from pathlib import Path
from datetime import datetime, timezone
import uuid

KEEP_RUNS = 20


def default_log_dir() -> Path:
    return Path.home() / ".hostprep" / "logs"


def _prune(base_dir: Path, name: str, keep: int) -> None:
    # timestamped names sort chronologically
    logs = sorted(base_dir.glob(f"{name}-*.log"))
    for path in logs[: max(len(logs) - keep, 0)]:
        path.unlink(missing_ok=True)


def init_logging(
    *,
    base_dir: Path | None = None,
    name: str = "hostprep",
    verbose: bool = False,
    keep: int = KEEP_RUNS,
) -> tuple[logging.Logger, str, Path]:
    """
    Set up the ``hostprep`` logger for one run and return
    ``(logger, run_id, log_path)``.

    The run log file gets every command with its exit code and output.
    The console gets ``[LEVEL] message`` lines at INFO, or DEBUG with
    ``verbose``. Only the newest ``keep`` run logs are kept in ``base_dir``.
    """
    run_id = str(uuid.uuid4())

    base_dir = base_dir or default_log_dir()
    base_dir.mkdir(parents=True, exist_ok=True)
    _prune(base_dir, name, keep - 1)

    ts = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    log_path = base_dir / f"{name}-{ts}-{run_id}.log"

    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    for h in list(logger.handlers):
        h.close()
    logger.handlers.clear()
    logger.propagate = False

    fh = logging.FileHandler(log_path)
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(logging.Formatter(
        f"%(asctime)s | {run_id[:8]} | %(levelname)-7s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))

    ch = logging.StreamHandler()
    ch.setLevel(logging.DEBUG if verbose else logging.INFO)
    ch.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))

    logger.addHandler(fh)
    logger.addHandler(ch)

    logger.debug("run_id=%s log_file=%s", run_id, log_path)
    return logger, run_id, log_path
