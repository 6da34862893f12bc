# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/nodewright/logging/log.py

from __future__ import annotations

import logging
import shutil
import uuid
from datetime import datetime, timezone
from pathlib import Path

RUNS_TO_KEEP = 20

LOG_FILE = "nodewright.log"
EVENTS_FILE = "events.jsonl"


class RunIdFilter(logging.Filter):
    """Stamp records with a short run id so interleaved runs can be told apart."""

    def __init__(self, run_id: str):
        super().__init__()
        self.short_id = run_id[:8]

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = self.short_id
        return True


def _prune_runs(base_dir: Path, current: Path, keep: int) -> None:
    if keep <= 0:
        return
    older = sorted(
        (p for p in base_dir.iterdir() if p.is_dir() and p != current),
        key=lambda p: p.stat().st_mtime,
    )
    for stale in older[: max(len(older) - (keep - 1), 0)]:
        shutil.rmtree(stale, ignore_errors=True)


def init_logging(
    *,
    base_dir: Path | None = None,
    name: str = "nodewright",
    verbose: bool = False,
    run_id: str | None = None,
    keep_runs: int = RUNS_TO_KEEP,
) -> tuple[logging.Logger, str, Path]:
    """
    Set up logging for one CLI run.

    Each run gets its own directory under ``~/.nodewright/logs``:

        <utc timestamp>-<run id prefix>/
            nodewright.log   every retry and poll, at DEBUG
            events.jsonl     the event journal (written by JsonFileObserver)

    Only the newest ``keep_runs`` run directories are kept. The console
    shows INFO, or DEBUG with --debug.

    Returns (logger, run_id, log_path).
    """
    run_id = run_id or str(uuid.uuid4())

    if base_dir is None:
        base_dir = Path.home() / ".nodewright" / "logs"
    ts = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    run_dir = base_dir / f"{ts}-{run_id[:8]}"
    run_dir.mkdir(parents=True, exist_ok=True)
    _prune_runs(base_dir, run_dir, keep_runs)

    log_path = run_dir / LOG_FILE

    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    for h in list(logger.handlers):
        h.close()
        logger.removeHandler(h)
    logger.propagate = False

    run_filter = RunIdFilter(run_id)
    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)-7s | %(run_id)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    fh = logging.FileHandler(log_path, encoding="utf-8")
    fh.setLevel(logging.DEBUG)

    ch = logging.StreamHandler()
    ch.setLevel(logging.DEBUG if verbose else logging.INFO)

    for handler in (fh, ch):
        handler.setFormatter(formatter)
        handler.addFilter(run_filter)
        logger.addHandler(handler)

    logger.debug(f"run_id={run_id} log_file={log_path}")

    return logger, run_id, log_path
