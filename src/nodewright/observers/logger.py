# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/nodewright/observers/logger.py
from __future__ import annotations

import logging

from .events import (
    BaseEvent,
    LifecycleEvent,
    PowerStateFailed,
    PowerStatePolled,
    PowerStateSubmitGaveUp,
    PowerStateTimedOut,
    ProvisionStateFailed,
    ProvisionStatePolled,
    ProvisionStateTimedOut,
    UpdateConflictRetry,
)

# retries and polls are chatty; they only reach the per-run file
_DEBUG_EVENTS = (UpdateConflictRetry, PowerStatePolled, ProvisionStatePolled)
_WARNING_EVENTS = (PowerStateSubmitGaveUp,)
_ERROR_EVENTS = (PowerStateFailed, PowerStateTimedOut, ProvisionStateFailed, ProvisionStateTimedOut)

_CONTEXT = ("ts", "run_id", "endpoint", "node_id")


def level_for(event: BaseEvent) -> int:
    if isinstance(event, LifecycleEvent):
        return logging.ERROR if event.status == "FAILURE" else logging.INFO
    if isinstance(event, _DEBUG_EVENTS):
        return logging.DEBUG
    if isinstance(event, _WARNING_EVENTS):
        return logging.WARNING
    if isinstance(event, _ERROR_EVENTS):
        return logging.ERROR
    return logging.INFO


class LoggerObserver:
    """Write events to the run logger, one line each, prefixed with the node."""

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def notify(self, event: BaseEvent) -> None:
        d = event.dict()
        node_id = d.get("node_id")
        fields = ", ".join(f"{k}={v}" for k, v in d.items() if k not in _CONTEXT)
        prefix = f"[node {node_id}] " if node_id else ""
        self.logger.log(level_for(event), f"{prefix}{event.__class__.__name__}: {fields}")
