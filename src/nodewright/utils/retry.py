# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/nodewright/utils/retry.py

from __future__ import annotations

import functools
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from nodewright.errors import ConflictError

log = logging.getLogger("nodewright")

T = TypeVar("T")

MAX_ATTEMPTS = 5
INITIAL_DELAY_S = 5.0


@dataclass
class RetryState:
    attempt: int = 0          # 0-based index of the attempt that just failed
    delay: float = INITIAL_DELAY_S


def call_with_conflict_retry(
    operation: Callable[[], T],
    *,
    attempts: int = MAX_ATTEMPTS,
    initial_delay: float = INITIAL_DELAY_S,
    sleep: Callable[[float], None] = time.sleep,
    on_retry: Optional[Callable[[RetryState, ConflictError], None]] = None,
    label: str = "update",
) -> T:
    """
    Run an idempotent update, retrying while the service answers "busy".

    Only ConflictError is retried; the delay doubles after every conflict
    (5s, 10s, 20s, 40s with the defaults). Any other exception propagates
    on first sight. When every attempt hit a conflict the last
    ConflictError is raised as-is so the caller can decide what it means.

    on_retry: callback(state, exc), called before each wait
    """
    state = RetryState(attempt=0, delay=initial_delay)
    while True:
        try:
            return operation()
        except ConflictError as exc:
            if state.attempt + 1 >= attempts:
                log.debug(
                    "%s: service still busy after %d attempts, giving up",
                    label, attempts,
                )
                raise
            log.debug(
                "%s: service is busy, will try again in %ss (attempt %d/%d)",
                label, state.delay, state.attempt + 1, attempts,
            )
            if on_retry:
                try:
                    on_retry(state, exc)
                except Exception:
                    log.debug("%s: on_retry callback failed", label, exc_info=True)
            sleep(state.delay)
            state.attempt += 1
            state.delay *= 2


def retry_on_conflict(
    *,
    attempts: int = MAX_ATTEMPTS,
    initial_delay: float = INITIAL_DELAY_S,
    sleep: Callable[[float], None] = time.sleep,
):
    """
    Decorator form of call_with_conflict_retry.
    """

    def decorator(fn):
        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            return call_with_conflict_retry(
                lambda: fn(*args, **kwargs),
                attempts=attempts,
                initial_delay=initial_delay,
                sleep=sleep,
                label=fn.__name__,
            )
        return wrapper
    return decorator
