# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/nodewright/node/power.py

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from nodewright.errors import ConflictError, PowerStateTimeout, ValidationError
from nodewright.ironic.models import POWER_TARGETS, Node
from nodewright.observers.dispatcher import EventBus
from nodewright.observers.events import (
    new_ctx,
    PowerStateRequested,
    PowerStateSubmitGaveUp,
    PowerStatePolled,
    PowerStateReached,
    PowerStateTimedOut,
    PowerStateFailed,
    UpdateConflictRetry,
)
from nodewright.utils.retry import INITIAL_DELAY_S, call_with_conflict_retry

log = logging.getLogger("nodewright")

DEFAULT_POWER_TIMEOUT_S = 300
POLL_INTERVAL_S = 5


class PowerPhase(str, Enum):
    SUBMITTING = "SUBMITTING"
    WAITING = "WAITING"
    SUCCEEDED = "SUCCEEDED"
    TIMED_OUT = "TIMED_OUT"
    FAILED = "FAILED"


@dataclass
class PowerChangeResult:
    node_id: str
    target: str
    phase: PowerPhase
    polls: int = 0
    elapsed_s: float = 0.0
    node: Optional[Node] = None


def effective_timeout(timeout: Optional[int]) -> int:
    return timeout if timeout else DEFAULT_POWER_TIMEOUT_S


class PowerStateOrchestrator:
    """
    Submit a target power state, then wait for the service to finish it.

    Phases: SUBMITTING -> WAITING -> SUCCEEDED | TIMED_OUT | FAILED.

    The service clears target_power_state once the change is done, so that
    is the completion signal. The budget is counted in poll intervals, not
    wall-clock time: every poll that still sees a pending target costs one
    interval, and the wait fails once the budget reaches zero.

    Only a busy answer that outlasts every retry moves on to waiting; any
    other submit error propagates at once and nothing is polled.

    Blocks the calling thread; there is no cancellation.
    """

    def __init__(
        self,
        client,
        *,
        bus: Optional[EventBus] = None,
        run_ctx: Optional[dict] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        poll_interval: int = POLL_INTERVAL_S,
        retry_delay: float = INITIAL_DELAY_S,
    ):
        self.client = client
        self.bus = bus or EventBus()
        self.run_ctx = run_ctx or new_ctx(endpoint=getattr(client, "endpoint", None))
        self.sleep = sleep
        self.clock = clock
        self.poll_interval = poll_interval
        self.retry_delay = retry_delay
        self.phase: Optional[PowerPhase] = None

    def change_power_state(
        self,
        node_id: str,
        target: str,
        timeout: Optional[int] = None,
    ) -> PowerChangeResult:
        if target not in POWER_TARGETS:
            raise ValidationError(
                f"Unsupported target power state '{target}' "
                f"(valid: {', '.join(sorted(POWER_TARGETS))})"
            )

        started = self.clock()
        budget = effective_timeout(timeout)

        self.phase = PowerPhase.SUBMITTING
        self.bus.emit(PowerStateRequested(node_id=node_id, target=target, timeout_s=budget, **self.run_ctx))
        self._submit(node_id, target, timeout)

        self.phase = PowerPhase.WAITING
        polls = 0
        remaining = budget
        while True:
            try:
                node = self.client.get_node(node_id)
            except Exception as exc:
                self.phase = PowerPhase.FAILED
                self.bus.emit(PowerStateFailed(node_id=node_id, error=str(exc), **self.run_ctx))
                raise
            polls += 1
            self.bus.emit(
                PowerStatePolled(
                    node_id=node_id,
                    poll=polls,
                    power_state=node.power_state.value,
                    target_power_state=node.target_power_state,
                    remaining_s=remaining,
                    **self.run_ctx,
                )
            )

            if not node.power_transition_pending:
                self.phase = PowerPhase.SUCCEEDED
                elapsed = self.clock() - started
                self.bus.emit(
                    PowerStateReached(
                        node_id=node_id,
                        power_state=node.power_state.value,
                        polls=polls,
                        duration_ms=int(elapsed * 1000),
                        **self.run_ctx,
                    )
                )
                log.info(f"Node {node_id} power state is now '{node.power_state.value}'")
                return PowerChangeResult(
                    node_id=node_id,
                    target=target,
                    phase=self.phase,
                    polls=polls,
                    elapsed_s=elapsed,
                    node=node,
                )

            self.sleep(self.poll_interval)
            remaining -= self.poll_interval
            if remaining <= 0:
                self.phase = PowerPhase.TIMED_OUT
                self.bus.emit(
                    PowerStateTimedOut(node_id=node_id, target=target, timeout_s=budget, polls=polls, **self.run_ctx)
                )
                raise PowerStateTimeout(
                    f"timed out waiting for power state change on node {node_id} "
                    f"(target '{target}', {budget}s)",
                    timeout_s=budget,
                )

    def _submit(self, node_id: str, target: str, timeout: Optional[int]) -> None:
        def on_retry(state, exc):
            self.bus.emit(
                UpdateConflictRetry(
                    node_id=node_id,
                    operation="power",
                    attempt=state.attempt + 1,
                    delay_s=state.delay,
                    **self.run_ctx,
                )
            )

        try:
            call_with_conflict_retry(
                lambda: self.client.change_power_state(node_id, target, timeout or None),
                initial_delay=self.retry_delay,
                sleep=self.sleep,
                on_retry=on_retry,
                label=f"power {node_id}",
            )
        except ConflictError as exc:
            # exhausted conflict still goes on to the wait phase
            log.warning(f"Failed to change power state on {node_id}: service still busy, waiting anyway")
            self.bus.emit(PowerStateSubmitGaveUp(node_id=node_id, target=target, error=str(exc), **self.run_ctx))
