# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/nodewright/node/provision.py

from __future__ import annotations

import logging
import time
from typing import Callable, Dict, FrozenSet, List, Optional

from nodewright.errors import ProvisionStateTimeout, UpstreamError, ValidationError
from nodewright.ironic.models import CleanStep, Node
from nodewright.observers.dispatcher import EventBus
from nodewright.observers.events import (
    new_ctx,
    ProvisionStateRequested,
    ProvisionStateSkipped,
    ProvisionStatePolled,
    ProvisionStateReached,
    ProvisionStateFailed,
    ProvisionStateTimedOut,
    UpdateConflictRetry,
)
from nodewright.utils.retry import INITIAL_DELAY_S, call_with_conflict_retry

log = logging.getLogger("nodewright")

DEFAULT_PROVISION_TIMEOUT_S = 3600
POLL_INTERVAL_S = 5

# Stable provision state(s) each transition ends in.
END_STATES: Dict[str, FrozenSet[str]] = {
    "manage": frozenset({"manageable"}),
    "clean": frozenset({"manageable"}),
    "inspect": frozenset({"manageable"}),
    "provide": frozenset({"available"}),
    "deleted": frozenset({"available", "manageable", "enroll"}),
}

# Transitions that must run even when the node already sits in the end state.
ALWAYS_SUBMIT = frozenset({"clean", "inspect"})


def _failed(node: Node) -> bool:
    state = node.provision_state or ""
    return state.endswith(" failed") or state == "error"


class ProvisionStateDriver:
    """
    Drive a node through one provision state transition and wait for it.

    Submission goes through the busy-retry wrapper; the driver then polls
    until the node settles in the transition's end state with no pending
    target, lands in a failed state, or the budget runs out. Callers must
    sequence transitions themselves (manage -> clean -> inspect -> provide);
    nothing here reorders them.
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
        timeout: int = DEFAULT_PROVISION_TIMEOUT_S,
        retry_delay: float = INITIAL_DELAY_S,
    ):
        self.client = client
        self.bus = bus or EventBus()
        self.run_ctx = run_ctx or new_ctx(endpoint=getattr(client, "endpoint", None))
        self.sleep = sleep
        self.clock = clock
        self.poll_interval = poll_interval
        self.timeout = timeout
        self.retry_delay = retry_delay

    def change_provision_state_to_target(
        self,
        node_id: str,
        target: str,
        *,
        clean_steps: Optional[List[CleanStep]] = None,
    ) -> Node:
        if target not in END_STATES:
            raise ValidationError(
                f"Unsupported provision target '{target}' (valid: {', '.join(sorted(END_STATES))})"
            )
        end_states = END_STATES[target]

        if target == "clean" and not clean_steps:
            # manual cleaning without steps is rejected by the service
            self.bus.emit(ProvisionStateSkipped(node_id=node_id, target=target, reason="no clean steps", **self.run_ctx))
            return self.client.get_node(node_id)

        node = self.client.get_node(node_id)
        if target not in ALWAYS_SUBMIT and node.provision_state in end_states and not node.target_provision_state:
            self.bus.emit(
                ProvisionStateSkipped(
                    node_id=node_id,
                    target=target,
                    reason=f"already {node.provision_state}",
                    **self.run_ctx,
                )
            )
            return node

        started = self.clock()
        self.bus.emit(
            ProvisionStateRequested(
                node_id=node_id,
                target=target,
                clean_steps=len(clean_steps or []),
                **self.run_ctx,
            )
        )
        log.info(f"Moving node {node_id} from '{node.provision_state}' with target '{target}'")
        self._submit(node_id, target, clean_steps)

        remaining = self.timeout
        while True:
            node = self.client.get_node(node_id)
            self.bus.emit(
                ProvisionStatePolled(
                    node_id=node_id,
                    provision_state=node.provision_state,
                    target_provision_state=node.target_provision_state,
                    remaining_s=remaining,
                    **self.run_ctx,
                )
            )

            if not node.target_provision_state:
                if node.provision_state in end_states:
                    self.bus.emit(
                        ProvisionStateReached(
                            node_id=node_id,
                            target=target,
                            provision_state=node.provision_state,
                            duration_ms=int((self.clock() - started) * 1000),
                            **self.run_ctx,
                        )
                    )
                    return node
                if _failed(node) or node.last_error:
                    error = node.last_error or f"node is in '{node.provision_state}'"
                    self.bus.emit(ProvisionStateFailed(node_id=node_id, target=target, error=error, **self.run_ctx))
                    raise UpstreamError(f"provision target '{target}' failed for node {node_id}: {error}")

            self.sleep(self.poll_interval)
            remaining -= self.poll_interval
            if remaining <= 0:
                self.bus.emit(ProvisionStateTimedOut(node_id=node_id, target=target, timeout_s=self.timeout, **self.run_ctx))
                raise ProvisionStateTimeout(
                    f"timed out waiting for node {node_id} to reach "
                    f"{'/'.join(sorted(end_states))} (target '{target}')",
                    timeout_s=self.timeout,
                )

    def _submit(self, node_id: str, target: str, clean_steps: Optional[List[CleanStep]]) -> None:
        def on_retry(state, exc):
            self.bus.emit(
                UpdateConflictRetry(
                    node_id=node_id,
                    operation=f"provision:{target}",
                    attempt=state.attempt + 1,
                    delay_s=state.delay,
                    **self.run_ctx,
                )
            )

        call_with_conflict_retry(
            lambda: self.client.set_provision_state(node_id, target, clean_steps=clean_steps),
            initial_delay=self.retry_delay,
            sleep=self.sleep,
            on_retry=on_retry,
            label=f"provision {node_id}",
        )
