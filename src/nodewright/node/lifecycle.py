# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/nodewright/node/lifecycle.py

from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional

from nodewright.config.models import STRING_FIELDS, NodeSpec
from nodewright.errors import UpstreamError
from nodewright.ironic.models import Node
from nodewright.ironic.sensitive import merge_driver_info
from nodewright.node.cleaning import build_manual_cleaning_steps
from nodewright.node.power import PowerStateOrchestrator
from nodewright.node.provision import ProvisionStateDriver
from nodewright.node.raid import set_raid_config
from nodewright.observers.dispatcher import EventBus
from nodewright.observers.events import (
    new_ctx,
    NodeCreated,
    NodeDeleted,
    NodeFieldUpdated,
    PortCreated,
    UpdateConflictRetry,
)
from nodewright.utils.retry import INITIAL_DELAY_S, call_with_conflict_retry

log = logging.getLogger("nodewright")


class NodeLifecycle:
    """
    Create, update and delete a node, driving the service's state machine.

    Steps always run in this order, and each one waits for the previous
    transition to settle:

        manage -> RAID config + clean -> inspect -> provide -> power
    """

    def __init__(
        self,
        client,
        *,
        power: Optional[PowerStateOrchestrator] = None,
        provision: Optional[ProvisionStateDriver] = None,
        bus: Optional[EventBus] = None,
        run_ctx: Optional[dict] = None,
        sleep: Callable[[float], None] = time.sleep,
        retry_delay: float = INITIAL_DELAY_S,
    ):
        self.client = client
        self.bus = bus or EventBus()
        self.run_ctx = run_ctx or new_ctx(endpoint=getattr(client, "endpoint", None))
        self.sleep = sleep
        self.retry_delay = retry_delay
        self.power = power or PowerStateOrchestrator(
            client, bus=self.bus, run_ctx=self.run_ctx, sleep=sleep, retry_delay=retry_delay
        )
        self.provision = provision or ProvisionStateDriver(
            client, bus=self.bus, run_ctx=self.run_ctx, sleep=sleep, retry_delay=retry_delay
        )

    # -----------------------
    # Create / read / delete
    # -----------------------
    def create(self, spec: NodeSpec) -> Node:
        node = self.client.create_node(spec.to_create_body())
        node_id = node.uuid
        log.debug(f"Node created with ID {node_id}")
        self.bus.emit(NodeCreated(node_id=node_id, name=spec.name, **self.run_ctx))

        for port in spec.ports:
            self.client.create_port(
                {"node_uuid": node_id, "address": port.address, "pxe_enabled": port.pxe_enabled}
            )
            self.bus.emit(PortCreated(node_id=node_id, address=port.address, **self.run_ctx))

        if spec.manage or spec.clean or spec.inspect:
            self._transition(node_id, "manage", "could not manage")

        if spec.clean:
            self._clean(node_id, spec)

        if spec.inspect:
            self._transition(node_id, "inspect", "could not inspect")

        if spec.available:
            self._transition(node_id, "provide", "could not make node available")

        if spec.target_power_state:
            self.power.change_power_state(node_id, spec.target_power_state, spec.power_state_timeout)

        return self.read(node_id)

    def read(self, node_id: str) -> Node:
        return self.client.get_node(node_id)

    def delete(self, node_id: str) -> None:
        self.provision.change_provision_state_to_target(node_id, "deleted")
        self.client.delete_node(node_id)
        self.bus.emit(NodeDeleted(node_id=node_id, **self.run_ctx))

    # -----------------------
    # Update
    # -----------------------
    def update(self, node_id: str, old: NodeSpec, new: NodeSpec) -> Node:
        """Apply the changes between *old* and *new* to an existing node."""
        for field in STRING_FIELDS:
            if getattr(old, field) != getattr(new, field):
                self.patch(node_id, [{"op": "replace", "path": f"/{field}", "value": getattr(new, field) or ""}])

        if new.driver_info != old.driver_info:
            self.patch(node_id, [{"op": "add", "path": "/driver_info", "value": dict(new.driver_info)}])

        if (
            (new.manage and not old.manage)
            or (new.clean and not old.clean)
            or (new.inspect and not old.inspect)
        ):
            self._transition(node_id, "manage", "could not manage")

        if new.target_power_state and new.target_power_state != old.target_power_state:
            current = self.client.get_node(node_id)
            if current.power_state.value != new.target_power_state:
                self.power.change_power_state(node_id, new.target_power_state, new.power_state_timeout)

        if new.clean and not old.clean:
            self._clean(node_id, new)

        if new.inspect and not old.inspect:
            self._transition(node_id, "inspect", "could not inspect")

        if new.available and not old.available:
            self._transition(node_id, "provide", "could not make node available")

        if new.properties != old.properties or new.root_device != old.root_device:
            self.patch(node_id, [{"op": "add", "path": "/properties", "value": new.merged_properties()}])

        return self.read(node_id)

    def patch(self, node_id: str, ops: list) -> Node:
        """PATCH the node, retrying while the service is busy."""
        path = ",".join(op["path"] for op in ops)

        def on_retry(state, exc):
            self.bus.emit(
                UpdateConflictRetry(
                    node_id=node_id,
                    operation=f"patch:{path}",
                    attempt=state.attempt + 1,
                    delay_s=state.delay,
                    **self.run_ctx,
                )
            )

        node = call_with_conflict_retry(
            lambda: self.client.update_node(node_id, ops),
            initial_delay=self.retry_delay,
            sleep=self.sleep,
            on_retry=on_retry,
            label=f"patch {node_id}",
        )
        self.bus.emit(NodeFieldUpdated(node_id=node_id, path=path, **self.run_ctx))
        return node

    # -----------------------
    # Helpers
    # -----------------------
    def _clean(self, node_id: str, spec: NodeSpec) -> None:
        # validate both inputs before touching the node
        steps = build_manual_cleaning_steps(spec.raid_interface, spec.raid_config, spec.bios_settings)
        try:
            set_raid_config(
                self.client,
                node_id,
                spec.raid_config,
                spec.raid_interface,
                spec.root_device,
                bus=self.bus,
                run_ctx=self.run_ctx,
                sleep=self.sleep,
                initial_delay=self.retry_delay,
            )
        except UpstreamError:
            log.error(f"Failed to set RAID config on node {node_id}")
            raise
        self._transition(node_id, "clean", "could not clean", clean_steps=steps)

    def _transition(self, node_id: str, target: str, what: str, **kwargs) -> None:
        try:
            self.provision.change_provision_state_to_target(node_id, target, **kwargs)
        except UpstreamError:
            log.error(f"{what}: node {node_id}")
            raise


def driver_info_drift(spec: NodeSpec, node: Node) -> List[str]:
    """
    Keys whose reported driver_info differs from the desired one.

    Values the service masks (passwords) are not reported as drift.
    """
    reported = merge_driver_info(spec.driver_info, node.driver_info)
    keys = set(spec.driver_info) | set(reported)
    return sorted(k for k in keys if spec.driver_info.get(k) != reported.get(k))
