# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/nodewright/node/raid.py

from __future__ import annotations

import json
import logging
import time
from collections.abc import Mapping
from typing import Any, Callable, Dict, List, Literal, Optional, Union

import pydantic
from pydantic import BaseModel, Field

from nodewright.errors import ValidationError
from nodewright.ironic.models import CleanStep, LogicalDisk
from nodewright.observers.dispatcher import EventBus
from nodewright.observers.events import new_ctx, RAIDConfigApplied, UpdateConflictRetry
from nodewright.utils.retry import INITIAL_DELAY_S, call_with_conflict_retry

log = logging.getLogger("nodewright")

NO_RAID_INTERFACE = "no-raid"
SOFTWARE_RAID_INTERFACE = "agent"
SOFTWARE_RAID_CONTROLLER = "software"


# ---------------------------------------------------------------------
# Declarative RAID specification (metal3 RAIDConfig layout)
# ---------------------------------------------------------------------
class HardwareRAIDVolume(BaseModel):
    size_gibibytes: int = Field(alias="sizeGibibytes", gt=0)
    level: Literal["0", "1", "2", "5", "6", "1+0", "5+0", "6+0"]
    name: Optional[str] = None
    rotational: Optional[bool] = None
    number_of_physical_disks: Optional[int] = Field(default=None, alias="numberOfPhysicalDisks", ge=1)
    controller: Optional[str] = None
    physical_disks: List[str] = Field(default_factory=list, alias="physicalDisks")

    model_config = {"extra": "forbid", "populate_by_name": True}


class SoftwareRAIDVolume(BaseModel):
    size_gibibytes: int = Field(alias="sizeGibibytes", gt=0)
    level: Literal["0", "1", "1+0"]
    # root device hints for the member disks
    physical_disks: List[Dict[str, Any]] = Field(default_factory=list, alias="physicalDisks")

    model_config = {"extra": "forbid", "populate_by_name": True}


class RAIDConfig(BaseModel):
    # None (key absent) and [] differ: [] still wipes the existing configuration
    hardware_volumes: Optional[List[HardwareRAIDVolume]] = Field(default=None, alias="hardwareRAIDVolumes")
    software_volumes: Optional[List[SoftwareRAIDVolume]] = Field(
        default=None, alias="softwareRAIDVolumes", max_length=2
    )

    model_config = {"extra": "forbid", "populate_by_name": True}

    @property
    def empty(self) -> bool:
        return not self.hardware_volumes and not self.software_volumes


RAIDInput = Union[str, Mapping[str, Any], RAIDConfig, None]


def parse_raid_config(raw: RAIDInput) -> Optional[RAIDConfig]:
    """
    Validate a RAID specification once, at the boundary.

    Accepts JSON text, an already-decoded mapping or a RAIDConfig.
    Empty input means "no RAID configuration" and returns None.
    """
    if raw is None or isinstance(raw, RAIDConfig):
        return raw
    if isinstance(raw, str):
        if not raw.strip():
            return None
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ValidationError(f"raid_config is not valid JSON: {exc}") from exc
    if not isinstance(raw, Mapping):
        raise ValidationError(f"raid_config must be an object, got {type(raw).__name__}")
    try:
        return RAIDConfig.model_validate(dict(raw))
    except pydantic.ValidationError as exc:
        raise ValidationError(f"invalid raid_config: {exc}") from exc


# ---------------------------------------------------------------------
# Interface check & translation
# ---------------------------------------------------------------------
def check_raid_interface(raid_interface: Optional[str], raid: Optional[RAIDConfig]) -> None:
    if raid is None:
        return
    if raid_interface == NO_RAID_INTERFACE:
        if not raid.empty:
            raise ValidationError(
                f"raid interface is '{NO_RAID_INTERFACE}', but the RAID configuration is not empty"
            )
    elif raid_interface == SOFTWARE_RAID_INTERFACE:
        if raid.hardware_volumes:
            raise ValidationError(
                f"raid interface is '{SOFTWARE_RAID_INTERFACE}', but hardware RAID volumes are requested"
            )
    elif raid.software_volumes:
        raise ValidationError(
            f"raid interface '{raid_interface}' is a hardware RAID interface, "
            "but software RAID volumes are requested"
        )


def _hardware_disks(volumes: List[HardwareRAIDVolume]) -> List[LogicalDisk]:
    disks = []
    for volume in volumes:
        disk = LogicalDisk(
            size_gb=volume.size_gibibytes,
            raid_level=volume.level,
            volume_name=volume.name,
            number_of_physical_disks=volume.number_of_physical_disks,
            controller=volume.controller,
            physical_disks=list(volume.physical_disks) or None,
        )
        if volume.rotational is not None:
            disk.disk_type = "hdd" if volume.rotational else "ssd"
        disks.append(disk)
    return disks


def _software_disks(volumes: List[SoftwareRAIDVolume]) -> List[LogicalDisk]:
    if volumes and volumes[0].level != "1":
        raise ValidationError("the first software RAID volume must be RAID level 1")
    return [
        LogicalDisk(
            size_gb=volume.size_gibibytes,
            raid_level=volume.level,
            controller=SOFTWARE_RAID_CONTROLLER,
            physical_disks=list(volume.physical_disks) or None,
        )
        for volume in volumes
    ]


def build_target_raid_config(
    raid: Optional[RAIDConfig],
    raid_interface: Optional[str],
    root_device_hints: Optional[Mapping[str, Any]] = None,
) -> List[LogicalDisk]:
    """
    Translate declared volumes into ordered logical disks.

    Without root device hints the first disk becomes the root volume; with
    hints the hints decide and no disk is marked. No volumes is a no-op.
    """
    check_raid_interface(raid_interface, raid)
    if raid is None:
        return []

    if raid.hardware_volumes:
        disks = _hardware_disks(raid.hardware_volumes)
    else:
        disks = _software_disks(raid.software_volumes or [])

    if not disks:
        return disks

    if not root_device_hints:
        disks[0].is_root_volume = True
    else:
        log.info("root device hints are set, the first RAID volume will not be marked as root")
    return disks


# ---------------------------------------------------------------------
# Clean steps
# ---------------------------------------------------------------------
_CREATE_ARGS = {"create_root_volume": True, "create_nonroot_volumes": True}


def build_raid_clean_steps(raid_interface: Optional[str], raid: Optional[RAIDConfig]) -> List[CleanStep]:
    check_raid_interface(raid_interface, raid)
    if raid_interface == NO_RAID_INTERFACE or raid is None:
        return []

    volumes = raid.software_volumes if raid_interface == SOFTWARE_RAID_INTERFACE else raid.hardware_volumes
    if volumes is None:
        return []

    steps = [CleanStep(interface="raid", step="delete_configuration")]
    if raid_interface == SOFTWARE_RAID_INTERFACE:
        steps.append(CleanStep(interface="deploy", step="erase_devices_metadata"))
    if not volumes:
        return steps

    steps.append(CleanStep(interface="raid", step="create_configuration", args=dict(_CREATE_ARGS)))
    return steps


# ---------------------------------------------------------------------
# Service call
# ---------------------------------------------------------------------
def set_raid_config(
    client,
    node_id: str,
    raid_config: RAIDInput,
    raid_interface: Optional[str],
    root_device_hints: Optional[Mapping[str, Any]] = None,
    *,
    bus: Optional[EventBus] = None,
    run_ctx: Optional[dict] = None,
    sleep: Callable[[float], None] = time.sleep,
    initial_delay: float = INITIAL_DELAY_S,
) -> List[LogicalDisk]:
    """
    Set the node's target RAID configuration ahead of cleaning.

    Returns the submitted logical disks (empty when nothing was sent).
    """
    raid = parse_raid_config(raid_config)
    if raid is None:
        return []

    disks = build_target_raid_config(raid, raid_interface, root_device_hints)
    if not disks:
        return []

    bus = bus or EventBus()
    ctx = run_ctx or new_ctx(endpoint=getattr(client, "endpoint", None))

    def on_retry(state, exc):
        bus.emit(
            UpdateConflictRetry(
                node_id=node_id, operation="raid", attempt=state.attempt + 1, delay_s=state.delay, **ctx
            )
        )

    call_with_conflict_retry(
        lambda: client.set_raid_config(node_id, disks),
        initial_delay=initial_delay,
        sleep=sleep,
        on_retry=on_retry,
        label=f"raid {node_id}",
    )
    bus.emit(
        RAIDConfigApplied(
            node_id=node_id,
            logical_disks=len(disks),
            root_volume=any(d.is_root_volume for d in disks),
            **ctx,
        )
    )
    return disks
