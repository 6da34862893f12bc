# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/nodewright/ironic/models.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class PowerState(str, Enum):
    ON = "power on"
    OFF = "power off"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Optional[str]) -> "PowerState":
        for member in cls:
            if member.value == value:
                return member
        return cls.UNKNOWN


# Values accepted by PUT /v1/nodes/{id}/states/power
POWER_TARGETS = frozenset({
    "power on",
    "power off",
    "rebooting",
    "soft power off",
    "soft rebooting",
})


@dataclass(frozen=True)
class Node:
    """
    Snapshot of a node as reported by the bare-metal service.

    target_power_state is the service's own completion signal: it is set
    while a power change is in flight and cleared (null/"") once done.
    """
    uuid: str
    name: Optional[str] = None
    power_state: PowerState = PowerState.UNKNOWN
    target_power_state: Optional[str] = None
    provision_state: Optional[str] = None
    target_provision_state: Optional[str] = None
    last_error: Optional[str] = None
    raid_interface: Optional[str] = None
    properties: Dict[str, Any] = field(default_factory=dict)
    driver_info: Dict[str, Any] = field(default_factory=dict)
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def power_transition_pending(self) -> bool:
        return bool(self.target_power_state)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Node":
        return cls(
            uuid=data["uuid"],
            name=data.get("name"),
            power_state=PowerState.parse(data.get("power_state")),
            target_power_state=data.get("target_power_state"),
            provision_state=data.get("provision_state"),
            target_provision_state=data.get("target_provision_state"),
            last_error=data.get("last_error"),
            raid_interface=data.get("raid_interface"),
            properties=dict(data.get("properties") or {}),
            driver_info=dict(data.get("driver_info") or {}),
            raw=data,
        )


@dataclass
class LogicalDisk:
    size_gb: int
    raid_level: str
    is_root_volume: bool = False
    volume_name: Optional[str] = None
    disk_type: Optional[str] = None               # "hdd" | "ssd"
    number_of_physical_disks: Optional[int] = None
    controller: Optional[str] = None
    physical_disks: Optional[List[Any]] = None

    def to_api(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "size_gb": self.size_gb,
            "raid_level": self.raid_level,
        }
        if self.is_root_volume:
            out["is_root_volume"] = True
        for key in (
            "volume_name",
            "disk_type",
            "number_of_physical_disks",
            "controller",
            "physical_disks",
        ):
            value = getattr(self, key)
            if value is not None:
                out[key] = value
        return out


@dataclass(frozen=True)
class CleanStep:
    interface: str
    step: str
    args: Dict[str, Any] = field(default_factory=dict)

    def to_api(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"interface": self.interface, "step": self.step}
        if self.args:
            out["args"] = self.args
        return out
