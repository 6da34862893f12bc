# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/nodewright/config/models.py

from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field

from nodewright.ironic.client import DEFAULT_MICROVERSION
from nodewright.node.provision import DEFAULT_PROVISION_TIMEOUT_S

# Plain string attributes that are sent as-is on create and replaced one by
# one on update.
STRING_FIELDS = (
    "boot_interface",
    "conductor_group",
    "console_interface",
    "deploy_interface",
    "driver",
    "inspect_interface",
    "management_interface",
    "name",
    "network_interface",
    "owner",
    "power_interface",
    "raid_interface",
    "rescue_interface",
    "resource_class",
    "storage_interface",
    "vendor_interface",
)


class IronicSettings(BaseModel):
    """Where and how to reach the bare-metal service."""

    endpoint: str
    token: Optional[str] = None
    microversion: str = DEFAULT_MICROVERSION
    verify_tls: bool = True
    request_timeout: int = 30
    provision_timeout: int = DEFAULT_PROVISION_TIMEOUT_S

    model_config = {"extra": "forbid"}


class PortSpec(BaseModel):
    address: str
    pxe_enabled: bool = False

    model_config = {"extra": "forbid"}


class NodeSpec(BaseModel):
    """Desired state of one node."""

    name: Optional[str] = None
    driver: str

    boot_interface: Optional[str] = None
    console_interface: Optional[str] = None
    deploy_interface: Optional[str] = None
    inspect_interface: Optional[str] = None
    management_interface: Optional[str] = None
    network_interface: Optional[str] = None
    power_interface: Optional[str] = None
    raid_interface: Optional[str] = None
    rescue_interface: Optional[str] = None
    storage_interface: Optional[str] = None
    vendor_interface: Optional[str] = None
    conductor_group: Optional[str] = None
    resource_class: Optional[str] = None
    owner: Optional[str] = None

    driver_info: Dict[str, Any] = Field(default_factory=dict)
    properties: Dict[str, Any] = Field(default_factory=dict)
    root_device: Dict[str, Any] = Field(default_factory=dict)
    extra: Dict[str, Any] = Field(default_factory=dict)
    ports: List[PortSpec] = Field(default_factory=list)

    # lifecycle switches, applied in this order: manage, clean, inspect, available
    manage: bool = False
    clean: bool = False
    inspect: bool = False
    available: bool = False

    target_power_state: Optional[str] = None
    power_state_timeout: int = 0      # 0 = default (300s)

    # JSON text or already-decoded YAML
    raid_config: Union[str, Dict[str, Any], None] = None
    bios_settings: Union[str, List[Dict[str, Any]], None] = None

    model_config = {"extra": "forbid"}

    def merged_properties(self) -> Dict[str, Any]:
        properties = dict(self.properties)
        properties["root_device"] = dict(self.root_device)
        return properties

    def to_create_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {}
        for field in STRING_FIELDS:
            value = getattr(self, field)
            if value:
                body[field] = value
        body["driver_info"] = dict(self.driver_info)
        body["extra"] = dict(self.extra)
        body["properties"] = self.merged_properties()
        return body


class NodewrightConfig(BaseModel):
    ironic: IronicSettings
    nodes: Dict[str, NodeSpec] = Field(default_factory=dict)

    model_config = {"extra": "forbid"}
