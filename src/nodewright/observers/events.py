# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/nodewright/observers/events.py

from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import Dict, Any, Optional
from datetime import datetime, timezone
import uuid


# ---------------------------------------------------------------------
# Base context and helper
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class BaseEvent:
    ts: str                   # ISO timestamp
    run_id: str               # correlates all events in a single invocation
    endpoint: Optional[str]   # bare-metal service endpoint

    def dict(self) -> Dict[str, Any]:
        return asdict(self)


def new_ctx(endpoint: Optional[str] = None, run_id: Optional[str] = None) -> Dict[str, Any]:
    return {
        "ts": datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z"),
        "run_id": run_id or str(uuid.uuid4()),
        "endpoint": endpoint,
    }


# ---------------------------------------------------------------------
# Busy-retry
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class UpdateConflictRetry(BaseEvent):
    node_id: str
    operation: str
    attempt: int       # 1-based attempt that hit the conflict
    delay_s: float


# ---------------------------------------------------------------------
# Power state lifecycle
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class PowerStateRequested(BaseEvent):
    node_id: str
    target: str
    timeout_s: int

@dataclass(frozen=True)
class PowerStateSubmitGaveUp(BaseEvent):
    node_id: str
    target: str
    error: str

@dataclass(frozen=True)
class PowerStatePolled(BaseEvent):
    node_id: str
    poll: int
    power_state: Optional[str]
    target_power_state: Optional[str]
    remaining_s: int

@dataclass(frozen=True)
class PowerStateReached(BaseEvent):
    node_id: str
    power_state: Optional[str]
    polls: int
    duration_ms: int

@dataclass(frozen=True)
class PowerStateTimedOut(BaseEvent):
    node_id: str
    target: str
    timeout_s: int
    polls: int

@dataclass(frozen=True)
class PowerStateFailed(BaseEvent):
    node_id: str
    error: str


# ---------------------------------------------------------------------
# Provision state lifecycle
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class ProvisionStateRequested(BaseEvent):
    node_id: str
    target: str
    clean_steps: int = 0

@dataclass(frozen=True)
class ProvisionStateSkipped(BaseEvent):
    node_id: str
    target: str
    reason: str

@dataclass(frozen=True)
class ProvisionStatePolled(BaseEvent):
    node_id: str
    provision_state: Optional[str]
    target_provision_state: Optional[str]
    remaining_s: int

@dataclass(frozen=True)
class ProvisionStateReached(BaseEvent):
    node_id: str
    target: str
    provision_state: str
    duration_ms: int

@dataclass(frozen=True)
class ProvisionStateFailed(BaseEvent):
    node_id: str
    target: str
    error: str

@dataclass(frozen=True)
class ProvisionStateTimedOut(BaseEvent):
    node_id: str
    target: str
    timeout_s: int


# ---------------------------------------------------------------------
# Node resources
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class NodeCreated(BaseEvent):
    node_id: str
    name: Optional[str]

@dataclass(frozen=True)
class PortCreated(BaseEvent):
    node_id: str
    address: str

@dataclass(frozen=True)
class NodeFieldUpdated(BaseEvent):
    node_id: str
    path: str

@dataclass(frozen=True)
class RAIDConfigApplied(BaseEvent):
    node_id: str
    logical_disks: int
    root_volume: bool

@dataclass(frozen=True)
class NodeDeleted(BaseEvent):
    node_id: str


@dataclass(frozen=True)
class LifecycleEvent(BaseEvent):
    phase: str
    status: str       # "START" | "SUCCESS" | "FAILURE"
    message: str
