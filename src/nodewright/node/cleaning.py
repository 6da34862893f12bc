# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/nodewright/node/cleaning.py

from __future__ import annotations

import json
from typing import Any, List, Optional, Sequence, Union

import pydantic
from pydantic import BaseModel, TypeAdapter

from nodewright.errors import ValidationError
from nodewright.ironic.models import CleanStep
from nodewright.node.raid import RAIDInput, build_raid_clean_steps, parse_raid_config


class BIOSSetting(BaseModel):
    name: str
    value: str

    model_config = {"extra": "forbid"}


_BIOS_LIST = TypeAdapter(List[BIOSSetting])

BIOSInput = Union[str, Sequence[Any], None]


def parse_bios_settings(raw: BIOSInput) -> Optional[List[BIOSSetting]]:
    """Validate BIOS settings; empty input returns None."""
    if raw is None:
        return None
    if isinstance(raw, str):
        if not raw.strip():
            return None
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ValidationError(f"bios_settings is not valid JSON: {exc}") from exc
    try:
        settings = _BIOS_LIST.validate_python(raw)
    except pydantic.ValidationError as exc:
        raise ValidationError(f"invalid bios_settings: {exc}") from exc
    return settings or None


def build_manual_cleaning_steps(
    raid_interface: Optional[str],
    raid_config: RAIDInput,
    bios_settings: BIOSInput,
) -> List[CleanStep]:
    """
    Assemble the manual clean steps: RAID steps first, then one BIOS step.

    Both inputs are validated before any step is built, so a bad input
    never yields a partial list.
    """
    raid = parse_raid_config(raid_config)
    settings = parse_bios_settings(bios_settings)

    steps: List[CleanStep] = []
    if raid is not None:
        steps.extend(build_raid_clean_steps(raid_interface, raid))

    if settings:
        steps.append(
            CleanStep(
                interface="bios",
                step="apply_configuration",
                args={"settings": [s.model_dump() for s in settings]},
            )
        )
    return steps
