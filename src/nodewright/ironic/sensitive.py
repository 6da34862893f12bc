# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/nodewright/ironic/sensitive.py
from __future__ import annotations

from typing import Any, Dict, Mapping

# driver_info keys the service masks unless its show_password policy is relaxed.
# Only ipmi, ilo, drac and redfish drivers are covered.
DRIVER_SENSITIVE_KEYS = frozenset({
    "ipmi_password",
    "ilo_password",
    "snmp_auth_prot_password",
    "snmp_auth_priv_password",
    "drac_password",
    "redfish_password",
})

MASKED_VALUE = "******"


def is_masked(key: str, reported: Any) -> bool:
    """
    True when *reported* is the service's mask for a sensitive driver_info key.

    Accepts either the bare key or the "driver_info.<key>" form.
    """
    if key.startswith("driver_info."):
        key = key[len("driver_info."):]
    return key in DRIVER_SENSITIVE_KEYS and reported == MASKED_VALUE


def merge_driver_info(desired: Mapping[str, Any], reported: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Take the reported driver_info, but keep desired secrets wherever the
    service masked them, so a masked password never reads as drift.
    """
    merged = dict(reported)
    for key, value in reported.items():
        if is_masked(key, value) and key in desired:
            merged[key] = desired[key]
    return merged
