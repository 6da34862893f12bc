# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/nodewright/ironic/client.py

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Sequence

import requests

from nodewright.errors import ConflictError, UpstreamError
from nodewright.ironic.models import CleanStep, LogicalDisk, Node

log = logging.getLogger("nodewright")

DEFAULT_MICROVERSION = "1.52"


def _fault_message(r: requests.Response) -> str:
    """
    Pull the human readable fault out of an error body.

    The service wraps it twice: {"error_message": "{\"faultstring\": ...}"}
    """
    try:
        body = r.json()
    except ValueError:
        return r.text
    msg = body.get("error_message") if isinstance(body, dict) else None
    if isinstance(msg, str):
        try:
            msg = json.loads(msg)
        except ValueError:
            return msg
    if isinstance(msg, dict):
        return msg.get("faultstring") or json.dumps(msg)
    return r.text


class IronicClient:
    """
    Minimal client for the bare-metal service's node API.

    Endpoints used:
    - node:   /v1/nodes, /v1/nodes/<id>
    - states: /v1/nodes/<id>/states/{power,raid,provision}
    - ports:  /v1/ports

    HTTP 409 raises ConflictError so callers can retry through
    call_with_conflict_retry; every other failure raises UpstreamError.
    """

    def __init__(
        self,
        endpoint: str,
        *,
        token: Optional[str] = None,
        microversion: str = DEFAULT_MICROVERSION,
        verify_tls: bool = True,
        timeout: int = 30,
        session: Optional[requests.Session] = None,
    ):
        self.endpoint = endpoint.rstrip("/")
        self.token = token
        self.microversion = microversion
        self.verify_tls = verify_tls
        self.timeout = timeout
        self._session = session or requests.Session()

    # -----------------------
    # HTTP helpers
    # -----------------------
    def _url(self, path: str) -> str:
        return f"{self.endpoint}/v1/{path.lstrip('/')}"

    def _headers(self) -> Dict[str, str]:
        headers = {
            "X-OpenStack-Ironic-API-Version": self.microversion,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.token:
            headers["X-Auth-Token"] = self.token
        return headers

    def _request(self, method: str, path: str, *, body: Any = None) -> requests.Response:
        url = self._url(path)
        log.debug(f"[IronicClient] {method} {url}")
        try:
            r = self._session.request(
                method,
                url,
                json=body,
                headers=self._headers(),
                verify=self.verify_tls,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise UpstreamError(f"{method} {url} failed: {exc}") from exc

        log.debug(f"[IronicClient] response: status={r.status_code}")
        if r.status_code == 409:
            raise ConflictError(
                f"{method} {path}: service is busy ({_fault_message(r)})",
                status_code=409,
            )
        if r.status_code < 200 or r.status_code >= 300:
            raise UpstreamError(
                f"{method} {path} failed ({r.status_code}): {_fault_message(r)}",
                status_code=r.status_code,
            )
        return r

    # -----------------------
    # Nodes
    # -----------------------
    def get_node(self, node_id: str) -> Node:
        r = self._request("GET", f"nodes/{node_id}")
        return Node.from_api(r.json())

    def create_node(self, body: Dict[str, Any]) -> Node:
        r = self._request("POST", "nodes", body=body)
        return Node.from_api(r.json())

    def update_node(self, node_id: str, ops: Sequence[Dict[str, Any]]) -> Node:
        """Apply a JSON patch (list of {"op", "path", "value"}) to the node."""
        r = self._request("PATCH", f"nodes/{node_id}", body=list(ops))
        return Node.from_api(r.json())

    def delete_node(self, node_id: str) -> None:
        self._request("DELETE", f"nodes/{node_id}")

    # -----------------------
    # States
    # -----------------------
    def change_power_state(self, node_id: str, target: str, timeout: Optional[int] = None) -> None:
        body: Dict[str, Any] = {"target": target}
        if timeout:
            body["timeout"] = timeout
        self._request("PUT", f"nodes/{node_id}/states/power", body=body)

    def set_raid_config(self, node_id: str, logical_disks: List[LogicalDisk]) -> None:
        body = {"logical_disks": [d.to_api() for d in logical_disks]}
        self._request("PUT", f"nodes/{node_id}/states/raid", body=body)

    def set_provision_state(
        self,
        node_id: str,
        target: str,
        *,
        clean_steps: Optional[List[CleanStep]] = None,
    ) -> None:
        body: Dict[str, Any] = {"target": target}
        if clean_steps:
            body["clean_steps"] = [s.to_api() for s in clean_steps]
        self._request("PUT", f"nodes/{node_id}/states/provision", body=body)

    # -----------------------
    # Ports
    # -----------------------
    def create_port(self, body: Dict[str, Any]) -> Dict[str, Any]:
        r = self._request("POST", "ports", body=body)
        return r.json()
