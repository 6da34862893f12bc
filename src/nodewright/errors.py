# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/nodewright/errors.py
from __future__ import annotations

from typing import Optional


class NodewrightError(RuntimeError):
    """Base class for nodewright failures."""


class UpstreamError(NodewrightError):
    """Raised when the bare-metal service rejects or fails a request."""

    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ConflictError(UpstreamError):
    """Raised on HTTP 409: the service is busy, try again later."""


class ValidationError(NodewrightError, ValueError):
    """Raised when declarative input (RAID, BIOS, node spec) is malformed or unsupported."""


class WaitTimeout(NodewrightError, TimeoutError):
    """Raised when a polling loop runs out of budget."""

    def __init__(self, message: str, *, timeout_s: int):
        super().__init__(message)
        self.timeout_s = timeout_s


class PowerStateTimeout(WaitTimeout):
    pass


class ProvisionStateTimeout(WaitTimeout):
    pass
