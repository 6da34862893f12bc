# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/nodewright/config/loader.py

import logging
import os
from pathlib import Path

import pydantic
import yaml

from nodewright.errors import ValidationError
from .models import NodewrightConfig

log = logging.getLogger("nodewright")


def _deep_merge(base: dict, override: dict) -> dict:
    """
    Recursively merge *override* into *base* (mutates base).
    Only overwrites when the override value is non-empty.
    """
    for key, value in override.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(value, dict)
        ):
            _deep_merge(base[key], value)
        else:
            if value not in (None, ""):
                base[key] = value
    return base


def _find_secrets_file(config_path: Path) -> Path | None:
    """
    Locate secrets.yaml using this priority:

    1. NODEWRIGHT_SECRETS_FILE environment variable (explicit override)
    2. secrets.yaml in the same directory as the config
    """
    env = os.environ.get("NODEWRIGHT_SECRETS_FILE")
    if env:
        p = Path(env)
        if p.is_file():
            return p
        log.warning("NODEWRIGHT_SECRETS_FILE=%s does not exist, skipping", env)
        return None

    p = config_path.parent / "secrets.yaml"
    if p.is_file():
        return p

    return None


def _load_yaml(path: Path) -> dict:
    """Load a YAML file, expanding ${ENV_VAR} references."""
    raw = path.read_text()
    expanded = os.path.expandvars(raw)
    return yaml.safe_load(expanded) or {}


def load_config(path: str | Path) -> NodewrightConfig:
    """
    Load and validate a nodewright YAML config.

    Secrets such as BMC passwords can live outside the main file:

    **secrets.yaml**
        Mirrors the config structure (``nodes.<name>.driver_info...``) and
        is deep-merged before validation. Discovered through
        ``NODEWRIGHT_SECRETS_FILE`` or next to the config file.

    **environment variables**
        ``${ENV_VAR}`` placeholders in either file are expanded at load time.
    """
    path = Path(path)
    data = _load_yaml(path)

    secrets_path = _find_secrets_file(path)
    if secrets_path:
        log.debug("Merging secrets from %s", secrets_path)
        _deep_merge(data, _load_yaml(secrets_path))
    else:
        log.debug("No secrets.yaml found, proceeding without secrets merge")

    try:
        return NodewrightConfig.model_validate(data)
    except pydantic.ValidationError as exc:
        raise ValidationError(f"invalid config {path}: {exc}") from exc
