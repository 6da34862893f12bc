# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/nodewright/cli/app.py
from __future__ import annotations

import atexit
import json
from pathlib import Path
from typing import Dict, Optional, Tuple

import typer

from nodewright.config.loader import load_config
from nodewright.config.models import IronicSettings, NodeSpec, NodewrightConfig
from nodewright.errors import NodewrightError
from nodewright.ironic.client import IronicClient
from nodewright.logging.log import EVENTS_FILE, init_logging
from nodewright.node.cleaning import build_manual_cleaning_steps
from nodewright.node.lifecycle import NodeLifecycle, driver_info_drift
from nodewright.observers.console import ConsoleObserver
from nodewright.observers.dispatcher import EventBus
from nodewright.observers.events import new_ctx, LifecycleEvent
from nodewright.observers.jsonfile import JsonFileObserver
from nodewright.observers.logger import LoggerObserver


# ------------------------------------------------------------------------------
# CLI setup
# ------------------------------------------------------------------------------

app = typer.Typer(help="nodewright bare-metal node lifecycle CLI")

ConfigOpt = typer.Option(None, "--config", "-c", help="nodewright YAML config")
EndpointOpt = typer.Option(None, "--endpoint", envvar="NODEWRIGHT_ENDPOINT", help="Bare-metal API endpoint")
TokenOpt = typer.Option(None, "--token", envvar="NODEWRIGHT_TOKEN", help="Auth token")
DebugOpt = typer.Option(False, "--debug")


# ------------------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------------------

def _settings(config: Optional[Path], endpoint: Optional[str], token: Optional[str]) -> Tuple[IronicSettings, Optional[NodewrightConfig]]:
    try:
        cfg = load_config(config) if config else None
    except NodewrightError as exc:
        raise typer.BadParameter(str(exc))
    if cfg is not None:
        settings = cfg.ironic
        if endpoint:
            settings = settings.model_copy(update={"endpoint": endpoint})
        if token:
            settings = settings.model_copy(update={"token": token})
        return settings, cfg
    if not endpoint:
        raise typer.BadParameter("either --config or --endpoint is required")
    return IronicSettings(endpoint=endpoint, token=token), None


def _client(settings: IronicSettings) -> IronicClient:
    return IronicClient(
        settings.endpoint,
        token=settings.token,
        microversion=settings.microversion,
        verify_tls=settings.verify_tls,
        timeout=settings.request_timeout,
    )


def _lifecycle(settings: IronicSettings, debug: bool) -> NodeLifecycle:
    logger, run_id, log_path = init_logging(verbose=debug)
    typer.echo(f"  Run ID   : {run_id}")
    typer.echo(f"  Logs     : {log_path}")

    journal = JsonFileObserver(log_path.parent / EVENTS_FILE)
    atexit.register(journal.close)
    bus = EventBus(observers=[ConsoleObserver(), LoggerObserver(logger), journal])
    client = _client(settings)
    lc = NodeLifecycle(client, bus=bus, run_ctx=new_ctx(endpoint=settings.endpoint, run_id=run_id))
    lc.provision.timeout = settings.provision_timeout
    return lc


def _select_nodes(cfg: Optional[NodewrightConfig], node: Optional[str]) -> Dict[str, NodeSpec]:
    if cfg is None:
        raise typer.BadParameter("--config is required for this command")
    if node is None:
        return dict(cfg.nodes)
    if node not in cfg.nodes:
        raise typer.BadParameter(f"node '{node}' not found in config (known: {', '.join(sorted(cfg.nodes))})")
    return {node: cfg.nodes[node]}


def _run(lc: NodeLifecycle, phase: str, fn):
    lc.bus.emit(LifecycleEvent(phase=phase, status="START", message=f"Starting {phase}", **lc.run_ctx))
    try:
        result = fn()
    except NodewrightError as exc:
        lc.bus.emit(LifecycleEvent(phase=phase, status="FAILURE", message=str(exc), **lc.run_ctx))
        typer.echo(f"ERROR: {exc}", err=True)
        raise typer.Exit(code=1)
    lc.bus.emit(LifecycleEvent(phase=phase, status="SUCCESS", message=f"{phase} completed", **lc.run_ctx))
    return result


def _echo_node(node) -> None:
    typer.echo(json.dumps(node.raw or {"uuid": node.uuid}, indent=2, sort_keys=True))


# ------------------------------------------------------------------------------
# Commands
# ------------------------------------------------------------------------------

@app.command()
def apply(
    config: Path = typer.Argument(..., help="nodewright YAML config"),
    node: Optional[str] = typer.Option(None, "--node", help="Only create this node"),
    debug: bool = DebugOpt,
):
    """Create the configured nodes and drive them to their desired state."""
    settings, cfg = _settings(config, None, None)
    specs = _select_nodes(cfg, node)
    lc = _lifecycle(settings, debug)
    for name, spec in specs.items():
        if spec.name is None:
            spec = spec.model_copy(update={"name": name})
        typer.echo(f"\n[apply] {name}")
        created = _run(lc, f"apply.{name}", lambda: lc.create(spec))
        typer.echo(f"[apply] {name} -> {created.uuid} ({created.provision_state}, {created.power_state.value})")


@app.command()
def power(
    node_id: str = typer.Argument(...),
    target: str = typer.Argument(..., help="'power on', 'power off', 'rebooting', ..."),
    timeout: int = typer.Option(0, "--timeout", help="Seconds to wait; 0 = 300"),
    config: Optional[Path] = ConfigOpt,
    endpoint: Optional[str] = EndpointOpt,
    token: Optional[str] = TokenOpt,
    debug: bool = DebugOpt,
):
    """Change a node's power state and wait for it to settle."""
    settings, _ = _settings(config, endpoint, token)
    lc = _lifecycle(settings, debug)
    result = _run(lc, "power", lambda: lc.power.change_power_state(node_id, target, timeout))
    typer.echo(f"[power] {node_id}: {result.phase.value} after {result.polls} poll(s)")


@app.command()
def provision(
    node_id: str = typer.Argument(...),
    target: str = typer.Argument(..., help="manage | inspect | provide | deleted"),
    config: Optional[Path] = ConfigOpt,
    endpoint: Optional[str] = EndpointOpt,
    token: Optional[str] = TokenOpt,
    debug: bool = DebugOpt,
):
    """Drive a provision state transition and wait for it to settle."""
    settings, _ = _settings(config, endpoint, token)
    lc = _lifecycle(settings, debug)
    node = _run(lc, f"provision.{target}", lambda: lc.provision.change_provision_state_to_target(node_id, target))
    typer.echo(f"[provision] {node_id}: {node.provision_state}")


@app.command("clean-steps")
def clean_steps(
    config: Path = typer.Argument(..., help="nodewright YAML config"),
    node: Optional[str] = typer.Option(None, "--node"),
):
    """Print the manual clean steps each configured node would run."""
    _, cfg = _settings(config, None, None)
    specs = _select_nodes(cfg, node)
    try:
        out = {
            name: [s.to_api() for s in build_manual_cleaning_steps(spec.raid_interface, spec.raid_config, spec.bios_settings)]
            for name, spec in specs.items()
        }
    except NodewrightError as exc:
        typer.echo(f"ERROR: {exc}", err=True)
        raise typer.Exit(code=1)
    typer.echo(json.dumps(out, indent=2))


@app.command()
def show(
    node_id: str = typer.Argument(...),
    node: Optional[str] = typer.Option(None, "--node", help="Compare driver_info against this configured node"),
    config: Optional[Path] = ConfigOpt,
    endpoint: Optional[str] = EndpointOpt,
    token: Optional[str] = TokenOpt,
):
    """Print a node as reported by the service."""
    settings, cfg = _settings(config, endpoint, token)
    try:
        current = _client(settings).get_node(node_id)
    except NodewrightError as exc:
        typer.echo(f"ERROR: {exc}", err=True)
        raise typer.Exit(code=1)
    _echo_node(current)
    if node:
        spec = _select_nodes(cfg, node)[node]
        drift = driver_info_drift(spec, current)
        typer.echo(f"driver_info drift: {', '.join(drift) if drift else 'none'}")


@app.command()
def delete(
    node_id: str = typer.Argument(...),
    config: Optional[Path] = ConfigOpt,
    endpoint: Optional[str] = EndpointOpt,
    token: Optional[str] = TokenOpt,
    debug: bool = DebugOpt,
):
    """Tear a node down and remove it from the service."""
    settings, _ = _settings(config, endpoint, token)
    lc = _lifecycle(settings, debug)
    _run(lc, "delete", lambda: lc.delete(node_id))
    typer.echo(f"[delete] {node_id} removed")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
