from __future__ import annotations

import json
from typing import Any, Dict, Iterable, Mapping

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_health(payload: Dict[str, Any]) -> None:
    echo_heading("Simulator Status")
    echo_key_values(
        [
            ("status", payload.get("status")),
            ("activeDevices", payload.get("activeDevices")),
        ]
    )


def render_device_counters(payload: Dict[str, Any]) -> None:
    devices = payload.get("devices") or []
    typer.echo()
    echo_heading("Devices")
    if not devices:
        typer.echo("No active devices.")
        return
    for device in devices:
        typer.echo(
            f"  - {device.get('deviceId')} {device.get('name')} @ {device.get('location')}: "
            f"sent={device.get('sent')} failed={device.get('failed')}"
        )


def render_registry(rows: Iterable[tuple[Mapping[str, Any], bool]]) -> None:
    echo_heading("Registry")
    empty = True
    for identity, has_token in rows:
        empty = False
        marker = "active" if has_token else "missing token"
        typer.echo(
            f"  - {identity['deviceId']} {identity['serial']} {identity['name']} "
            f"@ {identity['location']}: {marker}"
        )
    if empty:
        typer.echo("Registry is empty.")


def render_payloads(payloads: Iterable[Dict[str, Any]]) -> None:
    for payload in payloads:
        typer.echo(json.dumps(payload, sort_keys=False))
