from __future__ import annotations

from dataclasses import dataclass
from typing import NoReturn, Optional

import typer
import uvicorn

from app.schemas import TelemetryPayload
from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_device_counters, render_health, render_payloads, render_registry
from logging_config import configure_logging
from registry.devices import RegistryError, load_default_registry, resolve_credentials
from services.generator import SignalGenerator
from settings import get_settings


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Run and inspect the simulated device fleet.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        _fail("CLI state is uninitialized.")
    return state


def _fail(message: str) -> NoReturn:
    typer.secho(message, fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1)


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Simulator base URL (defaults to SIMULATOR_BASE_URL env or http://localhost:4000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Seconds to wait for the simulator to answer.",
    ),
) -> None:
    """Entry point for the CLI."""
    configure_logging()
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("run")
def run_command(
    host: str = typer.Option("0.0.0.0", "--host", help="Interface for the health endpoint."),
    port: Optional[int] = typer.Option(
        None,
        "--port",
        "-p",
        help="Port for the health endpoint (defaults to PORT env or 4000).",
    ),
) -> None:
    """Start the fleet and serve the health endpoint."""
    settings = get_settings()
    # Fail before binding the port when the device set is unknown.
    try:
        identities = load_default_registry()
    except RegistryError as exc:
        _fail(str(exc))
    typer.echo(f"Loading {len(identities)} devices from registry...")
    listen_port = port if port is not None else settings.port
    typer.echo(f"Simulator running on port {listen_port}")
    uvicorn.run("app.main:create_app", factory=True, host=host, port=listen_port, log_config=None)


@app.command("status")
def status_command(ctx: typer.Context) -> None:
    """Query a running simulator's health and device counters."""
    state = _get_state(ctx)
    render_health(state.client.get_health())
    render_device_counters(state.client.get_devices())


@app.command("devices")
def devices_command() -> None:
    """List registry entries and whether each device has a token."""
    try:
        identities = load_default_registry()
    except RegistryError as exc:
        _fail(str(exc))
    credentials = resolve_credentials(identities)
    render_registry(
        (
            {
                "deviceId": identity.device_id,
                "serial": identity.serial,
                "name": identity.name,
                "location": identity.location,
            },
            identity.device_id in credentials,
        )
        for identity in identities
    )


@app.command("preview")
def preview_command(
    device_id: int = typer.Argument(..., min=0, help="Device ID to simulate."),
    count: int = typer.Option(5, "--count", "-n", min=1, help="Number of readings to print."),
) -> None:
    """Print wire payloads from a fresh generator without sending them."""
    generator = SignalGenerator(device_id)
    render_payloads(
        TelemetryPayload.from_reading(generator.generate()).to_wire() for _ in range(count)
    )
