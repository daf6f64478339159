from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_readings, render_statistics


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for interacting with the gas sensor ingest service.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1)
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Ingest API base URL (defaults to API_BASE_URL env or http://localhost:3000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Seconds to wait for each HTTP request.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("send")
def send_command(
    ctx: typer.Context,
    device_id: str = typer.Argument(..., help="Identifier of the reporting device."),
    alcohol_ppm: float = typer.Argument(..., help="Alcohol concentration estimate in ppm."),
    raw_value: Optional[float] = typer.Option(None, "--raw-value", help="Raw sensor output."),
    voltage: Optional[float] = typer.Option(None, "--voltage"),
    resistance: Optional[float] = typer.Option(None, "--resistance"),
    ratio: Optional[float] = typer.Option(None, "--ratio"),
    timestamp: Optional[int] = typer.Option(
        None,
        "--timestamp",
        help="Observation instant in epoch milliseconds (defaults to ingestion time).",
    ),
) -> None:
    """Submit one reading over HTTP."""
    state = _get_state(ctx)
    payload: Dict[str, Any] = {"device_id": device_id, "alcohol_ppm": alcohol_ppm}
    optional = {
        "raw_value": raw_value,
        "voltage": voltage,
        "resistance": resistance,
        "ratio": ratio,
        "timestamp": timestamp,
    }
    payload.update({key: value for key, value in optional.items() if value is not None})

    state.client.send_reading(payload)
    typer.secho(f"Reading accepted for {device_id}.", fg=typer.colors.GREEN)


@app.command("readings")
def readings_command(
    ctx: typer.Context,
    limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Maximum readings to list."),
    from_: Optional[str] = typer.Option(None, "--from", help="Inclusive lower timestamp bound."),
    to: Optional[str] = typer.Option(None, "--to", help="Inclusive upper timestamp bound."),
) -> None:
    """List stored readings, newest first."""
    state = _get_state(ctx)
    readings = state.client.list_readings(limit=limit, from_=from_, to=to)
    render_readings(readings)


@app.command("stats")
def stats_command(ctx: typer.Context) -> None:
    """Show aggregate statistics over all readings."""
    state = _get_state(ctx)
    render_statistics(state.client.get_statistics())


@app.command("create-topic")
def create_topic_command(ctx: typer.Context) -> None:
    """Ensure the readings topic exists on the broker."""
    state = _get_state(ctx)
    payload = state.client.create_topic()
    typer.secho(payload.get("message", "Topic ensured."), fg=typer.colors.GREEN)
