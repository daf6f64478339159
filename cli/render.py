from __future__ import annotations

from typing import Any, Dict, Iterable, Sequence

import typer

_READING_COLUMNS = ("timestamp", "device_id", "alcohol_ppm", "raw_value", "voltage", "ratio")


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_statistics(payload: Dict[str, Any]) -> None:
    echo_heading("Statistics")
    echo_key_values(
        [
            ("count", payload.get("count")),
            ("avg_ppm", payload.get("avgPpm")),
            ("max_ppm", payload.get("maxPpm")),
            ("min_ppm", payload.get("minPpm")),
        ]
    )


def render_readings(readings: Sequence[Dict[str, Any]]) -> None:
    echo_heading(f"Readings ({len(readings)})")
    if not readings:
        typer.echo("No readings stored.")
        return

    typer.echo(" | ".join(_READING_COLUMNS))
    for reading in readings:
        cells = ["-" if reading.get(column) is None else str(reading[column]) for column in _READING_COLUMNS]
        typer.echo(" | ".join(cells))
