from __future__ import annotations

from typing import Any, Dict, Iterable

import typer

from models.records import ParsedMessage


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_message(message: ParsedMessage) -> None:
    echo_heading("Sensor")
    echo_key_values(
        [
            ("vendor", message.identity.vendor),
            ("id", message.identity.id),
            ("key", message.identity.key),
        ]
    )

    typer.echo()
    echo_heading("Readings")
    if message.values:
        for field, value in message.values.items():
            typer.echo(f"  - {field}: {value}")
    else:
        typer.echo("No readings decoded.")

    typer.echo()
    echo_heading("Skipped fields")
    if message.issues:
        for issue in message.issues:
            typer.echo(f"  - field {issue.index} ({issue.key or '?'}): {issue.reason}")
    else:
        typer.echo("No fields skipped.")


def render_sensors(payload: Dict[str, Any]) -> None:
    echo_heading("Sensors")
    typer.echo(f"timeout: {payload.get('timeout')}")
    metrics = payload.get("metrics") or []
    if not metrics:
        typer.echo("No sensors seen yet.")
        return
    for metric in metrics:
        state = "live" if metric.get("registered") else "expired"
        typer.echo(
            f"  - {metric.get('vendor')} {metric.get('id')} ({metric.get('name')}) "
            f"{metric.get('field')}={metric.get('value')} [{state}, "
            f"{metric.get('seconds_since_seen', 0):.0f}s ago]"
        )


def render_stats(payload: Dict[str, Any]) -> None:
    echo_heading("Ingestion")
    echo_key_values(
        [
            ("lines_received", payload.get("lines_received")),
            ("lines_rejected", payload.get("lines_rejected")),
            ("fields_skipped", payload.get("fields_skipped")),
            ("readings_applied", payload.get("readings_applied")),
            ("known_metrics", payload.get("known_metrics")),
        ]
    )
