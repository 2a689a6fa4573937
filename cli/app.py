from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional

import typer
import uvicorn

from app.main import VERSION, create_app
from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_message, render_sensors, render_stats
from datastore.registry import SensorRegistry
from logging_config import configure_logging
from services.ingest import IngestService
from services.parser import ParseError, parse_message
from services.sink import PrometheusSink
from settings import get_settings
from storage.name_mapping import load_name_mapping
from storage.transport import SerialTransport, StreamTransport, TransportError

logger = logging.getLogger(__name__)

STDIN_PORT = "-"


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Prometheus exporter for sensors received through an RFLink radio bridge.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        typer.secho("CLI state is uninitialized.", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Exporter base URL for query commands (defaults to API_BASE_URL env or http://localhost:8080).",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("serve")
def serve_command(
    port: Optional[str] = typer.Option(
        None, "--port", "-p", help="Serial device the RFLink bridge is connected to, or '-' for stdin."
    ),
    baud: Optional[int] = typer.Option(None, "--baud", help="Baud rate of the serial connection."),
    host: Optional[str] = typer.Option(None, "--host", help="Address to bind the HTTP endpoint to."),
    listen_port: Optional[int] = typer.Option(None, "--listen-port", help="Port of the HTTP endpoint."),
    namemap: Optional[Path] = typer.Option(
        None, "--namemap", help="YAML file mapping sensor ids to friendly names."
    ),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", help="Seconds without readings before a sensor is considered gone."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Increase verbosity."),
) -> None:
    """Read the RFLink bridge and serve Prometheus metrics."""
    overrides = {
        "serial_port": port,
        "baud_rate": baud,
        "listen_host": host,
        "listen_port": listen_port,
        "name_map_path": str(namemap) if namemap is not None else None,
        "metric_timeout": timeout,
    }
    settings = replace(get_settings(), **{k: v for k, v in overrides.items() if v is not None})
    if settings.metric_timeout <= 0:
        raise typer.BadParameter("Timeout must be positive.", param_hint="--timeout")

    configure_logging("DEBUG" if verbose else settings.log_level)
    logger.info("rflink-exporter v%s -- Prometheus exporter for rflink", VERSION)

    mapping_path = Path(settings.name_map_path) if settings.name_map_path else None
    service = IngestService(
        registry=SensorRegistry(),
        sink=PrometheusSink(namespace=settings.metric_namespace),
        name_mapping=load_name_mapping(mapping_path),
    )

    if settings.serial_port == STDIN_PORT:
        transport = StreamTransport(sys.stdin)
    else:
        transport = SerialTransport(settings.serial_port, settings.baud_rate)
        try:
            transport.open()
        except TransportError as exc:
            typer.secho(str(exc), fg=typer.colors.RED, err=True)
            raise typer.Exit(code=1)

    application = create_app(service=service, transport=transport, timeout=settings.metric_timeout)
    logger.info("Serving prometheus metrics on %s:%s", settings.listen_host, settings.listen_port)
    uvicorn.run(application, host=settings.listen_host, port=settings.listen_port, log_config=None)

    worker = application.state.ingest_worker
    if worker is not None and worker.failed:
        raise typer.Exit(code=1)
    logger.info("Bye bye")


@app.command("decode")
def decode_command(
    line: str = typer.Argument(..., help="Raw RFLink message, e.g. '20;1A;Oregon;ID=ABCD;TEMP=010a;'."),
) -> None:
    """Decode one RFLink message and print its readings."""
    try:
        message = parse_message(line)
    except ParseError as exc:
        typer.secho(str(exc), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    render_message(message)


@app.command("sensors")
def sensors_command(ctx: typer.Context) -> None:
    """List the sensors known to a running exporter."""
    state = _get_state(ctx)
    render_sensors(state.client.get_sensors())


@app.command("stats")
def stats_command(ctx: typer.Context) -> None:
    """Show ingestion counters of a running exporter."""
    state = _get_state(ctx)
    render_stats(state.client.get_stats())
