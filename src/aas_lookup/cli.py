"""Command-line interface for the AAS lookup service."""

import json
import signal
import threading
from pathlib import Path
from typing import Annotated, Any, Optional

import typer

from aas_lookup import __version__
from aas_lookup.config import ServiceConfig, ServiceSettings, load_config
from aas_lookup.domain.errors import InvalidRequestError, MatchTimeoutError, UpstreamWriteError
from aas_lookup.observability.logging import setup_logging
from aas_lookup.service import LookupService

app = typer.Typer(
    name="aas-lookup",
    help="AAS lookup service: resolve asset IDs to shells and match test equipment",
    no_args_is_help=True,
)

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config.yaml"),
]


def _load(config: Path | None) -> ServiceConfig:
    settings = ServiceSettings(config_file=config) if config else ServiceSettings()
    return load_config(settings)


def _service(config: Path | None) -> LookupService:
    cfg = _load(config)
    setup_logging(level=cfg.observability.log_level, format_type=cfg.observability.log_format)
    return LookupService(cfg)


def _echo_json(payload: Any) -> None:
    typer.echo(json.dumps(payload, indent=2))


@app.callback()
def callback() -> None:
    """AAS lookup service CLI."""
    pass


@app.command()
def serve(config: ConfigOption = None) -> None:
    """Run the HTTP API together with the metrics and health servers."""
    from aas_lookup.observability.health import HealthServer, create_health_checker
    from aas_lookup.observability.metrics import MetricsServer
    from aas_lookup.server import ApiServer

    cfg = _load(config)
    setup_logging(level=cfg.observability.log_level, format_type=cfg.observability.log_format)

    metrics_server = MetricsServer(cfg.observability.metrics_port)
    health_server = HealthServer(
        cfg.observability.health_port,
        check_func=create_health_checker(
            {
                "discovery": cfg.discovery.base_url,
                "registry": cfg.registry.base_url,
                "environment": cfg.environment.base_url,
            }
        ),
    )
    api_server = ApiServer(LookupService(cfg), cfg.server.host, cfg.server.port)

    stopped = threading.Event()

    def signal_handler(signum: int, frame: Any) -> None:
        typer.echo(f"Received signal {signum}, shutting down")
        stopped.set()

    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

    if cfg.observability.metrics_enabled:
        metrics_server.start()
    health_server.start()
    api_server.start()
    try:
        stopped.wait()
    finally:
        api_server.stop()
        health_server.stop()
        if cfg.observability.metrics_enabled:
            metrics_server.stop()


@app.command()
def lookup(
    asset_id: Annotated[str, typer.Argument(help="Asset ID or specific asset ID JSON")],
    submodels: Annotated[
        bool, typer.Option("--submodels/--no-submodels", help="Inline the shell's submodels")
    ] = False,
    config: ConfigOption = None,
) -> None:
    """Resolve an asset ID to its AAS and print it as JSON."""
    try:
        envelopes = _service(config).lookup(asset_id, submodels)
    except InvalidRequestError as e:
        typer.echo(f"Invalid request: {e}", err=True)
        raise typer.Exit(2)
    _echo_json([envelope.to_dict() for envelope in envelopes])


@app.command()
def match(
    article: Annotated[
        Optional[str], typer.Option("--article", help="Article asset ID")
    ] = None,
    adapters: Annotated[
        Optional[list[str]], typer.Option("--adapter", "-a", help="Test adapter asset ID")
    ] = None,
    devices: Annotated[
        Optional[list[str]], typer.Option("--device", "-d", help="Test device asset ID")
    ] = None,
    config: ConfigOption = None,
) -> None:
    """Match an article against test adapters and/or test devices."""
    try:
        outcome = _service(config).match(article, adapters, devices)
    except InvalidRequestError as e:
        typer.echo(f"Invalid request: {e}", err=True)
        raise typer.Exit(2)
    except MatchTimeoutError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(1)
    _echo_json(outcome.to_dict())


@app.command()
def upload(
    path: Annotated[Path, typer.Argument(help="AAS environment JSON file")],
    register: Annotated[
        bool, typer.Option("--register/--no-register", help="Create registry descriptors")
    ] = True,
    discover: Annotated[
        bool, typer.Option("--discover/--no-discover", help="Link asset IDs in discovery")
    ] = True,
    config: ConfigOption = None,
) -> None:
    """Upload an AAS environment file and make its shells findable."""
    try:
        with open(path) as f:
            environment = json.load(f)
    except (OSError, ValueError) as e:
        typer.echo(f"Cannot read {path}: {e}", err=True)
        raise typer.Exit(2)

    try:
        message = _service(config).upload_environment(environment, register, discover)
    except InvalidRequestError as e:
        typer.echo(f"Invalid request: {e}", err=True)
        raise typer.Exit(2)
    except UpstreamWriteError as e:
        typer.echo(f"Upload failed ({e.status_code or 'no response'}): {e}", err=True)
        raise typer.Exit(1)
    typer.echo(message)


@app.command()
def validate(config: ConfigOption = None) -> None:
    """Validate the configuration file without contacting any collaborator."""
    settings = ServiceSettings(config_file=config) if config else ServiceSettings()
    try:
        cfg = load_config(settings)
        typer.echo(f"Configuration valid: {settings.config_file}")
        typer.echo(f"  Discovery: {cfg.discovery.base_url}")
        typer.echo(f"  Registry: {cfg.registry.base_url}")
        typer.echo(f"  Environment: {cfg.environment.base_url}")
        typer.echo(f"  Match workers: {cfg.matching.workers}")
        typer.echo(f"  Match deadline: {cfg.matching.deadline_seconds}s")
    except Exception as e:
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(1)


@app.command()
def version() -> None:
    """Show version information."""
    typer.echo(f"aas-lookup {__version__}")


if __name__ == "__main__":
    app()
