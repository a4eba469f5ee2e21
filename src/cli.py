"""
Command-line interface for bin-monitor.

Provides commands to run the API server, initialize the database,
register bins and run diagnostic checks.

Usage:
    bin-monitor serve      # Run the API server
    bin-monitor init-db    # Initialize database
    bin-monitor health     # Check service health
    bin-monitor add-bin    # Register a bin
    bin-monitor evaluate   # Dry-run threshold evaluation
"""

import asyncio
import sys

import click

from src.config.settings import get_settings
from src.observability.logging import setup_logging
from src.observability.metrics import get_metrics


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool) -> None:
    """Bin Monitor - Smart waste bin telemetry and alerting."""
    setup_logging("DEBUG" if debug else None)

    # Initialize tracing if enabled
    settings = get_settings()
    if settings.tracing_enabled:
        from src.observability.tracing import setup_tracing

        setup_tracing(
            service_name=settings.otel_service_name,
            otlp_endpoint=settings.otel_exporter_otlp_endpoint,
            environment=settings.environment,
        )


@main.command("init-db")
def init_db() -> None:
    """Initialize the database schema."""
    from src.storage.database import Database
    from src.storage.schema import create_tables

    async def run():
        db = Database()
        await db.connect()
        try:
            await create_tables(db)
            click.echo("Database initialized successfully")
        finally:
            await db.close()

    asyncio.run(run())


@main.command()
def health() -> None:
    """Check health of all dependencies."""
    import structlog
    logger = structlog.get_logger()

    async def check():
        results: dict[str, bool] = {}
        settings = get_settings()

        # Check Redis
        try:
            import redis.asyncio as redis

            client = redis.from_url(str(settings.redis_url))
            try:
                results["redis"] = bool(await client.ping())
            finally:
                await client.aclose()
        except Exception as e:
            results["redis"] = False
            logger.error("Redis health check failed", error=str(e))

        # Check PostgreSQL
        try:
            from src.storage.database import Database
            db = Database()
            await db.connect()
            results["postgres"] = await db.health_check()
            await db.close()
        except Exception as e:
            results["postgres"] = False
            logger.error("Postgres health check failed", error=str(e))

        # Notification transports
        from src.notifications.config import NotificationConfig

        config = NotificationConfig()
        for channel in ("email", "sms", "push"):
            results[f"{channel}_webhook_configured"] = config.webhook_url_for(channel) is not None

        # Print results
        click.echo("\nHealth Check Results:")
        click.echo("-" * 40)

        all_healthy = True
        for name, status in results.items():
            icon = "✓" if status else "✗"
            color = "green" if status else "red"
            click.echo(click.style(f"  {icon} {name}: {status}", fg=color))
            if name == "postgres" and not status:
                all_healthy = False

        click.echo("-" * 40)

        if all_healthy:
            click.echo(click.style("All core services healthy!", fg="green"))
            sys.exit(0)
        else:
            click.echo(click.style("Some services unhealthy!", fg="red"))
            sys.exit(1)

    asyncio.run(check())


@main.command()
@click.option("--host", default=None, help="API server host")
@click.option("--port", default=None, type=int, help="API server port")
@click.option("--reload", is_flag=True, help="Enable auto-reload (dev only)")
@click.option("--metrics-port", default=None, type=int, help="Metrics server port")
def serve(host: str | None, port: int | None, reload: bool, metrics_port: int | None) -> None:
    """Start the bin monitor API server."""
    import uvicorn

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port
    metrics_port = metrics_port or settings.metrics_port

    # Start metrics server on separate port
    get_metrics().start_server(port=metrics_port)

    click.echo(f"Starting API server on {host}:{port}")
    click.echo(f"Metrics available on http://localhost:{metrics_port}/metrics")
    click.echo(f"API docs available on http://localhost:{port}/docs")

    uvicorn.run(
        "src.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level="info",
    )


@main.command("add-bin")
@click.argument("bin_code")
@click.option("--location", required=True, help="Location descriptor")
@click.option(
    "--bin-type",
    default="general",
    type=click.Choice(["general", "organic", "recyclable", "hazardous"]),
    help="Waste category",
)
@click.option("--latitude", default=None, type=float)
@click.option("--longitude", default=None, type=float)
def add_bin(
    bin_code: str,
    location: str,
    bin_type: str,
    latitude: float | None,
    longitude: float | None,
) -> None:
    """Register a new bin under BIN_CODE."""
    from src.bins.repository import BinRepository
    from src.bins.schemas import Bin
    from src.storage.database import Database

    async def run() -> int:
        db = Database()
        await db.connect()
        try:
            repo = BinRepository(db)
            if await repo.get_by_code(bin_code) is not None:
                click.echo(click.style(f"Bin {bin_code} already exists", fg="red"))
                return 1
            created = await repo.create(
                Bin(
                    bin_code=bin_code,
                    location=location,
                    bin_type=bin_type,
                    latitude=latitude,
                    longitude=longitude,
                )
            )
            click.echo(click.style(f"Created bin {created.bin_code} ({created.bin_id})", fg="green"))
            return 0
        finally:
            await db.close()

    result = asyncio.run(run())
    if result != 0:
        sys.exit(result)


@main.command()
@click.option("--fill", "fill_level", required=True, type=click.IntRange(0, 100), help="Fill level (%)")
@click.option("--gas", "gas_level", default=None, type=float, help="Gas concentration (ppm)")
@click.option("--temperature", default=None, type=float, help="Temperature (°C)")
@click.option("--battery", "battery_level", default=None, type=float, help="Battery level (%)")
def evaluate(
    fill_level: int,
    gas_level: float | None,
    temperature: float | None,
    battery_level: float | None,
) -> None:
    """Show which alerts a reading would raise under current thresholds.

    Nothing is stored; useful for checking ALERTS_* overrides.
    """
    from src.alerts.config import ThresholdConfig
    from src.alerts.triggers import evaluate_reading
    from src.bins.schemas import Reading

    reading = Reading(
        bin_id="dry-run",
        fill_level=fill_level,
        gas_level=gas_level,
        temperature=temperature,
        battery_level=battery_level,
    )
    candidates = evaluate_reading(reading, ThresholdConfig())

    if not candidates:
        click.echo(click.style("No alerts", fg="green"))
        return

    color = {"low": "white", "medium": "yellow", "high": "magenta", "critical": "red"}
    for candidate in candidates:
        click.echo(
            click.style(
                f"  [{candidate.severity}] {candidate.alert_type}: {candidate.message}",
                fg=color.get(candidate.severity, "white"),
            )
        )


if __name__ == "__main__":
    main()
