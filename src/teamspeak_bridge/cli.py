"""TeamSpeak bridge CLI.

Usage:
    ts-bridge serve                       # Run the webhook server
    ts-bridge serve --port 8080           # Custom listen port
    ts-bridge --config bridge.yaml serve  # Explicit config file
    ts-bridge who                         # One-shot presence report
    ts-bridge health                      # Check a running bridge
    ts-bridge config                      # Show effective configuration
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import sys

import click
import httpx

from .config import CONFIG_ENV_VAR, BridgeConfig, load_config
from .errors import ConfigError

# Output format options
FORMAT_TABLE = "table"
FORMAT_JSON = "json"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(debug: bool) -> None:
    """Send logs to stderr; stdout is reserved for command output."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
        stream=sys.stderr,
        force=True,
    )
    if not debug:
        # httpx logs every request at INFO
        logging.getLogger("httpx").setLevel(logging.WARNING)


def _load(ctx: click.Context) -> BridgeConfig:
    try:
        config = load_config(ctx.obj.get("config_path"))
    except ConfigError as e:
        raise click.ClickException(str(e)) from e
    if ctx.obj.get("debug") and not config.debug:
        config = config.model_copy(update={"debug": True})
    return config


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    help=f"YAML configuration file (default: ${CONFIG_ENV_VAR})",
)
@click.option("--debug", is_flag=True, help="Verbose logging, including raw query traffic")
@click.pass_context
def main(ctx: click.Context, config_path: str | None, debug: bool) -> None:
    """TeamSpeak ServerQuery presence bridge."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["debug"] = debug


@main.command()
@click.option("--host", default=None, help="Host to bind to (default from config)")
@click.option("--port", default=None, type=int, help="Port to bind to (default from config)")
@click.option("--reload", is_flag=True, help="Enable auto-reload for development")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None, reload: bool) -> None:
    """Run the bridge webhook server."""
    import uvicorn

    config = _load(ctx)
    configure_logging(config.debug)

    # The app factory re-reads configuration from the environment
    if ctx.obj.get("config_path"):
        os.environ[CONFIG_ENV_VAR] = os.path.abspath(ctx.obj["config_path"])
    if ctx.obj.get("debug"):
        os.environ["TS_BRIDGE_DEBUG"] = "1"

    bind_host = host or config.server.host
    bind_port = port or config.server.port
    click.echo(f"Starting TeamSpeak bridge on http://{bind_host}:{bind_port}", err=True)
    click.echo(f"  Query server: {config.host}:{config.port}", err=True)
    click.echo("Press Ctrl+C to stop", err=True)

    uvicorn.run(
        "teamspeak_bridge.app:create_app",
        factory=True,
        host=bind_host,
        port=bind_port,
        reload=reload,
        log_level="debug" if config.debug else "info",
    )


@main.command()
@click.pass_context
def who(ctx: click.Context) -> None:
    """Print who is on TeamSpeak right now."""
    from .notify import LogNotifier
    from .runtime import BridgeRuntime

    config = _load(ctx)
    configure_logging(config.debug)

    async def run() -> bool:
        # No separate connect: the retry executor connects on demand
        runtime = BridgeRuntime(config, notifier=LogNotifier())
        try:
            result = await runtime.who()
        finally:
            await runtime.stop()
        click.echo(result.message.replace("\r\n", "\n").rstrip("\n"))
        return result.success

    if not asyncio.run(run()):
        sys.exit(1)


@main.command()
@click.option("--url", default=None, help="Bridge URL (default from config)")
@click.pass_context
def health(ctx: click.Context, url: str | None) -> None:
    """Check a running bridge's health endpoint."""
    if url is None:
        config = _load(ctx)
        url = f"http://{config.server.host}:{config.server.port}"

    async def check() -> None:
        try:
            async with httpx.AsyncClient() as client:
                response = await client.get(f"{url}/health")
        except httpx.ConnectError:
            click.echo(f"Cannot connect to bridge at {url}", err=True)
            sys.exit(1)

        if response.status_code != 200:
            click.echo(f"Bridge returned {response.status_code}", err=True)
            sys.exit(1)

        data = response.json()
        click.echo(f"Bridge is up, query session {data.get('connection', 'unknown')}")
        if data.get("last_error"):
            click.echo(f"  Last error: {data['last_error']}")

    asyncio.run(check())


@main.command("config")
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice([FORMAT_TABLE, FORMAT_JSON]),
    default=FORMAT_TABLE,
    help="Output format",
)
@click.pass_context
def show_config(ctx: click.Context, output_format: str) -> None:
    """Show the effective configuration (secrets masked)."""
    data = _load(ctx).redacted()

    if output_format == FORMAT_JSON:
        click.echo(json.dumps(data, indent=2, ensure_ascii=False))
        return

    for key, value in _flatten(data):
        click.echo(f"{key:<28} {value}")


def _flatten(data: dict, prefix: str = "") -> list[tuple[str, object]]:
    rows: list[tuple[str, object]] = []
    for key, value in data.items():
        name = f"{prefix}{key}"
        if isinstance(value, dict):
            rows.extend(_flatten(value, f"{name}."))
        elif isinstance(value, list):
            rows.append((name, ", ".join(str(v) for v in value) or "-"))
        else:
            rows.append((name, "-" if value is None else value))
    return rows


if __name__ == "__main__":
    main()
