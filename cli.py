"""CLI entry point for keyhole-proxy."""

import sys
from datetime import datetime

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from app import create_app
from core.config import CONFIG_FILE, load_config
from core.exceptions import ConfigurationError
from core.registry import UpstreamRegistry, load_registry
from ui.dashboard import Dashboard
from ui.log_utils import CLI_LOG_FILE, clear_logs, write_cli_log

console = Console()


def main():
    """Main CLI entry point."""
    try:
        config = load_config()
    except ConfigurationError as e:
        console.print(f"[red][ERROR][/red] {escape(str(e))}")
        sys.exit(1)

    # Handle CLI arguments
    if len(sys.argv) > 1:
        arg = sys.argv[1]

        if arg == "--config":
            console.print(f"[bold]Config:[/bold] {CONFIG_FILE}")
            console.print(f"[bold]Upstreams:[/bold] {config.proxy.apis_path}")
            console.print(f"[bold]Log:[/bold] {CLI_LOG_FILE}")
            return

        if arg in ("--help", "-h"):
            _print_help()
            return

    try:
        registry = load_registry(config.proxy.apis_path)
    except ConfigurationError as e:
        console.print(f"[red][ERROR][/red] {escape(str(e))}")
        console.print(f"[dim]Set APIS_PATH or edit proxy.apis_path in {CONFIG_FILE}[/dim]")
        sys.exit(1)

    if len(sys.argv) > 1 and sys.argv[1] == "--list":
        _print_registry(registry)
        return

    if len(registry) == 0:
        console.print("[yellow]Warning:[/yellow] No upstreams configured")

    # Clear previous logs and start dashboard
    clear_logs()
    dashboard = Dashboard(config, registry)

    import uvicorn

    app = create_app(config, registry, dashboard)

    uvicorn_options = {}
    if config.proxy.tls_enabled:
        uvicorn_options["ssl_certfile"] = config.proxy.ssl_cert_path
        uvicorn_options["ssl_keyfile"] = config.proxy.ssl_key_path

    uvicorn_config = uvicorn.Config(
        app,
        host=config.proxy.host,
        port=config.proxy.port,
        log_level="warning",
        timeout_keep_alive=config.limits.keep_alive_timeout,
        **uvicorn_options,
    )
    server = uvicorn.Server(uvicorn_config)

    dashboard.start()
    start_time = datetime.now()
    write_cli_log(
        "STARTUP",
        "Proxy started",
        host=config.proxy.host,
        port=config.proxy.port,
        tls=config.proxy.tls_enabled,
        upstreams=len(registry),
    )
    try:
        server.run()
    finally:
        duration = datetime.now() - start_time
        write_cli_log("SHUTDOWN", "Proxy stopped", duration=str(duration))
        dashboard.stop()


def _print_registry(registry: UpstreamRegistry):
    """Print configured upstreams without their secrets."""
    table = Table(title="Configured upstreams")
    table.add_column("Identifier", style="cyan")
    table.add_column("Metadata")
    for api in registry.list():
        table.add_row(api.identifier, api.metadata)
    console.print(table)


def _print_help():
    """Print help message."""
    help_text = """
[bold cyan]Keyhole Proxy[/bold cyan]

Forwards requests to configured APIs, injecting their secret keys.

[bold]Usage:[/bold]
    keyhole-proxy              Start with live dashboard
    keyhole-proxy --list       List configured upstreams (secrets hidden)
    keyhole-proxy --config     Show config locations
    keyhole-proxy --help       Show this help

[bold]Environment:[/bold]
    APIS_PATH                  Upstream file (default: apis.json)
    HOST, PORT                 Listen address (default: 127.0.0.1:3000)
    SSL_CERT_PATH, SSL_KEY_PATH
                               Serve over TLS when both are set
"""
    console.print(help_text)


if __name__ == "__main__":
    main()
