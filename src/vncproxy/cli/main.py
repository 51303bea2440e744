"""
vncproxy CLI entry point.

Usage:
    vncproxy [OPTIONS] COMMAND [ARGS]...

Commands:
    serve     Run the WebSocket to VNC proxy
    sessions  List active tunnels of a running proxy
    health    Show health of a running proxy
"""

from typing import Annotated

import typer

from vncproxy.cli import client
from vncproxy.cli.output import console, format_session_table, print_error
from vncproxy.config import config
from vncproxy.models.enums import LogLevel

app = typer.Typer(
    name="vncproxy",
    help="WebSocket to VNC TCP tunnel",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

UrlOption = Annotated[
    str,
    typer.Option("--url", "-u", help="Proxy base URL", envvar="VNCPROXY_URL"),
]


@app.command("serve")
def serve(
    host: Annotated[
        str,
        typer.Option("--host", "-H", help="Bind address", envvar="VNCPROXY_HOST"),
    ] = config.BIND_IP,
    port: Annotated[
        int,
        typer.Option("--port", "-P", help="Listen port", envvar="VNCPROXY_PORT"),
    ] = config.PORT,
    path: Annotated[
        str,
        typer.Option("--path", help="WebSocket endpoint path", envvar="VNCPROXY_PATH"),
    ] = config.WS_PATH,
    backend: Annotated[
        str,
        typer.Option(
            "--backend", "-b", help="VNC backend host:port", envvar="VNCPROXY_BACKEND"
        ),
    ] = config.DEFAULT_BACKEND,
    token: Annotated[
        list[str] | None,
        typer.Option(
            "--token",
            "-t",
            help="Route ?token=NAME to HOST:PORT, as NAME=HOST:PORT (repeatable)",
        ),
    ] = None,
    token_param: Annotated[
        str,
        typer.Option(
            "--token-param",
            help="Query parameter holding the token",
            envvar="VNCPROXY_TOKEN_PARAM",
        ),
    ] = config.TOKEN_QUERY_PARAM,
    dial_timeout: Annotated[
        float,
        typer.Option(
            "--dial-timeout",
            help="Backend connect timeout in seconds (<= 0 for default)",
            envvar="VNCPROXY_DIAL_TIMEOUT",
        ),
    ] = config.DIAL_TIMEOUT,
    log_level: Annotated[
        LogLevel,
        typer.Option(
            "--log-level", "-l", help="Log verbosity", envvar="VNCPROXY_LOG_LEVEL"
        ),
    ] = config.LOG_LEVEL,
    log_file: Annotated[
        str,
        typer.Option("--log-file", help="Also log to this file", envvar="VNCPROXY_LOG_FILE"),
    ] = config.LOG_FILE,
):
    """Run the WebSocket to VNC proxy."""
    from vncproxy.app import run

    if not path.startswith("/"):
        print_error(f"WebSocket path must start with '/': {path}")
        raise typer.Exit(1)

    backends = {}
    for entry in token or []:
        name, sep, address = entry.partition("=")
        if not sep or not name or not address:
            print_error(f"Invalid --token, expected NAME=HOST:PORT: {entry}")
            raise typer.Exit(1)
        backends[name] = address

    config.BIND_IP = host
    config.PORT = port
    config.WS_PATH = path
    config.DEFAULT_BACKEND = backend
    config.TOKEN_BACKENDS = backends
    config.TOKEN_QUERY_PARAM = token_param
    config.DIAL_TIMEOUT = dial_timeout
    config.LOG_LEVEL = log_level
    config.LOG_FILE = log_file

    target = f"{len(backends)} token backend(s)" if backends else backend
    console.print(
        f"[bold green]Proxying[/bold green] "
        f"[cyan]ws://{host}:{port}{path}[/cyan] "
        f"[dim]→[/dim] "
        f"[yellow]{target}[/yellow]"
    )
    run(config)


@app.command("sessions")
def list_sessions(url: UrlOption = client.DEFAULT_URL):
    """List active tunnels of a running proxy."""
    try:
        sessions = client.get_sessions(url)

        if not sessions:
            console.print("[yellow]No active sessions.[/yellow]")
            return

        console.print(format_session_table(sessions))

    except client.APIError as e:
        print_error(str(e))
        raise typer.Exit(1)


@app.command("health")
def health(url: UrlOption = client.DEFAULT_URL):
    """Show health of a running proxy."""
    try:
        data = client.get_health(url)
        console.print(
            f"[bold]Status:[/bold] {data.get('status', 'unknown')}  "
            f"[bold]Active sessions:[/bold] {data.get('active_sessions', 0)}"
        )
        if data.get("default_backend"):
            console.print(f"[bold]Default backend:[/bold] {data['default_backend']}")

    except client.APIError as e:
        print_error(str(e))
        raise typer.Exit(1)


def main():
    """Entry point for the vncproxy CLI."""
    app()


if __name__ == "__main__":
    main()
