"""Console output helpers for the CLI (rich)."""

from rich.console import Console
from rich.table import Table

console = Console()


def print_error(message: str) -> None:
    """Print an error line."""
    console.print(f"[bold red]Error:[/bold red] {message}")


def format_session_table(sessions: list[dict]) -> Table:
    """Render active sessions as a table."""
    table = Table(title="Active Sessions")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Client")
    table.add_column("Backend", style="yellow")
    table.add_column("State")
    table.add_column("Since", style="dim")
    table.add_column("Up", justify="right")
    table.add_column("Down", justify="right")

    for s in sessions:
        table.add_row(
            s.get("session_id", "")[:8],
            s.get("client") or "-",
            s.get("address", ""),
            s.get("state", ""),
            s.get("created_at", "")[:19].replace("T", " "),
            _format_bytes(s.get("bytes_up", 0)),
            _format_bytes(s.get("bytes_down", 0)),
        )
    return table


def _format_bytes(size: int) -> str:
    for unit in ("B", "KiB", "MiB"):
        if size < 1024:
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GiB"
