"""Rich Formatting Utilities for CLI Output"""

from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

console = Console()

STATUS_STYLES = {
    "PENDING": "yellow",
    "RUNNING": "blue",
    "COMPLETED": "green",
    "FAILED": "red",
}


def print_success(message: str):
    """Print success message with green styling"""
    console.print(f"[green]✓ {message}[/green]")


def print_error(message: str):
    """Print error message with red styling"""
    console.print(f"[red]✗ {message}[/red]")


def print_warning(message: str):
    console.print(f"[yellow]⚠ {message}[/yellow]")


def print_info(message: str):
    console.print(f"[blue]ℹ {message}[/blue]")


def _styled_status(status: str) -> str:
    style = STATUS_STYLES.get(status, "white")
    return f"[{style}]{status}[/{style}]"


def _truncate(value: str | None, limit: int = 40) -> str:
    if not value:
        return "—"
    return value[:limit] + "..." if len(value) > limit else value


def create_jobs_table(jobs: list[dict[str, Any]], short_ids: bool = True) -> Table:
    """Create a formatted table for the jobs list"""
    table = Table(title="Background Jobs", box=box.ROUNDED)

    table.add_column("ID", justify="left", style="cyan", no_wrap=True)
    table.add_column("Type", justify="left", style="magenta")
    table.add_column("Status", justify="center")
    table.add_column("Retries", justify="center", style="yellow")
    table.add_column("Created", justify="left", style="blue")
    table.add_column("Error", justify="left", style="white")

    for job in jobs:
        job_id = job.get("id", "")
        table.add_row(
            job_id[:8] if short_ids else job_id,
            job.get("type", ""),
            _styled_status(job.get("status", "")),
            str(job.get("retry_count", 0)),
            job.get("created_at", "")[:19],
            _truncate(job.get("error")),
        )

    return table


def create_job_panel(job: dict[str, Any]) -> Panel:
    """Create a detail panel for a single job"""
    content = f"""
🆔 [bold]ID:[/bold] [cyan]{job.get("id", "unknown")}[/cyan]
📝 [bold]Type:[/bold] [magenta]{job.get("type", "unknown")}[/magenta]
📌 [bold]Status:[/bold] {_styled_status(job.get("status", "unknown"))}
🔁 [bold]Retries:[/bold] [yellow]{job.get("retry_count", 0)}[/yellow]
📅 [bold]Created:[/bold] [blue]{job.get("created_at", "unknown")}[/blue]
✅ [bold]Executed:[/bold] [blue]{job.get("executed_at") or "—"}[/blue]
"""
    if job.get("error"):
        content += f"⚠️ [bold]Error:[/bold] [red]{job['error']}[/red]\n"

    return Panel(content.strip(), title="Job Details", border_style="blue")


def create_stats_table(stats: dict[str, Any]) -> Table:
    """Create a table of job counts per status"""
    table = Table(title="Job Statistics", box=box.ROUNDED)

    table.add_column("Status", justify="left")
    table.add_column("Count", justify="right", style="cyan")

    for status, count in stats.get("by_status", {}).items():
        table.add_row(_styled_status(status), str(count))

    table.add_row("[bold]Total[/bold]", f"[bold]{stats.get('total_jobs', 0)}[/bold]")
    return table
