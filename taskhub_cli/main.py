"""TaskHub CLI - Main Entry Point"""

import typer
from rich.console import Console
from rich.panel import Panel

from .client.endpoints import TaskHubClient, TaskHubError
from .commands import jobs
from .utils.config_manager import config as config_manager
from .utils.formatting import print_error, print_info

console = Console()

app = typer.Typer(
    name="taskhub",
    help="TaskHub - background job administration CLI",
    rich_markup_mode="rich",
)

app.add_typer(jobs.app, name="jobs")


@app.command()
def status():
    """📊 Check API connectivity and job queue health"""
    base_url = config_manager.get("api.base_url")
    print_info(f"Checking connection to: {base_url}")

    try:
        with TaskHubClient(base_url) as client:
            health = client.health_check()
    except TaskHubError as e:
        print_error(f"Failed to connect: {e}")
        console.print(
            Panel(
                f"🚫 [red]Connection Failed[/red]\n\n"
                f"Make sure the TaskHub API is running at:\n"
                f"[blue]{base_url}[/blue]\n\n"
                f"Or point the CLI elsewhere with [cyan]TASKHUB_API_URL[/cyan]",
                title="Connection Error",
                border_style="red",
            )
        )
        raise typer.Exit(1) from None

    jobs_health = health.get("jobs") or {}
    console.print(
        Panel(
            f"🚀 [green]Connected[/green]\n\n"
            f"• Version: [cyan]{health.get('version', 'unknown')}[/cyan]\n"
            f"• Environment: [yellow]{health.get('environment', 'unknown')}[/yellow]\n"
            f"• Pending jobs: [cyan]{jobs_health.get('pending', 0)}[/cyan]\n"
            f"• Running jobs: [cyan]{jobs_health.get('running', 0)}[/cyan]\n"
            f"• Failed jobs: [red]{jobs_health.get('failed', 0)}[/red]\n"
            f"• API URL: [blue]{base_url}[/blue]",
            title="System Status",
            border_style="green",
        )
    )


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(False, "--version", "-v", help="Show version and exit"),
):
    """
    TaskHub CLI

    Inspect, schedule, run and retry background jobs through the admin API.
    """
    if version:
        from . import __version__

        console.print(f"TaskHub CLI v{__version__}")
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


if __name__ == "__main__":
    app()
