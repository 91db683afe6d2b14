"""Jobs Commands - Inspect and drive the background job engine"""

import typer
from rich.console import Console
from rich.panel import Panel

from ..client.endpoints import TaskHubClient, TaskHubError
from ..utils.config_manager import config
from ..utils.formatting import (
    create_job_panel,
    create_jobs_table,
    create_stats_table,
    print_error,
    print_info,
    print_success,
    print_warning,
)

console = Console()
app = typer.Typer(name="jobs", help="Background job administration commands")

JOB_TYPES = ("EMAIL_SEND", "WEBHOOK_CALL", "DATA_CLEANUP", "REPORT_EXPORT")


def _client() -> TaskHubClient:
    return TaskHubClient(config.get("api.base_url"))


@app.command("list")
def list_jobs(
    status: str | None = typer.Option(
        None, "--status", "-s", help="Only show jobs in this status"
    ),
    full_ids: bool = typer.Option(False, "--full-ids", help="Show complete job IDs"),
):
    """📋 List background jobs"""
    try:
        with _client() as client:
            jobs = client.list_jobs()
    except TaskHubError as e:
        print_error(f"Failed to list jobs: {e}")
        raise typer.Exit(1) from None

    if status:
        jobs = [job for job in jobs if job.get("status") == status.upper()]

    if not jobs:
        console.print(
            Panel(
                "📭 [yellow]No jobs found[/yellow]",
                title="Empty Results",
                border_style="yellow",
            )
        )
        return

    console.print(create_jobs_table(jobs, short_ids=not full_ids))
    console.print(f"\n📊 [cyan]{len(jobs)}[/cyan] job(s)")


@app.command("show")
def show_job(job_id: str = typer.Argument(..., help="Job ID to show")):
    """🔍 Show a single job"""
    try:
        with _client() as client:
            job = client.get_job(job_id)
    except TaskHubError as e:
        print_error(f"Failed to get job: {e}")
        raise typer.Exit(1) from None

    console.print(create_job_panel(job))


@app.command("schedule")
def schedule_job(
    job_type: str = typer.Argument(..., help=f"One of: {', '.join(JOB_TYPES)}"),
    payload: str = typer.Option(
        "{}", "--payload", "-p", help="Payload string handed to the executor"
    ),
):
    """➕ Schedule a new job"""
    job_type = job_type.upper()
    if job_type not in JOB_TYPES:
        print_error(f"Unknown job type: {job_type}")
        raise typer.Exit(1)

    try:
        with _client() as client:
            job = client.schedule_job(job_type, payload)
    except TaskHubError as e:
        print_error(f"Failed to schedule job: {e}")
        raise typer.Exit(1) from None

    print_success(f"Scheduled {job_type} job {job['id']}")


@app.command("execute")
def execute_job(job_id: str = typer.Argument(..., help="Job ID to run now")):
    """▶️ Run a job immediately"""
    try:
        with _client() as client:
            job = client.execute_job(job_id)
    except TaskHubError as e:
        print_error(f"Failed to execute job: {e}")
        raise typer.Exit(1) from None

    if job.get("status") == "FAILED":
        print_warning(f"Job {job_id} failed: {job.get('error')}")
    else:
        print_success(f"Job {job_id} is {job.get('status')}")
    console.print(create_job_panel(job))


@app.command("retry")
def retry_job(job_id: str = typer.Argument(..., help="Failed job ID to retry")):
    """🔁 Reset a failed job to PENDING"""
    try:
        with _client() as client:
            client.retry_job(job_id)
    except TaskHubError as e:
        print_error(f"Failed to retry job: {e}")
        raise typer.Exit(1) from None

    print_success(f"Job {job_id} queued for retry")


@app.command("retry-all")
def retry_failed_jobs():
    """🔁 Queue every retryable failed job"""
    try:
        with _client() as client:
            count = client.retry_failed_jobs()
    except TaskHubError as e:
        print_error(f"Failed to retry jobs: {e}")
        raise typer.Exit(1) from None

    print_success(f"Queued {count} failed job(s) for retry")


@app.command("process")
def process_pending_jobs():
    """▶️  Run every pending job now"""
    try:
        with _client() as client:
            count = client.process_pending_jobs()
    except TaskHubError as e:
        print_error(f"Failed to process pending jobs: {e}")
        raise typer.Exit(1) from None

    print_success(f"Ran {count} pending job(s)")


@app.command("cleanup")
def cleanup_old_jobs(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """🧹 Delete jobs older than the retention window"""
    if not yes and not typer.confirm("Delete all jobs older than the retention window?"):
        print_info("Cleanup cancelled")
        raise typer.Exit()

    try:
        with _client() as client:
            result = client.cleanup_old_jobs()
    except TaskHubError as e:
        print_error(f"Failed to clean up jobs: {e}")
        raise typer.Exit(1) from None

    print_success(
        f"Deleted {result['deleted']} job(s) older than "
        f"{result['retention_days']} days"
    )


@app.command("stats")
def show_stats():
    """📊 Show job counts per status"""
    try:
        with _client() as client:
            stats = client.get_job_stats()
    except TaskHubError as e:
        print_error(f"Failed to get job stats: {e}")
        raise typer.Exit(1) from None

    console.print(create_stats_table(stats))
    console.print(
        f"\n📥 Queue depth: [cyan]{stats.get('queue_depth', 0)}[/cyan]  "
        f"Executors: [magenta]{', '.join(stats.get('registered_types', [])) or '—'}[/magenta]"
    )
