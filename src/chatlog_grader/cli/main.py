"""Main CLI entry point for chatlog-grader."""

import asyncio
import signal
import sys
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from chatlog_grader import __version__
from chatlog_grader.config import GraderConfig, load_config
from chatlog_grader.errors import (
    AllItemsFailedError,
    GraderError,
    NoDataError,
    NoInputItemsError,
    RecordNotFoundError,
)
from chatlog_grader.models.enums import RunState
from chatlog_grader.models.evaluation import EvaluationJob
from chatlog_grader.orchestration.control import RunController
from chatlog_grader.orchestration.progress import ProgressTracker
from chatlog_grader.orchestration.runner import EvaluationRunner
from chatlog_grader.storage.score_store import ScoreStore
from chatlog_grader.utils.file_utils import load_items_from_csv
from chatlog_grader.utils.logging import setup_logging

# Create the main Typer app
app = typer.Typer(
    name="chatlog-grader",
    help="Grade customer-service chatlogs with an LLM under a strict rate limit.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# Console for rich output
console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"chatlog-grader version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """Chatlog Grader.

    Score conversations for coherence, politeness, relevance and resolution,
    and report weighted performance per agent.
    """
    pass


# Common options used across commands
ConfigOption = Annotated[
    Optional[Path],
    typer.Option(
        "--config",
        "-c",
        help="Path to configuration file.",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
]

AgentOption = Annotated[
    str,
    typer.Option(
        "--agent",
        "-a",
        help="Agent (subject) the chatlogs belong to.",
    ),
]

StoreOption = Annotated[
    Optional[str],
    typer.Option(
        "--store",
        help="Path to the score store database.",
    ),
]

VerboseOption = Annotated[
    int,
    typer.Option(
        "--verbose",
        "-v",
        help="Verbosity level (0=quiet, 1=normal, 2=verbose, 3=debug).",
        min=0,
        max=3,
        count=True,
    ),
]


def _print_job_result(job: EvaluationJob) -> None:
    """Print the final summary of a job."""
    if job.state == RunState.CANCELLED:
        console.print(
            f"\n[yellow]Evaluation cancelled.[/yellow] "
            f"Processed {job.processed} of {job.total} chatlogs; nothing was saved."
        )
        return

    message = f"Successfully evaluated {job.succeeded} chatlogs"
    if job.failed > 0:
        message += f" ({job.failed} failed)"
    console.print(f"\n[bold green]✓[/bold green] {message}.")


async def _run_evaluate(
    runner: EvaluationRunner,
    tracker: ProgressTracker,
    csv_path: Path,
    agent: str,
    replace: bool,
    poll_interval: float,
) -> EvaluationJob:
    items = await load_items_from_csv(csv_path)

    controller = RunController(poll_interval=poll_interval)
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, controller.cancel)
    except (NotImplementedError, RuntimeError):
        # Platforms without loop signal handlers fall back to KeyboardInterrupt
        pass

    try:
        job = await runner.evaluate(items, subject_id=agent, replace=replace, controller=controller)
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError):
            pass
        await runner.close()

    tracker.display_summary_table(job)
    return job


@app.command()
def evaluate(
    csv_file: Annotated[
        Path,
        typer.Argument(
            help="CSV file with a chatlog column (and optional scenario, shift, dateTime).",
            exists=True,
            file_okay=True,
            dir_okay=False,
            readable=True,
        ),
    ],
    agent: AgentOption,
    config: ConfigOption = None,
    store: StoreOption = None,
    verbose: VerboseOption = 1,
    model: Annotated[
        Optional[str],
        typer.Option(
            "--model",
            "-m",
            help="Scoring model to use.",
        ),
    ] = None,
    provider: Annotated[
        Optional[str],
        typer.Option(
            "--provider",
            "-p",
            help="Scoring provider (gemini or claude).",
        ),
    ] = None,
    rate_limit: Annotated[
        Optional[int],
        typer.Option(
            "--rate-limit",
            help="Maximum scoring requests per minute.",
            min=1,
        ),
    ] = None,
    append: Annotated[
        bool,
        typer.Option(
            "--append",
            help="Keep the agent's existing evaluations instead of replacing them.",
        ),
    ] = False,
    no_progress: Annotated[
        bool,
        typer.Option(
            "--no-progress",
            help="Disable the progress bar.",
        ),
    ] = False,
    log_file: Annotated[
        Optional[Path],
        typer.Option(
            "--log-file",
            help="Also write a debug log to this file.",
        ),
    ] = None,
) -> None:
    """Evaluate every chatlog in a CSV file and save the scores for an agent.

    Press Ctrl-C to stop after the chatlog currently being scored.

    Example:
        chatlog-grader evaluate chats.csv --agent alice
    """
    cfg = load_config(
        config_path=config,
        provider=provider,
        model=model,
        rate_limit=rate_limit,
        store_path=store,
        verbose=verbose,
        show_progress=not no_progress,
    )

    setup_logging(verbosity=verbose, log_file=log_file, console=console)

    tracker = ProgressTracker(
        console=console,
        show_progress=cfg.progress.show_progress,
        eta_refresh_seconds=cfg.progress.eta_refresh_seconds,
    )

    console.print("[bold green]Starting evaluation[/bold green]")
    console.print(f"  File: {csv_file}")
    console.print(f"  Agent: {agent}")
    console.print(f"  Provider: {cfg.scoring.provider.value}")
    console.print(f"  Model: {cfg.scoring.effective_model}")
    console.print(f"  Rate limit: {cfg.rate_limit.capacity} requests / {cfg.rate_limit.window_seconds:.0f}s")
    console.print()

    try:
        runner = EvaluationRunner(config=cfg, progress_tracker=tracker)
        job = asyncio.run(
            _run_evaluate(
                runner,
                tracker,
                csv_file,
                agent,
                replace=not append,
                poll_interval=cfg.run.pause_poll_interval_seconds,
            )
        )
        _print_job_result(job)

    except NoInputItemsError as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}. Check that the CSV has a chatlog column.")
        sys.exit(1)
    except AllItemsFailedError as e:
        tracker.display_summary_table(e.job)
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Evaluation interrupted by user[/yellow]")
        sys.exit(1)
    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose >= 2:
            console.print_exception()
        sys.exit(1)


def _open_runner(config: Optional[Path], store: Optional[str], verbose: int) -> EvaluationRunner:
    cfg: GraderConfig = load_config(config_path=config, store_path=store, verbose=verbose)
    setup_logging(verbosity=verbose)
    return EvaluationRunner(config=cfg, store=ScoreStore(cfg.store_path))


@app.command()
def performance(
    agent: AgentOption,
    config: ConfigOption = None,
    store: StoreOption = None,
    verbose: VerboseOption = 0,
) -> None:
    """Show weighted performance metrics for an agent.

    Example:
        chatlog-grader performance --agent alice
    """
    runner = _open_runner(config, store, verbose)

    try:
        metrics = asyncio.run(runner.performance(agent))
    except NoDataError:
        console.print(f"[yellow]No evaluations found for {agent}. Run 'evaluate' first.[/yellow]")
        sys.exit(1)
    except GraderError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        sys.exit(1)

    table = Table(title=f"Performance: {agent}")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right", style="green")

    table.add_row("Coherence (1-5)", f"{metrics.coherence:.2f}")
    table.add_row("Politeness (1-5)", f"{metrics.politeness:.2f}")
    table.add_row("Relevance (1-5)", f"{metrics.relevance:.2f}")
    table.add_row("Resolution rate", f"{metrics.resolution * 100:.0f}%")
    table.add_row("[bold]Average Score[/bold]", f"[bold]{metrics.average_score:.2f}[/bold]")
    table.add_row("Evaluations", str(metrics.total_evaluations))
    table.add_row("Resolution scale", metrics.resolution_scale.value)

    console.print(table)


@app.command("list")
def list_records(
    agent: AgentOption,
    config: ConfigOption = None,
    store: StoreOption = None,
    verbose: VerboseOption = 0,
) -> None:
    """List stored evaluations for an agent."""
    runner = _open_runner(config, store, verbose)
    records = asyncio.run(runner.records(agent))

    if not records:
        console.print(f"[yellow]No evaluations found for {agent}.[/yellow]")
        return

    table = Table(title=f"Evaluations: {agent}")
    table.add_column("ID", style="dim")
    table.add_column("Scenario")
    table.add_column("Coh", justify="right")
    table.add_column("Pol", justify="right")
    table.add_column("Rel", justify="right")
    table.add_column("Res", justify="right")
    table.add_column("Chatlog")

    for record in records:
        preview = record.transcript.replace("\n", " ")
        table.add_row(
            record.record_id,
            record.scenario or "-",
            f"{record.coherence:g}",
            f"{record.politeness:g}",
            f"{record.relevance:g}",
            f"{record.resolution:g}",
            preview[:50] + ("..." if len(preview) > 50 else ""),
        )

    console.print(table)


@app.command()
def delete(
    record_id: Annotated[str, typer.Argument(help="Evaluation record ID.")],
    agent: Annotated[
        Optional[str],
        typer.Option("--agent", "-a", help="Only delete if the record belongs to this agent."),
    ] = None,
    config: ConfigOption = None,
    store: StoreOption = None,
    verbose: VerboseOption = 0,
) -> None:
    """Delete a single stored evaluation."""
    runner = _open_runner(config, store, verbose)

    try:
        asyncio.run(runner.store.delete(record_id, subject_id=agent))
    except RecordNotFoundError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        sys.exit(1)

    console.print(f"[green]✓[/green] Deleted {record_id}")


@app.command()
def clear(
    agent: AgentOption,
    config: ConfigOption = None,
    store: StoreOption = None,
    verbose: VerboseOption = 0,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Do not ask for confirmation."),
    ] = False,
) -> None:
    """Delete every stored evaluation for an agent."""
    if not yes:
        typer.confirm(f"Delete all evaluations for {agent}?", abort=True)

    runner = _open_runner(config, store, verbose)
    removed = asyncio.run(runner.store.delete_all_for_subject(agent))
    console.print(f"[green]✓[/green] Deleted {removed} evaluations for {agent}")


if __name__ == "__main__":
    app()
