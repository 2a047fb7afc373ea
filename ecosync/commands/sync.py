import signal
import threading
from pathlib import Path

import dotenv
import structlog
import typer
from rich.table import Table

from ecosync.core.clickhouse import check_clickhouse_connection
from ecosync.core.container import get_container
from ecosync.core.decorators import handle_errors
from ecosync.core.logging import console
from ecosync.services.sync_service import PassReport
from ecosync.services.sync_service import RepoOutcome

dotenv.load_dotenv()
logger = structlog.get_logger('sync_command')
app = typer.Typer(help='Incremental synchronization with GitHub')


def print_summary(report: PassReport):
    stats = report.stats
    table = Table(title='Sync Pass Summary')
    table.add_column('Metric', style='cyan')
    table.add_column('Value', style='magenta')
    table.add_row('Repositories', str(stats.total))
    for outcome in RepoOutcome:
        table.add_row(f'  {outcome.value.replace("_", " ").title()}', str(len(report.with_outcome(outcome))))
    table.add_row('Branches Visited', str(stats.branches))
    table.add_row('Commits Inserted', str(stats.commits_inserted))
    table.add_row('Contributions Written', str(stats.contributions))
    table.add_row('API Requests', str(stats.api_requests))
    for view, ok in report.refreshed.items():
        table.add_row(f'View {view}', '[green]refreshed[/]' if ok else '[red]failed[/]')
    table.add_row('Total Duration', f"{stats.elapsed_time:.2f}s")
    console.print(table)


def install_signal_handlers(stop_event: threading.Event) -> None:
    """SIGINT/SIGTERM finish the repositories in flight, then stop."""
    def handler(signum, frame):
        if stop_event.is_set():
            raise KeyboardInterrupt
        logger.warning('Stop requested, finishing in-flight repositories', signal=signum)
        stop_event.set()

    signal.signal(signal.SIGINT, handler)
    signal.signal(signal.SIGTERM, handler)


@app.command()
@handle_errors
def run(
    token: str = typer.Option(
        None, envvar='GITHUB_TOKEN', help='GitHub Token',
    ),
    once: bool = typer.Option(False, '--once', help='Run a single pass and exit'),
    interval: float | None = typer.Option(None, help='Seconds between passes'),
    workers: int | None = typer.Option(None, min=1, help='Number of concurrent workers'),
    repos_file: str | None = typer.Option(
        None, '--repos-file', help='Tracked repository JSONL ledger',
    ),
    repo: list[str] | None = typer.Option(
        None, '--repo', help='Only sync ORG/NAME (repeatable)',
    ),
):
    """
    Poll GitHub and ingest new commits, branches, contributors and metadata.
    Reads from: the tracked repository ledger
    Writes to: ClickHouse (repositories, branches, commits, developers, contributions)
    """
    container = get_container()
    config = container.config
    if token:
        config.github.token = token
    config.github.require_token()

    if interval is not None:
        config.sync.interval = interval
    if workers is not None:
        config.sync.workers = workers
    if repos_file is not None:
        config.sync.repos_file = Path(repos_file)

    db_config = config.get_db_config('admin')
    check_clickhouse_connection(db_config, console=console)

    stop_event = threading.Event()
    install_signal_handlers(stop_event)

    with container.get_ingestion_store() as store:
        orchestrator = container.create_orchestrator(store, token, stop_event)
        source = container.create_source(only=set(repo) if repo else None)

        logger.info(
            'Starting sync loop',
            repos_file=str(config.sync.repos_file),
            interval=config.sync.interval,
            workers=config.sync.workers,
            refresh_mode=config.sync.refresh_mode,
        )
        passes = orchestrator.run_forever(source, max_passes=1 if once else None)

        if orchestrator.last_report is not None:
            print_summary(orchestrator.last_report)
        logger.info('Sync loop finished', passes=passes)
