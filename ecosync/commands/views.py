import structlog
import typer

from ecosync.core.clickhouse import check_clickhouse_connection
from ecosync.core.container import get_container
from ecosync.core.decorators import handle_errors
from ecosync.core.logging import console
from ecosync.services.view_service import ViewRefresher

logger = structlog.get_logger('views_command')
app = typer.Typer(help='Derived aggregate views')


@app.command()
@handle_errors
def refresh(
    names: list[str] | None = typer.Argument(None, help='Views to refresh (default: all)'),
):
    """Recompute derived aggregates now instead of waiting for the next pass."""
    container = get_container()
    config = container.config
    check_clickhouse_connection(config.get_db_config('admin'), console=console)

    targets = names or list(config.sync.views)
    unknown = set(targets) - set(config.sync.views)
    if unknown:
        raise ValueError(f"Unknown views: {', '.join(sorted(unknown))}")

    with container.get_ingestion_store() as store:
        results = ViewRefresher(store).refresh(targets)

    failed = [name for name, ok in results.items() if not ok]
    if failed:
        console.print(f"[bold red]Failed:[/] {', '.join(failed)}")
        raise typer.Exit(1)
    console.print(f"[green]Refreshed:[/] {', '.join(results)}")
