import structlog
import typer

from ecosync.core.clickhouse import check_clickhouse_connection
from ecosync.core.container import get_container
from ecosync.core.decorators import handle_errors
from ecosync.core.logging import console

logger = structlog.get_logger('db_init_command')
app = typer.Typer()


@app.callback(invoke_without_command=True)
@handle_errors
def main():
    """Create the database, tables and aggregate views (idempotent)."""
    container = get_container()
    db_config = container.config.get_db_config('admin')
    check_clickhouse_connection(db_config, console=console, require_tables=False)

    with container.get_ingestion_store() as store:
        store.ensure_schema()
    logger.info('Schema ready', database=db_config.database)
