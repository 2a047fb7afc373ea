import typer
from rich.table import Table

from ecosync.core.clickhouse import check_clickhouse_connection
from ecosync.core.container import get_container
from ecosync.core.decorators import handle_errors
from ecosync.core.logging import console

app = typer.Typer()


@app.callback(invoke_without_command=True)
@handle_errors
def main(
    weeks: int = typer.Option(8, help='Number of recent weeks to show'),
):
    """Show table sizes and the latest weekly aggregates."""
    container = get_container()
    config = container.config

    db_config = config.get_db_config('guest')
    check_clickhouse_connection(db_config, console=console)

    with container.get_query_store() as store:
        # --- 1. Table sizes ---
        overview = Table(title='Database Statistics')
        overview.add_column('Table', style='cyan')
        overview.add_column('Rows', style='magenta', justify='right')
        for table, count in store.get_stats().items():
            overview.add_row(table, f'{count:,}')
        console.print(overview)
        console.print()

        # --- 2. Derived aggregates ---
        for view in config.sync.views:
            rows = store.get_aggregate(view)[-weeks:]
            if not rows:
                console.print(f'[dim]{view}: no data[/dim]')
                continue
            agg = Table(title=view.replace('_', ' ').title())
            for column in rows[0]:
                agg.add_column(column, style='cyan' if column == 'week' else 'magenta')
            for row in rows:
                agg.add_row(*(
                    value.strftime('%Y-%m-%d') if hasattr(value, 'strftime') else f'{value:,}'
                    for value in row.values()
                ))
            console.print(agg)
            console.print()
