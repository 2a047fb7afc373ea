"""Startup checks for the ClickHouse sync store."""
import socket
from collections.abc import Callable
from typing import NamedTuple

import clickhouse_connect
import typer
from rich.console import Console

from ecosync.core.config import DatabaseConfig
from ecosync.core.schema import VIEW_DDLS
from ecosync.core.store import TABLES

START_SERVER = (
    'docker run -d --name clickhouse -p 8123:8123 '
    'clickhouse/clickhouse-server:25.12-alpine'
)


class Problem(NamedTuple):
    message: str
    solution: str


def _connect(config: DatabaseConfig, database: str | None = None):
    params = config.get_connection_params()
    if database is not None:
        params['database'] = database
    return clickhouse_connect.get_client(**params)


def _network(config: DatabaseConfig) -> Problem | None:
    try:
        with socket.create_connection((config.host, config.port), timeout=5):
            return None
    except OSError as e:
        return Problem(
            f'Cannot reach [cyan]{config.host}:{config.port}[/] [dim]({e})[/dim]',
            f'[cyan]{START_SERVER}[/] then [cyan]ecosync db init[/]',
        )


def _credentials(config: DatabaseConfig) -> Problem | None:
    try:
        _connect(config, database='default').query('SELECT 1')
        return None
    except Exception as e:
        if any(word in str(e).lower() for word in ('authentication', 'password', 'denied')):
            return Problem(
                f'Authentication failed for [cyan]{config.user}[/]',
                'Create the user, e.g. [cyan]docker exec clickhouse clickhouse-client -q '
                f'"CREATE USER IF NOT EXISTS {config.user} IDENTIFIED BY \'<password>\'"[/]',
            )
        return Problem(f'Cannot log in: [dim]{e}[/dim]', 'Check CLICKHOUSE_* settings')


def _database(config: DatabaseConfig) -> Problem | None:
    try:
        _connect(config).query('SELECT 1')
        return None
    except Exception as e:
        if 'unknown database' in str(e).lower():
            return Problem(
                f'Database [cyan]{config.database}[/] does not exist',
                '[cyan]ecosync db init[/]',
            )
        return Problem(
            f'Cannot use [cyan]{config.database}[/] as [cyan]{config.user}[/]: [dim]{e}[/dim]',
            f'[cyan]GRANT SELECT, INSERT ON {config.database}.* TO {config.user}[/]',
        )


def _schema(config: DatabaseConfig) -> Problem | None:
    """Base tables and aggregate views must all be present."""
    try:
        result = _connect(config).query('SHOW TABLES')
    except Exception as e:
        return Problem(f'Cannot list tables: [dim]{e}[/dim]', 'Check grants')
    existing = {row[0] for row in result.result_rows}
    missing = (set(TABLES) | set(VIEW_DDLS)) - existing
    if missing:
        return Problem(
            f'Missing tables or views: [cyan]{", ".join(sorted(missing))}[/]',
            '[cyan]ecosync db init[/]',
        )
    return None


def check_clickhouse_connection(
    config: DatabaseConfig,
    console: Console | None = None,
    require_tables: bool = True,
) -> bool:
    """
    Unreachable or unprepared storage is a startup error: the first failing
    step prints its problem and a suggested fix, then exits with status 1.

    Steps: network, credentials, and (when `require_tables`) database and schema.
    `db init` skips the last two since it is what creates them.
    """
    console = console or Console()
    steps: list[Callable[[DatabaseConfig], Problem | None]] = [_network, _credentials]
    if require_tables:
        steps += [_database, _schema]

    for step in steps:
        problem = step(config)
        if problem is not None:
            console.print(
                f'[bold red]Error:[/] {problem.message}\n\n'
                f'[green]Solution:[/] {problem.solution}',
            )
            raise typer.Exit(1)
    return True
