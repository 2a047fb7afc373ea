import typer

from ecosync.__version__ import __version__
from ecosync.commands import db
from ecosync.commands import sync
from ecosync.commands import views
from ecosync.core.logging import setup_logging

app = typer.Typer(
    help='EcoSync: incremental GitHub activity snapshots for an open-source ecosystem.',
    no_args_is_help=True,
    pretty_exceptions_show_locals=False,
)

app.add_typer(sync.app, name='sync')
app.add_typer(db.app, name='db')
app.add_typer(views.app, name='views')


def _print_version(value: bool):
    if value:
        typer.echo(f"ecosync {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    debug: bool = typer.Option(False, '--debug', help='Enable debug logging'),
    version: bool = typer.Option(
        False, '--version', callback=_print_version, is_eager=True,
        help='Show the version and exit',
    ),
):
    """
    EcoSync CLI - keep the ecosystem snapshot fresh.
    """
    setup_logging(level='DEBUG' if debug else 'INFO')


if __name__ == '__main__':
    app()
