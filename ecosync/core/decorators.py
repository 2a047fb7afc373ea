import functools
from collections.abc import Callable
from typing import Any

import structlog
import typer

from ecosync.core.exceptions import ConfigurationError
from ecosync.core.exceptions import EcoSyncError
from ecosync.core.exceptions import PersistenceError
from ecosync.core.logging import console

logger = structlog.get_logger('cli')

# Most specific first: the first matching class picks the banner
ERROR_BANNERS: tuple[tuple[type[BaseException], str], ...] = (
    (ConfigurationError, 'Configuration Error'),
    (PersistenceError, 'Database Error'),
    (EcoSyncError, 'Sync Error'),
    (ValueError, 'Validation Error'),
)


def handle_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    """
    Turn known failures into a one-line banner and exit status 1.

    Anything unexpected is logged with its traceback; Ctrl-C exits with 130.
    """
    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except typer.Exit:
            raise
        except KeyboardInterrupt:
            console.print('\n[yellow]Operation cancelled by user.[/]')
            raise typer.Exit(130)
        except Exception as e:
            banner = next(
                (label for cls, label in ERROR_BANNERS if isinstance(e, cls)), None,
            )
            if banner is None:
                console.print(f"[bold red]Unexpected Error:[/] {e}")
                logger.exception('Unexpected error', command=func.__name__)
            else:
                console.print(f"[bold red]{banner}:[/] {e}")
                logger.debug(banner, command=func.__name__, exc_info=True)
            raise typer.Exit(1)
    return wrapper
