import logging
import os
import sys
from typing import Any

import structlog
from rich.console import Console

# Tables and summaries for the user go to stdout; log lines go to stderr
console = Console()

# Keys shown as an `org/repo@branch` tag instead of key=value pairs
CONTEXT_KEYS = ('organization', 'repo', 'branch')

# Chatty libraries, only worth hearing about when something is wrong
QUIET_LOGGERS = ('urllib3', 'requests_cache', 'clickhouse_connect')

LEVEL_STYLES = {
    'debug': 'dim',
    'info': 'green',
    'warning': 'yellow',
    'error': 'bold red',
    'critical': 'bold magenta',
}


def _context_tag(event_dict: dict[str, Any]) -> str:
    organization, repo, branch = (event_dict.pop(key, None) for key in CONTEXT_KEYS)
    if not (organization or repo):
        return ''
    tag = f"{organization}/{repo}" if organization else str(repo)
    if branch:
        tag += f"@{branch}"
    return f"[blue]\\[{tag}][/blue]"


class RichConsoleRenderer:
    """
    Renders events as one rich line on stderr:
    time, logger, level, repository tag, event, then key=value pairs.

    An `_style` key overrides the line style (used to dim cached HTTP hits).
    """

    def __init__(self, stream_console: Console | None = None):
        self._console = stream_console or Console(stderr=True)

    def __call__(self, logger, name, event_dict):
        style = event_dict.pop('_style', None)
        level = event_dict.pop('level', 'info')
        level_style = LEVEL_STYLES.get(level, 'white')

        parts = [
            f"[dim]{event_dict.pop('timestamp', '')}[/dim]",
            f"[bold]{event_dict.pop('logger', 'root')}[/bold]",
            f"[{level_style}]{level:<8}[/{level_style}]",
        ]
        tag = _context_tag(event_dict)
        if tag:
            parts.append(tag)
        parts.append(str(event_dict.pop('event', '')))

        trailer = [
            event_dict.pop(key) for key in ('exception', 'stack_info')
            if event_dict.get(key)
        ]
        event_dict.pop('exc_info', None)

        for key, value in event_dict.items():
            parts.append(f"[cyan]{key}[/cyan]=[green]{value!r}[/green]")

        line = ' '.join(parts)
        for extra in trailer:
            line += f"\n[red]{extra}[/red]"
        self._console.print(line, style=style, highlight=False)
        raise structlog.DropEvent


def drop_style_processor(logger, method_name, event_dict):
    """The `_style` hint is for the console only."""
    event_dict.pop('_style', None)
    return event_dict


def json_logs_enabled() -> bool:
    return (
        os.getenv('ENV') == 'production'
        or os.getenv('ECOSYNC_LOG_FORMAT', '').lower() == 'json'
    )


def setup_logging(level: str = 'INFO', json_logs: bool | None = None) -> None:
    """
    Configure structlog once per process.

    The sync loop usually runs unattended, so production (or
    ECOSYNC_LOG_FORMAT=json) gets one JSON object per line on stdout;
    interactive runs get the rich renderer.
    """
    if json_logs is None:
        json_logs = json_logs_enabled()

    logging.basicConfig(format='%(message)s', stream=sys.stdout, level=level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt='iso', utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    if json_logs:
        processors += [drop_style_processor, structlog.processors.JSONRenderer()]
    else:
        processors.append(RichConsoleRenderer())

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
