"""Configuration management for EcoSync."""
import dataclasses
import os
from collections.abc import Callable
from dataclasses import dataclass
from dataclasses import field
from pathlib import Path
from typing import Any
from typing import Literal

from ecosync.core.exceptions import ConfigurationError

DEFAULT_VIEWS = ('weekly_commits', 'weekly_new_developers', 'cumulative_totals')

Role = Literal['admin', 'guest']

# Environment variables holding (user, password) per ClickHouse role
ROLE_CREDENTIALS: dict[str, tuple[str, str]] = {
    'admin': ('CLICKHOUSE_ADMIN_USER', 'CLICKHOUSE_ADMIN_PASSWORD'),
    'guest': ('CLICKHOUSE_GUEST_USER', 'CLICKHOUSE_GUEST_PASSWORD'),
}


def env(name: str, default: str, cast: Callable[[str], Any] = str) -> Any:
    """Field whose default is read from the environment at construction time."""
    return field(default_factory=lambda: cast(os.getenv(name, default)))


@dataclass
class DatabaseConfig:
    """Where the sync store lives and who it connects as."""
    host: str = env('CLICKHOUSE_HOST', 'localhost')
    port: int = env('CLICKHOUSE_PORT', '8123', int)
    database: str = env('CLICKHOUSE_DB', 'ecosync')
    user: str = 'guest'
    password: str = 'guest'

    def __repr__(self) -> str:
        return (
            f"DatabaseConfig({self.user}:*****@{self.host}:{self.port}"
            f"/{self.database})"
        )

    def for_role(self, role: Role) -> 'DatabaseConfig':
        user_var, password_var = ROLE_CREDENTIALS[role]
        return dataclasses.replace(
            self,
            user=os.getenv(user_var, role),
            password=os.getenv(password_var, role),
        )

    def get_connection_params(self) -> dict:
        """Keyword arguments for `clickhouse_connect.get_client`."""
        return {
            'host': self.host,
            'port': self.port,
            'username': self.user,
            'password': self.password,
            'database': self.database,
        }


@dataclass
class GitHubConfig:
    token: str | None = field(
        default_factory=lambda: os.getenv('GITHUB_TOKEN'),
    )
    api_base_url: str = env('GITHUB_API_URL', 'https://api.github.com')
    page_size: int = env('ECOSYNC_PAGE_SIZE', '100', int)
    # Short TTL; stale entries are revalidated with ETags, and 304s are free
    cache_ttl: int = env('ECOSYNC_CACHE_TTL', '60', int)
    cache_name: str = '.requests-cache/ecosync.sqlite3'
    timeout: float = 20.0
    retries: int = 3
    max_rate_limit_waits: int = 5

    def __repr__(self) -> str:
        return (
            f"GitHubConfig(token='*****', api_base_url={self.api_base_url!r}, "
            f"page_size={self.page_size!r}, cache_ttl={self.cache_ttl!r}, "
            f"timeout={self.timeout!r}, retries={self.retries!r})"
        )

    def require_token(self) -> str:
        if not self.token:
            raise ConfigurationError('GITHUB_TOKEN is not set')
        return self.token


@dataclass
class SyncConfig:
    """Scheduling and concurrency knobs of the sync loop."""
    interval: float = env('ECOSYNC_INTERVAL', '3600', float)
    workers: int = env('ECOSYNC_WORKERS', '4', int)
    repo_timeout: float = env('ECOSYNC_REPO_TIMEOUT', '900', float)
    refresh_mode: Literal['pass', 'repo'] = env('ECOSYNC_REFRESH_MODE', 'pass')
    repos_file: Path = env('ECOSYNC_REPOS_FILE', 'data/repositories.jsonl', Path)
    views: tuple[str, ...] = DEFAULT_VIEWS

    def __post_init__(self):
        if self.refresh_mode not in ('pass', 'repo'):
            raise ConfigurationError(
                f"Invalid refresh mode: {self.refresh_mode!r} (expected 'pass' or 'repo')",
            )
        if self.workers < 1:
            raise ConfigurationError('At least one worker is required')


@dataclass
class EcoSyncConfig:
    github: GitHubConfig = field(default_factory=GitHubConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)

    def get_db_config(self, role: Role = 'guest') -> DatabaseConfig:
        """Admin writes and owns the schema; guest only reads."""
        return self.database.for_role(role)


_config: EcoSyncConfig | None = None


def get_config() -> EcoSyncConfig:
    global _config
    if _config is None:
        _config = EcoSyncConfig()
    return _config
