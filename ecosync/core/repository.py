"""ClickHouse implementation of the sync store."""
from collections.abc import Callable
from collections.abc import Iterable
from functools import wraps
from typing import Any
from typing import TypeVar

import clickhouse_connect
import structlog
from clickhouse_connect.driver.client import Client
from clickhouse_connect.driver.exceptions import ClickHouseError

from ecosync.core.config import DatabaseConfig
from ecosync.core.exceptions import PersistenceError
from ecosync.core.schema import TABLE_DDLS
from ecosync.core.schema import VIEW_DDLS
from ecosync.core.store import SyncStore
from ecosync.core.store import TABLES
from ecosync.core.timeutil import ensure_utc
from ecosync.models.branch import Branch
from ecosync.models.commit import Commit
from ecosync.models.contributor import Contribution
from ecosync.models.contributor import Developer
from ecosync.models.repository import Repository

logger = structlog.get_logger('repository')

F = TypeVar('F', bound=Callable[..., Any])

REPO_COLUMNS = [
    'organization', 'repo', 'repo_type', 'dependencies', 'default_branch', 'stars',
    'forks', 'owner_type', 'created_at', 'updated_at', 'pushed_at',
]
BRANCH_COLUMNS = ['organization', 'repo', 'branch', 'latest_commit_date']
COMMIT_COLUMNS = [
    'organization', 'repo', 'hash', 'branch', 'dev_id', 'dev_name', 'commit_date',
]
DEVELOPER_COLUMNS = ['dev_id', 'name', 'avatar']
CONTRIBUTION_COLUMNS = ['dev_id', 'organization', 'repo', 'contributions']


def persistence(func: F) -> F:
    """Re-raise driver errors as PersistenceError."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except ClickHouseError as e:
            raise PersistenceError(f"{func.__name__} failed: {e}") from e
    return wrapper  # type: ignore[return-value]


class BaseRepository:
    """Connection lifecycle shared by ClickHouse-backed classes."""

    def __init__(self, config: DatabaseConfig):
        self.config = config
        self._client: Client | None = None

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = clickhouse_connect.get_client(
                **self.config.get_connection_params(),
            )
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None


class ClickHouseStore(BaseRepository, SyncStore):
    """
    Sync store on ReplacingMergeTree tables, read with FINAL.

    ClickHouse inserts are synchronous, so a call that returns has been
    written durably. Deduplication of commits is done before inserting;
    the table engine only collapses leftovers.
    """

    @persistence
    def ensure_schema(self) -> None:
        """Idempotent schema creation."""
        # The target database may not exist yet, so create it from `default`
        bootstrap = clickhouse_connect.get_client(
            **{**self.config.get_connection_params(), 'database': 'default'},
        )
        try:
            bootstrap.command(
                f"CREATE DATABASE IF NOT EXISTS {self.config.database}",
            )
        finally:
            bootstrap.close()

        for ddl in TABLE_DDLS:
            self.client.command(ddl)
        for ddl in VIEW_DDLS.values():
            self.client.command(ddl)

    def _repository(self, row: tuple) -> Repository:
        fields = dict(zip(REPO_COLUMNS, row))
        fields['name'] = fields.pop('repo')
        return Repository.model_validate(fields)

    @persistence
    def get_repository(self, repo, organization):
        result = self.client.query(
            f"""
            SELECT {', '.join(REPO_COLUMNS)}
            FROM repositories FINAL
            WHERE repo = {{repo:String}} AND organization = {{org:String}}
            """,
            parameters={'repo': repo, 'org': organization},
        )
        rows = result.result_rows
        return self._repository(rows[0]) if rows else None

    @persistence
    def upsert_repository(self, repository):
        self.client.insert(
            'repositories',
            [[
                repository.organization, repository.name, repository.repo_type.value,
                repository.dependencies, repository.default_branch, repository.stars,
                repository.forks, repository.owner_type, repository.created_at,
                repository.updated_at, repository.pushed_at,
            ]],
            column_names=REPO_COLUMNS,
        )

    @persistence
    def list_repositories(self):
        result = self.client.query(
            f"SELECT {', '.join(REPO_COLUMNS)} FROM repositories FINAL ORDER BY organization, repo",
        )
        return [self._repository(row) for row in result.result_rows]

    @persistence
    def get_watermark(self, repo, organization, branch):
        result = self.client.query(
            """
            SELECT latest_commit_date
            FROM branches FINAL
            WHERE repo = {repo:String} AND organization = {org:String} AND branch = {branch:String}
            """,
            parameters={'repo': repo, 'org': organization, 'branch': branch},
        )
        rows = result.result_rows
        return ensure_utc(rows[0][0]) if rows else None

    @persistence
    def set_watermark(self, repo, organization, branch, timestamp):
        self.client.insert(
            'branches',
            [[organization, repo, branch, timestamp]],
            column_names=BRANCH_COLUMNS,
        )

    @persistence
    def list_branches(self, repo, organization):
        result = self.client.query(
            """
            SELECT branch, latest_commit_date
            FROM branches FINAL
            WHERE repo = {repo:String} AND organization = {org:String}
            ORDER BY branch
            """,
            parameters={'repo': repo, 'org': organization},
        )
        return [
            Branch(repo=repo, organization=organization, name=name, latest_commit_date=ts)
            for name, ts in result.result_rows
        ]

    @persistence
    def insert_commits(self, commits):
        if not commits:
            return 0

        groups: dict[tuple[str, str], dict[str, Commit]] = {}
        for commit in commits:
            groups.setdefault((commit.repo, commit.organization), {}).setdefault(
                commit.hash, commit,
            )

        added = 0
        for (repo, organization), by_hash in groups.items():
            existing = {
                row[0] for row in self.client.query(
                    """
                    SELECT hash FROM commits
                    WHERE repo = {repo:String} AND organization = {org:String}
                      AND hash IN {hashes:Array(String)}
                    """,
                    parameters={'repo': repo, 'org': organization, 'hashes': list(by_hash)},
                ).result_rows
            }
            rows = [
                [c.organization, c.repo, c.hash, c.branch, c.dev_id, c.dev_name, c.commit_date]
                for h, c in by_hash.items() if h not in existing
            ]
            if rows:
                self.client.insert('commits', rows, column_names=COMMIT_COLUMNS)
            added += len(rows)
        return added

    @persistence
    def count_commits(self, repo=None, organization=None):
        filters, params = [], {}
        if repo is not None:
            filters.append('repo = {repo:String}')
            params['repo'] = repo
        if organization is not None:
            filters.append('organization = {org:String}')
            params['org'] = organization
        where = f"WHERE {' AND '.join(filters)}" if filters else ''
        return self.client.query(
            f'SELECT count() FROM commits FINAL {where}', parameters=params,
        ).result_rows[0][0]

    @persistence
    def upsert_developers(self, developers: Iterable[Developer]):
        rows = [[d.id, d.name, d.avatar] for d in developers]
        if rows:
            self.client.insert('developers', rows, column_names=DEVELOPER_COLUMNS)

    @persistence
    def upsert_contributions(self, contributions: Iterable[Contribution]):
        rows = [
            [c.dev_id, c.organization, c.repo, c.contributions]
            for c in contributions
        ]
        if rows:
            self.client.insert(
                'contributions', rows, column_names=CONTRIBUTION_COLUMNS,
            )

    @persistence
    def get_contribution(self, dev_id, repo, organization):
        rows = self.client.query(
            """
            SELECT contributions FROM contributions FINAL
            WHERE dev_id = {dev:UInt64} AND repo = {repo:String} AND organization = {org:String}
            """,
            parameters={'dev': dev_id, 'repo': repo, 'org': organization},
        ).result_rows
        return rows[0][0] if rows else None

    @persistence
    def refresh_view(self, name):
        if name not in VIEW_DDLS:
            raise PersistenceError(f"Unknown view: {name}")
        # REFRESH only schedules the run; WAIT blocks until it has finished
        self.client.command(f'SYSTEM REFRESH VIEW {name}')
        self.client.command(f'SYSTEM WAIT VIEW {name}')

    @persistence
    def get_aggregate(self, name):
        if name not in VIEW_DDLS:
            raise PersistenceError(f"Unknown view: {name}")
        result = self.client.query(f'SELECT * FROM {name} ORDER BY week')
        return [dict(zip(result.column_names, row)) for row in result.result_rows]

    @persistence
    def get_stats(self):
        return {
            table: self.client.query(f'SELECT count() FROM {table} FINAL').result_rows[0][0]
            for table in TABLES
        }
