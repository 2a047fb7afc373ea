"""Persistence seam of the sync engine and its in-memory implementation."""
import threading
from abc import ABC
from abc import abstractmethod
from collections import Counter
from collections.abc import Iterable
from datetime import datetime
from datetime import timedelta
from typing import Any

from ecosync.core.exceptions import PersistenceError
from ecosync.core.timeutil import ensure_utc
from ecosync.models.branch import Branch
from ecosync.models.commit import Commit
from ecosync.models.contributor import Contribution
from ecosync.models.contributor import Developer
from ecosync.models.repository import Repository

TABLES = ('repositories', 'branches', 'commits', 'developers', 'contributions')


def week_start(value: datetime) -> datetime:
    """Monday 00:00 UTC of the week containing `value`."""
    day = ensure_utc(value).replace(hour=0, minute=0, second=0, microsecond=0)
    return day - timedelta(days=day.weekday())


class SyncStore(ABC):
    """
    Durable state written by the sync engine.

    Writes for one (repo, organization) key come from a single thread at a
    time; implementations only need to be safe for concurrent writers of
    different keys.
    """

    @abstractmethod
    def ensure_schema(self) -> None:
        ...

    @abstractmethod
    def get_repository(self, repo: str, organization: str) -> Repository | None:
        ...

    @abstractmethod
    def upsert_repository(self, repository: Repository) -> None:
        ...

    @abstractmethod
    def list_repositories(self) -> list[Repository]:
        ...

    @abstractmethod
    def get_watermark(self, repo: str, organization: str, branch: str) -> datetime | None:
        ...

    @abstractmethod
    def set_watermark(self, repo: str, organization: str, branch: str, timestamp: datetime) -> None:
        ...

    @abstractmethod
    def list_branches(self, repo: str, organization: str) -> list[Branch]:
        ...

    @abstractmethod
    def insert_commits(self, commits: list[Commit]) -> int:
        """Insert commits not stored yet for their (repo, organization). Returns rows added."""

    @abstractmethod
    def count_commits(self, repo: str | None = None, organization: str | None = None) -> int:
        ...

    @abstractmethod
    def upsert_developers(self, developers: Iterable[Developer]) -> None:
        ...

    @abstractmethod
    def upsert_contributions(self, contributions: Iterable[Contribution]) -> None:
        ...

    @abstractmethod
    def get_contribution(self, dev_id: int, repo: str, organization: str) -> int | None:
        ...

    @abstractmethod
    def refresh_view(self, name: str) -> None:
        """Recompute one derived aggregate wholesale."""

    @abstractmethod
    def get_aggregate(self, name: str) -> list[dict[str, Any]]:
        ...

    @abstractmethod
    def get_stats(self) -> dict[str, int]:
        ...

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class InMemoryStore(SyncStore):
    """Dict-backed store for tests and dry runs."""

    def __init__(self):
        self._lock = threading.RLock()
        self.repositories: dict[tuple[str, str], Repository] = {}
        self.branches: dict[tuple[str, str, str], Branch] = {}
        self.commits: dict[tuple[str, str, str], Commit] = {}
        self.developers: dict[int, Developer] = {}
        self.contributions: dict[tuple[int, str, str], Contribution] = {}
        self.aggregates: dict[str, list[dict[str, Any]]] = {}
        self.refresh_log: list[str] = []

    def ensure_schema(self) -> None:
        pass

    def get_repository(self, repo, organization):
        with self._lock:
            stored = self.repositories.get((repo, organization))
            return stored.model_copy(deep=True) if stored else None

    def upsert_repository(self, repository):
        with self._lock:
            self.repositories[repository.key] = repository.model_copy(deep=True)

    def list_repositories(self):
        with self._lock:
            return [r.model_copy(deep=True) for r in self.repositories.values()]

    def get_watermark(self, repo, organization, branch):
        with self._lock:
            stored = self.branches.get((repo, organization, branch))
            return stored.latest_commit_date if stored else None

    def set_watermark(self, repo, organization, branch, timestamp):
        with self._lock:
            self.branches[(repo, organization, branch)] = Branch(
                repo=repo, organization=organization, name=branch,
                latest_commit_date=timestamp,
            )

    def list_branches(self, repo, organization):
        with self._lock:
            return [
                b for (r, o, _), b in self.branches.items()
                if r == repo and o == organization
            ]

    def insert_commits(self, commits):
        added = 0
        with self._lock:
            for commit in commits:
                if commit.key in self.commits:
                    continue
                self.commits[commit.key] = commit
                added += 1
        return added

    def count_commits(self, repo=None, organization=None):
        with self._lock:
            return sum(
                1 for (r, o, _) in self.commits
                if (repo is None or r == repo) and (organization is None or o == organization)
            )

    def upsert_developers(self, developers):
        with self._lock:
            for developer in developers:
                self.developers[developer.id] = developer

    def upsert_contributions(self, contributions):
        with self._lock:
            for contribution in contributions:
                self.contributions[contribution.key] = contribution

    def get_contribution(self, dev_id, repo, organization):
        with self._lock:
            stored = self.contributions.get((dev_id, repo, organization))
            return stored.contributions if stored else None

    def refresh_view(self, name):
        builders = {
            'weekly_commits': self._weekly_commits,
            'weekly_new_developers': self._weekly_new_developers,
            'cumulative_totals': self._cumulative_totals,
        }
        if name not in builders:
            raise PersistenceError(f"Unknown view: {name}")
        with self._lock:
            self.aggregates[name] = builders[name]()
            self.refresh_log.append(name)

    def get_aggregate(self, name):
        with self._lock:
            return list(self.aggregates.get(name, []))

    def _weekly_commits(self) -> list[dict[str, Any]]:
        counts = Counter(week_start(c.commit_date) for c in self.commits.values())
        return [{'week': w, 'commits': n} for w, n in sorted(counts.items())]

    def _weekly_new_developers(self) -> list[dict[str, Any]]:
        first_seen: dict[int, datetime] = {}
        for c in self.commits.values():
            if c.dev_id is None:
                continue
            if c.dev_id not in first_seen or c.commit_date < first_seen[c.dev_id]:
                first_seen[c.dev_id] = c.commit_date
        counts = Counter(week_start(d) for d in first_seen.values())
        return [{'week': w, 'new_developers': n} for w, n in sorted(counts.items())]

    def _cumulative_totals(self) -> list[dict[str, Any]]:
        new_devs = {r['week']: r['new_developers'] for r in self._weekly_new_developers()}
        rows = []
        commits_total = devs_total = 0
        for row in self._weekly_commits():
            commits_total += row['commits']
            devs_total += new_devs.get(row['week'], 0)
            rows.append({
                'week': row['week'],
                'cumulative_commits': commits_total,
                'cumulative_developers': devs_total,
            })
        return rows

    def get_stats(self):
        with self._lock:
            return {
                'repositories': len(self.repositories),
                'branches': len(self.branches),
                'commits': len(self.commits),
                'developers': len(self.developers),
                'contributions': len(self.contributions),
            }
