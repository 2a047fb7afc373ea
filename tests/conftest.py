import threading
from datetime import datetime

import pytest

from ecosync.core.config import SyncConfig
from ecosync.core.exceptions import EcoSyncError
from ecosync.core.store import InMemoryStore
from ecosync.core.timeutil import parse_datetime
from ecosync.models.repository import RepoType
from ecosync.models.repository import TrackedRepository
from ecosync.services.sync_service import SyncOrchestrator


def commit_payload(sha, date, login='alice', user_id=1, linked=True):
    payload = {
        'sha': sha,
        'commit': {
            'author': {'name': login, 'date': date},
            'committer': {'name': login, 'date': date},
        },
        'author': None,
    }
    if linked:
        payload['author'] = {
            'id': user_id,
            'login': login,
            'avatar_url': f'https://avatars.example/{login}',
            'type': 'User',
        }
    return payload


def repo_payload(
    name='R',
    updated_at='2024-01-05T00:00:00Z',
    pushed_at='2024-01-05T00:00:00Z',
    default_branch='main',
    stars=10,
    forks=2,
):
    return {
        'name': name,
        'default_branch': default_branch,
        'stargazers_count': stars,
        'forks_count': forks,
        'owner': {'id': 99, 'login': 'O', 'type': 'Organization'},
        'created_at': '2020-01-01T00:00:00Z',
        'updated_at': updated_at,
        'pushed_at': pushed_at,
    }


def contributor_payload(login, user_id, contributions, account_type='User'):
    return {
        'login': login,
        'id': user_id,
        'avatar_url': f'https://avatars.example/{login}',
        'type': account_type,
        'contributions': contributions,
    }


class FakeGitHub:
    """In-process stand-in for GitHubService with the same lazy page API."""

    def __init__(self, page_size: int = 2):
        self.page_size = page_size
        self.repos: dict[tuple[str, str], dict | None] = {}
        self.branches: dict[tuple[str, str], list] = {}
        self.commits: dict[tuple[str, str, str], list] = {}
        self.contributors: dict[tuple[str, str], list] = {}
        self.raise_on: dict[tuple, Exception] = {}
        self.calls: list[tuple] = []
        self.requests_made = 0
        self._lock = threading.Lock()

    def _record(self, *call):
        with self._lock:
            self.calls.append(call)
        error = self.raise_on.get(call[:3])
        if error is not None:
            raise error

    def _pages(self, items):
        for i in range(0, len(items), self.page_size):
            self.requests_made += 1
            yield items[i:i + self.page_size]
        self.requests_made += 1

    def get_repository(self, owner, repo):
        self._record('repo', owner, repo)
        self.requests_made += 1
        return self.repos.get((owner, repo))

    def iter_branches(self, owner, repo):
        self._record('branches', owner, repo)
        return self._pages(self.branches.get((owner, repo), []))

    def iter_commits(self, owner, repo, branch, since=None):
        self._record('commits', owner, repo, branch, since)
        items = self.commits.get((owner, repo, branch), [])
        if since is not None:
            items = [
                c for c in items
                if not isinstance(c, dict) or 'commit' not in c
                or parse_datetime(c['commit']['committer']['date']) >= since
            ]
        return self._pages(items)

    def iter_contributors(self, owner, repo):
        self._record('contributors', owner, repo)
        return self._pages(self.contributors.get((owner, repo), []))

    def endpoints(self) -> set[str]:
        return {call[0] for call in self.calls}


def utc(text: str) -> datetime:
    return parse_datetime(text)


@pytest.fixture
def fake_github():
    return FakeGitHub()


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def sync_config(tmp_path):
    return SyncConfig(
        interval=0,
        workers=1,
        repo_timeout=600,
        refresh_mode='pass',
        repos_file=tmp_path / 'repositories.jsonl',
    )


@pytest.fixture
def orchestrator(fake_github, store, sync_config):
    return SyncOrchestrator(fake_github, store, sync_config)


@pytest.fixture
def tracked():
    return TrackedRepository(name='R', organization='O', repo_type=RepoType.WHITELISTED)


class Boom(EcoSyncError):
    pass
