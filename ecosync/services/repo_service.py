from dataclasses import dataclass
from enum import Enum

import structlog

from ecosync.core.store import SyncStore
from ecosync.core.timeutil import latest
from ecosync.models.github import parse_repository
from ecosync.models.repository import Repository
from ecosync.models.repository import TrackedRepository
from ecosync.services.github_service import GitHubService

logger = structlog.get_logger('repo_service')


class RepoState(str, Enum):
    UNCHANGED = 'unchanged'
    CHANGED = 'changed'
    MISSING = 'missing'

    def __str__(self) -> str:
        return self.value


@dataclass
class ChangeCheck:
    state: RepoState
    snapshot: Repository | None = None
    previous: Repository | None = None


def has_advanced(fresh: Repository, stored: Repository | None) -> bool:
    """True on first observation or when updated_at / pushed_at moved forward."""
    if stored is None:
        return True
    for attr in ('updated_at', 'pushed_at'):
        new, old = getattr(fresh, attr), getattr(stored, attr)
        if new is not None and (old is None or new > old):
            return True
    return False


class RepoMetadataSyncer:
    """Change detection on repository push/update timestamps, and the final metadata write."""

    def __init__(self, service: GitHubService, store: SyncStore):
        self.service = service
        self.store = store

    def check(self, tracked: TrackedRepository) -> ChangeCheck:
        """One metadata request; decides whether the rest of the sync is needed."""
        previous = self.store.get_repository(tracked.name, tracked.organization)
        payload = self.service.get_repository(tracked.organization, tracked.name)
        if payload is None:
            logger.warning(
                'Repository not found upstream, keeping stored record',
                repo=tracked.name, organization=tracked.organization,
            )
            return ChangeCheck(RepoState.MISSING, previous=previous)

        snapshot = parse_repository(payload).to_entity(tracked)
        state = RepoState.CHANGED if has_advanced(snapshot, previous) else RepoState.UNCHANGED
        logger.debug(
            'Change check', repo=tracked.name, organization=tracked.organization,
            state=str(state),
            updated_at=snapshot.updated_at and snapshot.updated_at.isoformat(),
            pushed_at=snapshot.pushed_at and snapshot.pushed_at.isoformat(),
        )
        return ChangeCheck(state, snapshot=snapshot, previous=previous)

    def persist(self, check: ChangeCheck) -> Repository:
        """
        Store the fresh snapshot in one upsert. Must run only after the
        repository's commits and contributions are durable.
        """
        if check.snapshot is None:
            raise ValueError('Nothing to persist for a missing repository')
        snapshot = check.snapshot.model_copy()
        if check.previous is not None:
            # Observed timestamps never move backwards
            snapshot.updated_at = latest(snapshot.updated_at, check.previous.updated_at)
            snapshot.pushed_at = latest(snapshot.pushed_at, check.previous.pushed_at)
        self.store.upsert_repository(snapshot)
        return snapshot

    def ensure_discovered(self, tracked: TrackedRepository) -> bool:
        """Store a discovery-only row for a repository never seen before. No API calls."""
        if self.store.get_repository(tracked.name, tracked.organization) is not None:
            return False
        self.store.upsert_repository(Repository.from_tracked(tracked))
        return True
