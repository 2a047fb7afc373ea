import concurrent.futures
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from dataclasses import field
from enum import Enum

import structlog

from ecosync.core.config import SyncConfig
from ecosync.core.deadline import Deadline
from ecosync.core.exceptions import EcoSyncError
from ecosync.core.exceptions import SyncTimeoutError
from ecosync.core.locks import KeyedLock
from ecosync.core.scheduler import Clock
from ecosync.core.scheduler import PollingLoop
from ecosync.core.stats import SyncStats
from ecosync.core.store import SyncStore
from ecosync.models.branch import BranchHead
from ecosync.models.repository import TrackedRepository
from ecosync.services.branch_service import BranchEnumerator
from ecosync.services.commit_service import CommitFetcher
from ecosync.services.contributor_service import ContributorAggregator
from ecosync.services.github_service import GitHubService
from ecosync.services.repo_service import RepoMetadataSyncer
from ecosync.services.repo_service import RepoState
from ecosync.services.source_service import RepositorySource
from ecosync.services.view_service import ViewRefresher
from ecosync.services.watermark_service import WatermarkStore

logger = structlog.get_logger('sync_service')


class RepoOutcome(str, Enum):
    CHANGED = 'changed'
    UNCHANGED = 'unchanged'
    SKIPPED = 'skipped'
    MISSING = 'missing'
    FAILED = 'failed'
    TIMED_OUT = 'timed_out'
    CANCELLED = 'cancelled'

    def __str__(self) -> str:
        return self.value


@dataclass
class RepoResult:
    repo: str
    organization: str
    outcome: RepoOutcome
    branches: int = 0
    commits_inserted: int = 0
    contributions: int = 0
    error: str | None = None


@dataclass
class PassReport:
    results: list[RepoResult]
    stats: SyncStats
    refreshed: dict[str, bool] = field(default_factory=dict)

    def with_outcome(self, outcome: RepoOutcome) -> list[RepoResult]:
        return [r for r in self.results if r.outcome is outcome]


class SyncOrchestrator:
    """
    Drives sync passes over the tracked repository set.

    Per repository: change check, then (only when changed) branches,
    per-branch commits with watermark update, contributors, and finally
    the metadata snapshot. Errors stop at the per-repository boundary.
    """

    def __init__(
        self,
        service: GitHubService,
        store: SyncStore,
        config: SyncConfig | None = None,
        stop_event: threading.Event | None = None,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.service = service
        self.store = store
        self.config = config or SyncConfig()
        self.stop_event = stop_event or threading.Event()
        self._monotonic = monotonic

        self.metadata = RepoMetadataSyncer(service, store)
        self.branches = BranchEnumerator(service)
        self.commits = CommitFetcher(service)
        self.contributors = ContributorAggregator(service)
        self.watermarks = WatermarkStore(store)
        self.views = ViewRefresher(store)

        self._key_locks = KeyedLock()
        self._requeued: list[tuple[str, str]] = []
        self._requeue_lock = threading.Lock()
        self.last_report: PassReport | None = None

    # -- Per repository --

    def sync_repository(self, tracked: TrackedRepository, stats: SyncStats | None = None) -> RepoResult:
        """Sync one repository. Raises on failure; see `process_repository` for the guarded form."""
        stats = stats or SyncStats()
        repo, organization = tracked.name, tracked.organization

        if not tracked.repo_type.collects_activity:
            if self.metadata.ensure_discovered(tracked):
                logger.info('Recorded discovery-only repository')
            stats.inc('skipped')
            return RepoResult(repo, organization, RepoOutcome.SKIPPED)

        check = self.metadata.check(tracked)
        if check.state is RepoState.MISSING or check.snapshot is None:
            stats.inc('missing')
            return RepoResult(repo, organization, RepoOutcome.MISSING)
        if check.state is RepoState.UNCHANGED:
            stats.inc('unchanged')
            logger.debug('Repository unchanged')
            return RepoResult(repo, organization, RepoOutcome.UNCHANGED)

        result = RepoResult(repo, organization, RepoOutcome.CHANGED)
        deadline = Deadline(self.config.repo_timeout, self._monotonic)

        for head in self.branches.list_branches(
            repo, organization, check.snapshot.default_branch, deadline,
        ):
            result.branches += 1
            result.commits_inserted += self._sync_branch(tracked, head, deadline)

        contributors = self.contributors.fetch_contributors(repo, organization)
        self.store.upsert_developers(developer for developer, _ in contributors)
        self.store.upsert_contributions(contribution for _, contribution in contributors)
        result.contributions = len(contributors)

        # Last: a crash before this line means a redundant re-fetch, never a gap
        self.metadata.persist(check)

        stats.inc('changed')
        stats.inc('branches', result.branches)
        stats.inc('commits_inserted', result.commits_inserted)
        stats.inc('contributions', result.contributions)
        logger.info(
            'Repository synced',
            branches=result.branches,
            commits=result.commits_inserted,
            contributors=result.contributions,
        )
        return result

    def _sync_branch(self, tracked: TrackedRepository, head: BranchHead, deadline: Deadline) -> int:
        repo, organization = tracked.name, tracked.organization
        watermark = self.watermarks.get(repo, organization, head.name)

        if (
            watermark is not None and head.head_commit_time is not None
            and head.head_commit_time <= watermark
        ):
            logger.debug('Branch head already ingested', branch=head.name)
            return 0

        fetch = self.commits.fetch(repo, organization, head.name, since=watermark, deadline=deadline)
        inserted = 0
        for page in fetch:
            inserted += self.store.insert_commits(page)
            self.store.upsert_developers(fetch.drain_developers())
        self.store.upsert_developers(fetch.drain_developers())

        # Commits are durable at this point; only now may the watermark move
        new_watermark = fetch.watermark if fetch.advances_watermark else None
        if new_watermark is not None:
            self.watermarks.set(repo, organization, head.name, new_watermark)
        elif not fetch.complete:
            logger.warning(
                'Watermark held back after skipped pages', branch=head.name,
            )
        return inserted

    def process_repository(self, tracked: TrackedRepository, stats: SyncStats) -> RepoResult:
        """Guarded per-repository step run by the worker pool. Never raises."""
        repo, organization = tracked.name, tracked.organization
        if self.stop_event.is_set():
            stats.inc('cancelled')
            return RepoResult(repo, organization, RepoOutcome.CANCELLED)

        with structlog.contextvars.bound_contextvars(repo=repo, organization=organization):
            start_time = time.time()
            try:
                with self._key_locks.hold(tracked.key):
                    result = self.sync_repository(tracked, stats)
            except SyncTimeoutError as e:
                self._requeue(tracked)
                stats.inc('timed_out')
                logger.warning(
                    'Repository timed out, requeued for next pass',
                    error_class=type(e).__name__, error=str(e),
                )
                return RepoResult(repo, organization, RepoOutcome.TIMED_OUT, error=str(e))
            except EcoSyncError as e:
                stats.inc('failed')
                logger.error(
                    'Repository sync failed',
                    error_class=type(e).__name__, error=str(e),
                )
                return RepoResult(repo, organization, RepoOutcome.FAILED, error=str(e))
            except Exception as e:
                stats.inc('failed')
                logger.exception(
                    'Unexpected error while syncing repository',
                    error_class=type(e).__name__,
                )
                return RepoResult(repo, organization, RepoOutcome.FAILED, error=str(e))

            logger.debug(
                'Repository processed', outcome=str(result.outcome),
                elapsed=f"{time.time() - start_time:.3f}s",
            )

        if self.config.refresh_mode == 'repo' and result.outcome is RepoOutcome.CHANGED:
            self.views.refresh(self.config.views)
        return result

    # -- Passes --

    def _requeue(self, tracked: TrackedRepository) -> None:
        with self._requeue_lock:
            if tracked.key not in self._requeued:
                self._requeued.append(tracked.key)

    def _order(self, repositories: list[TrackedRepository]) -> list[TrackedRepository]:
        """Repositories that timed out last pass go first."""
        with self._requeue_lock:
            requeued, self._requeued = self._requeued, []
        rank = {key: i for i, key in enumerate(requeued)}
        return sorted(repositories, key=lambda t: rank.get(t.key, len(rank)))

    def run_pass(self, source: RepositorySource) -> PassReport:
        repositories = self._order(source.load())
        stats = SyncStats(total=len(repositories))
        requests_before = self.service.requests_made
        logger.info(
            'Sync pass started', repositories=len(repositories),
            workers=self.config.workers,
        )

        with concurrent.futures.ThreadPoolExecutor(max_workers=self.config.workers) as executor:
            results = list(
                executor.map(lambda t: self.process_repository(t, stats), repositories),
            )

        stats.inc('api_requests', self.service.requests_made - requests_before)
        report = PassReport(results=results, stats=stats)
        if self.config.refresh_mode == 'pass':
            report.refreshed = self.views.refresh(self.config.views)

        logger.info(
            'Sync pass complete', **stats.as_dict(),
            elapsed=f"{stats.elapsed_time:.2f}s",
        )
        self.last_report = report
        return report

    def run_forever(
        self,
        source: RepositorySource,
        clock: Clock | None = None,
        max_passes: int | None = None,
    ) -> int:
        """Repeat passes with a fixed pause until the stop event is set. Returns passes run."""
        loop = PollingLoop(
            lambda: self.run_pass(source),
            interval=self.config.interval,
            clock=clock,
            stop_event=self.stop_event,
        )
        return loop.run(max_iterations=max_passes)

    def stop(self) -> None:
        self.stop_event.set()
