from collections.abc import Iterator
from datetime import datetime

import structlog

from ecosync.core.deadline import Deadline
from ecosync.core.exceptions import MalformedResponseError
from ecosync.core.timeutil import latest
from ecosync.models.commit import Commit
from ecosync.models.contributor import Developer
from ecosync.models.github import GitHubCommit
from ecosync.models.github import parse_items
from ecosync.services.github_service import GitHubService

logger = structlog.get_logger('commit_service')


class CommitFetch:
    """
    One lazy, read-only pass over a branch's commits since a watermark.

    Iterating yields one list of new commits per API page, already
    de-duplicated by hash within and across pages. Pagination runs until
    an empty page: results near the `since` boundary are not strictly
    ordered, so a repeated hash is not a stop signal.

    After exhaustion `watermark` holds the newest commit time seen (never
    older than `since`), and `complete` tells whether every page was
    ingested. A skipped malformed page makes the fetch incomplete, and an
    incomplete fetch must not advance the branch watermark.
    """

    def __init__(
        self,
        service: GitHubService,
        repo: str,
        organization: str,
        branch: str,
        since: datetime | None = None,
        deadline: Deadline | None = None,
    ):
        self.service = service
        self.repo = repo
        self.organization = organization
        self.branch = branch
        self.since = since
        self.deadline = deadline or Deadline.never()
        self.watermark: datetime | None = since
        self.complete = True
        self.exhausted = False
        self.pages = 0
        self.seen: set[str] = set()
        self.developers: dict[int, Developer] = {}
        self._undrained: dict[int, Developer] = {}

    def __iter__(self) -> Iterator[list[Commit]]:
        pages = self.service.iter_commits(
            self.organization, self.repo, self.branch, since=self.since,
        )
        for page in pages:
            self.pages += 1
            try:
                items = parse_items(GitHubCommit, page, 'commits')
                commits = [
                    item.to_entity(self.repo, self.organization, self.branch)
                    for item in items
                ]
            except MalformedResponseError as e:
                self.complete = False
                logger.warning(
                    'Skipping malformed commit page',
                    repo=self.repo, organization=self.organization,
                    branch=self.branch, page=self.pages, error=str(e),
                )
                self.deadline.check(f"commits of {self.organization}/{self.repo}@{self.branch}")
                continue

            fresh = []
            for item, commit in zip(items, commits):
                self.watermark = latest(self.watermark, commit.commit_date)
                if item.author and item.author.is_user:
                    developer = item.author.to_developer()
                    self.developers[developer.id] = developer
                    self._undrained[developer.id] = developer
                if commit.hash in self.seen:
                    continue
                self.seen.add(commit.hash)
                fresh.append(commit)

            if fresh:
                yield fresh
            self.deadline.check(f"commits of {self.organization}/{self.repo}@{self.branch}")
        self.exhausted = True

    def drain_developers(self) -> list[Developer]:
        """Linked authors seen since the previous call, so they can be stored page by page."""
        drained, self._undrained = self._undrained, {}
        return list(drained.values())

    @property
    def advances_watermark(self) -> bool:
        return (
            self.exhausted and self.complete and self.watermark is not None
            and (self.since is None or self.watermark > self.since)
        )


class CommitFetcher:
    """Builds commit fetches for the orchestrator and offers an eager variant."""

    def __init__(self, service: GitHubService):
        self.service = service

    def fetch(
        self,
        repo: str,
        organization: str,
        branch: str,
        since: datetime | None = None,
        deadline: Deadline | None = None,
    ) -> CommitFetch:
        if since is None:
            logger.info(
                'Backfilling full branch history',
                repo=repo, organization=organization, branch=branch,
            )
        return CommitFetch(self.service, repo, organization, branch, since, deadline)

    def fetch_new_commits(
        self,
        repo: str,
        organization: str,
        branch: str,
        since: datetime | None = None,
        deadline: Deadline | None = None,
    ) -> tuple[list[Commit], datetime | None]:
        """Materialize a whole fetch. Returns (commits, new watermark)."""
        fetch = self.fetch(repo, organization, branch, since, deadline)
        commits = [commit for page in fetch for commit in page]
        return commits, fetch.watermark
