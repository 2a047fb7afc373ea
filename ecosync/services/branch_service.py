from collections.abc import Iterator

import structlog

from ecosync.core.deadline import Deadline
from ecosync.core.exceptions import MalformedResponseError
from ecosync.models.branch import BranchHead
from ecosync.models.github import GitHubBranch
from ecosync.models.github import parse_items
from ecosync.services.github_service import GitHubService

logger = structlog.get_logger('branch_service')


class BranchEnumerator:
    """Lists a repository's branches, default branch first."""

    def __init__(self, service: GitHubService):
        self.service = service

    def list_branches(
        self,
        repo: str,
        organization: str,
        default_branch: str,
        deadline: Deadline | None = None,
    ) -> Iterator[BranchHead]:
        """
        Lazily yield branches. The default branch comes first, even when the
        listing never mentions it; the rest follow in API order, de-duplicated
        by name.
        Any API error propagates and aborts the enumeration for this repository.
        """
        deadline = deadline or Deadline.never()
        seen = {default_branch}
        default_head = BranchHead(name=default_branch)
        pending_default = True

        for page_no, page in enumerate(self.service.iter_branches(organization, repo), start=1):
            try:
                branches = [b.to_entity() for b in parse_items(GitHubBranch, page, 'branches')]
            except MalformedResponseError as e:
                logger.warning(
                    'Skipping malformed branch page', repo=repo,
                    organization=organization, page=page_no, error=str(e),
                )
                branches = []

            for branch in branches:
                if branch.name == default_branch and pending_default:
                    # Listing carries the head time; prefer it over the bare name
                    default_head = branch
                    continue
                if branch.name in seen:
                    continue
                seen.add(branch.name)
                if pending_default:
                    pending_default = False
                    yield default_head
                yield branch

            deadline.check(f"branches of {organization}/{repo}")

        if pending_default:
            yield default_head
