import structlog

from ecosync.core.exceptions import MalformedResponseError
from ecosync.models.contributor import Contribution
from ecosync.models.contributor import Developer
from ecosync.models.github import GitHubContributor
from ecosync.models.github import parse_items
from ecosync.services.github_service import GitHubService

logger = structlog.get_logger('contributor_service')


class ContributorAggregator:
    """Per-repository contribution totals of individual user accounts."""

    def __init__(self, service: GitHubService):
        self.service = service

    def fetch_contributors(self, repo: str, organization: str) -> list[tuple[Developer, Contribution]]:
        """
        Each contribution is the API's current running total for that
        developer on this repository. Callers overwrite, never add.
        Bots and organization accounts are dropped.
        """
        results: dict[int, tuple[Developer, Contribution]] = {}
        for page_no, page in enumerate(self.service.iter_contributors(organization, repo), start=1):
            try:
                contributors = parse_items(GitHubContributor, page, 'contributors')
            except MalformedResponseError as e:
                logger.warning(
                    'Skipping malformed contributor page', repo=repo,
                    organization=organization, page=page_no, error=str(e),
                )
                continue

            for contributor in contributors:
                if not contributor.is_user:
                    continue
                results[contributor.id] = (
                    contributor.to_developer(),
                    contributor.to_contribution(repo, organization),
                )
        return list(results.values())
