import threading
import time
from collections.abc import Iterator
from datetime import datetime
from typing import Any

import requests
import structlog
from ratelimit import limits
from ratelimit import sleep_and_retry

from ecosync.__version__ import __version__
from ecosync.core.client import get_http_client
from ecosync.core.config import GitHubConfig
from ecosync.core.exceptions import MalformedResponseError
from ecosync.core.exceptions import TransientAPIError
from ecosync.core.timeutil import to_iso

logger = structlog.get_logger('github_service')

# GitHub API limits (per token)
# Core: 5000/hour -> 4500 for safety
CORE_CALLS = 4500
CORE_PERIOD = 3600

# Listing endpoints answer these for empty or unavailable repositories
EMPTY_LIST_STATUSES = (204, 404, 409)

# A plain 403 here means the contributor list is too large to compute
CONTRIBUTORS_UNAVAILABLE = (403,)


class GitHubService:
    """
    Thin client for the GitHub REST endpoints the sync engine reads.

    The proactive rate limit below decorates a method, so the budget is
    process-wide: every worker thread draws from it and blocks once it is
    spent. Reactive handling covers 403/429 answers from GitHub itself.
    """

    def __init__(self, token: str, config: GitHubConfig | None = None):
        self.config = config or GitHubConfig(token=token)
        self.session = get_http_client(
            cache_name=self.config.cache_name,
            expire_after=self.config.cache_ttl,
            retries=self.config.retries,
        )
        self.session.headers.update({
            'Authorization': f"Bearer {token}",
            'Accept': 'application/vnd.github+json',
            'User-Agent': f"EcoSync/{__version__}",
        })
        self.base_url = self.config.api_base_url.rstrip('/')
        self.page_size = self.config.page_size
        self.requests_made = 0
        self._requests_lock = threading.Lock()

    def _rate_limit_wait(self, response: requests.Response) -> float:
        """Seconds to wait after a 403 (rate limit) or 429 from GitHub."""
        reset_time = response.headers.get('X-RateLimit-Reset')
        retry_after = response.headers.get('Retry-After')

        wait_seconds = 60.0  # Default fallback

        if retry_after:
            wait_seconds = float(retry_after) + 1.0
        elif reset_time:
            wait_seconds = float(reset_time) - time.time() + 1.0

        if wait_seconds < 0:
            wait_seconds = 1.0

        # Circuit Breaker: If wait time is > 1 hour, abort.
        if wait_seconds > 3600:
            logger.error(
                'Rate limit reset too far in future',
                wait_seconds=wait_seconds,
            )
            raise TransientAPIError(
                'Rate limit exceeded and reset time is too long (circuit breaker).',
                status=response.status_code,
            )
        return wait_seconds

    @staticmethod
    def _is_rate_limited(response: requests.Response) -> bool:
        if response.status_code == 429:
            return True
        if response.status_code == 403:
            return (
                response.headers.get('X-RateLimit-Remaining') == '0'
                or 'rate limit' in response.text.lower()
            )
        return False

    @sleep_and_retry
    @limits(calls=CORE_CALLS, period=CORE_PERIOD)
    def _make_core_request(self, method: str, url: str, **kwargs) -> requests.Response:
        """Rate-limited core API request."""
        return self._make_request(method, url, **kwargs)

    def _make_request(self, method: str, url: str, **kwargs) -> requests.Response:
        """
        Base wrapper for requests with reactive handling for GitHub Rate Limits.
        Network errors and exhausted 5xx retries surface as TransientAPIError.
        """
        kwargs.setdefault('timeout', self.config.timeout)
        for attempt in range(self.config.max_rate_limit_waits + 1):
            try:
                response = self.session.request(method, url, **kwargs)
            except requests.RequestException as e:
                raise TransientAPIError(f"{method} {url} failed: {e}") from e
            with self._requests_lock:
                self.requests_made += 1

            if not self._is_rate_limited(response):
                if response.status_code >= 500:
                    raise TransientAPIError(
                        f"{method} {url} returned {response.status_code}",
                        status=response.status_code,
                    )
                return response
            if attempt == self.config.max_rate_limit_waits:
                break

            wait_seconds = self._rate_limit_wait(response)
            logger.warning(
                'API Rate limit hit (Reactive)',
                status=response.status_code,
                wait_seconds=f"{wait_seconds:.2f}s",
            )
            time.sleep(wait_seconds)

        raise TransientAPIError(
            f"{method} {url} still rate limited after {self.config.max_rate_limit_waits} waits",
            status=response.status_code,
        )

    def _json(self, response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponseError(
                f"Response from {response.url} is not JSON",
            ) from e

    def _paginate(
        self,
        path: str,
        params: dict[str, str] | None = None,
        unavailable: tuple[int, ...] = (),
    ) -> Iterator[list[Any]]:
        """
        Yield raw pages of a list endpoint until an empty page comes back.

        Pages are requested lazily, one per iteration step. Statuses in
        `unavailable` end the listing with a warning instead of an error,
        for answers that will not change on a retry.
        """
        url = f"{self.base_url}{path}"
        page = 1
        while True:
            query = dict(params or {})
            query.update({'per_page': str(self.page_size), 'page': str(page)})
            response = self._make_core_request('GET', url, params=query)

            if response.status_code in EMPTY_LIST_STATUSES:
                logger.debug(
                    'Listing unavailable, treating as empty',
                    path=path, status=response.status_code,
                )
                return
            if response.status_code in unavailable:
                logger.warning(
                    'Listing refused upstream, treating as empty',
                    path=path, status=response.status_code,
                )
                return
            if response.status_code != 200:
                raise TransientAPIError(
                    f"GET {path} returned {response.status_code}",
                    status=response.status_code,
                )

            items = self._json(response)
            if not isinstance(items, list):
                raise MalformedResponseError(
                    f"GET {path} page {page} is not a JSON list",
                )
            if not items:
                return
            yield items
            page += 1

    def get_repository(self, owner: str, repo: str) -> dict[str, Any] | None:
        """Fetch repository metadata. None when the repository is gone upstream."""
        url = f"{self.base_url}/repos/{owner}/{repo}"
        response = self._make_core_request('GET', url)

        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise TransientAPIError(
                f"GET /repos/{owner}/{repo} returned {response.status_code}",
                status=response.status_code,
            )
        return self._json(response)

    def iter_branches(self, owner: str, repo: str) -> Iterator[list[Any]]:
        return self._paginate(f"/repos/{owner}/{repo}/branches")

    def iter_commits(
        self, owner: str, repo: str, branch: str, since: datetime | None = None,
    ) -> Iterator[list[Any]]:
        params = {'sha': branch}
        if since is not None:
            params['since'] = to_iso(since)
        return self._paginate(f"/repos/{owner}/{repo}/commits", params)

    def iter_contributors(self, owner: str, repo: str) -> Iterator[list[Any]]:
        return self._paginate(
            f"/repos/{owner}/{repo}/contributors", unavailable=CONTRIBUTORS_UNAVAILABLE,
        )
