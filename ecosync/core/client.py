from datetime import timedelta
from pathlib import Path

import requests
import requests_cache
import structlog
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = structlog.get_logger('client')

# Warn once the remaining core budget drops below this share of the limit
LOW_BUDGET_RATIO = 0.1


def log_response(response: requests.Response, *args, **kwargs) -> None:
    """Response hook: one log line per request, with GitHub's remaining budget."""
    if getattr(response, '_logged', False):
        return
    response._logged = True

    fields = {
        'method': response.request.method,
        'url': response.url,
        'status': response.status_code,
        'elapsed': f"{response.elapsed.total_seconds():.3f}s",
    }
    if getattr(response, 'from_cache', False):
        logger.debug('HTTP Request (revalidated)', _style='dim', **fields)
        return

    remaining = response.headers.get('X-RateLimit-Remaining')
    limit = response.headers.get('X-RateLimit-Limit')
    if remaining is None or limit is None:
        logger.info('HTTP Request', **fields)
        return

    fields['ratelimit'] = f"{remaining}/{limit}"
    if int(remaining) < int(limit) * LOW_BUDGET_RATIO:
        logger.warning('GitHub rate limit budget running low', **fields)
    else:
        logger.info('HTTP Request', **fields)


def get_http_client(
    cache_name: str = '.requests-cache/ecosync.sqlite3',
    expire_after: int = 60,
    retries: int = 3,
    pool_size: int = 50,
) -> requests_cache.CachedSession:
    """
    Session shared by all sync workers.

    Only 200s are cached, and every cached entry is revalidated with its
    ETag, so an unchanged page comes back as a 304 that GitHub does not
    charge against the rate limit while a changed one is never served stale.
    Idempotent GETs are retried on 5xx with exponential backoff.
    """
    Path(cache_name).parent.mkdir(parents=True, exist_ok=True)

    session = requests_cache.CachedSession(
        cache_name=cache_name,
        backend='sqlite',
        expire_after=timedelta(seconds=expire_after),
        allowable_codes=[200],
        always_revalidate=True,
    )
    session.hooks['response'].append(log_response)

    adapter = HTTPAdapter(
        pool_connections=pool_size,
        pool_maxsize=pool_size,
        max_retries=Retry(
            total=retries,
            backoff_factor=1,
            status_forcelist=[500, 502, 503, 504],
            allowed_methods=['GET'],
        ),
    )
    session.mount('https://', adapter)
    session.mount('http://', adapter)

    logger.debug(
        'HTTP session ready', cache_name=cache_name,
        expire_after=expire_after, retries=retries,
    )
    return session
