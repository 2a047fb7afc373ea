from datetime import datetime

import structlog

from ecosync.core.store import SyncStore
from ecosync.core.timeutil import ensure_utc

logger = structlog.get_logger('watermark_service')


class WatermarkStore:
    """Per-(repo, organization, branch) progress cursors, kept in the sync store."""

    def __init__(self, store: SyncStore):
        self.store = store

    def get(self, repo: str, organization: str, branch: str) -> datetime | None:
        return self.store.get_watermark(repo, organization, branch)

    def set(self, repo: str, organization: str, branch: str, timestamp: datetime) -> None:
        """Atomic upsert, last write wins. Returns once the value is durable."""
        self.store.set_watermark(repo, organization, branch, ensure_utc(timestamp))
        logger.debug(
            'Watermark stored', repo=repo, organization=organization,
            branch=branch, watermark=timestamp.isoformat(),
        )
