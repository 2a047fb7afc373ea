import concurrent.futures
import time
from collections.abc import Iterable

import structlog

from ecosync.core.exceptions import PersistenceError
from ecosync.core.locks import KeyedLock
from ecosync.core.store import SyncStore

logger = structlog.get_logger('view_service')


class ViewRefresher:
    """
    Triggers wholesale recomputation of derived aggregates.

    Different views refresh in parallel; two refreshes of the same view
    never overlap.
    """

    def __init__(self, store: SyncStore, max_workers: int = 4):
        self.store = store
        self.max_workers = max_workers
        self._locks = KeyedLock()

    def refresh_one(self, name: str) -> bool:
        start_time = time.time()
        with self._locks.hold(name):
            try:
                self.store.refresh_view(name)
            except PersistenceError as e:
                logger.error('View refresh failed', view=name, error=str(e))
                return False
        logger.info(
            'View refreshed', view=name,
            elapsed=f"{time.time() - start_time:.3f}s",
        )
        return True

    def refresh(self, view_names: Iterable[str]) -> dict[str, bool]:
        """Refresh every named view. Returns per-view success."""
        names = list(dict.fromkeys(view_names))
        if not names:
            return {}
        if len(names) == 1:
            return {names[0]: self.refresh_one(names[0])}

        with concurrent.futures.ThreadPoolExecutor(
            max_workers=min(self.max_workers, len(names)),
        ) as executor:
            results = executor.map(self.refresh_one, names)
            return dict(zip(names, results))
