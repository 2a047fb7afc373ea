import threading
import time

from ecosync.core.exceptions import PersistenceError
from ecosync.core.store import InMemoryStore
from ecosync.services.view_service import ViewRefresher


class SlowStore(InMemoryStore):
    """Records how many refreshes of each view run at the same time."""

    def __init__(self):
        super().__init__()
        self.active: dict[str, int] = {}
        self.peak: dict[str, int] = {}
        self.peak_total = 0
        self._counter = threading.Lock()

    def refresh_view(self, name):
        with self._counter:
            self.active[name] = self.active.get(name, 0) + 1
            self.peak[name] = max(self.peak.get(name, 0), self.active[name])
            self.peak_total = max(self.peak_total, sum(self.active.values()))
        time.sleep(0.05)
        super().refresh_view(name)
        with self._counter:
            self.active[name] -= 1


def test_refresh_all_views(store):
    results = ViewRefresher(store).refresh(['weekly_commits', 'cumulative_totals'])

    assert results == {'weekly_commits': True, 'cumulative_totals': True}
    assert sorted(store.refresh_log) == ['cumulative_totals', 'weekly_commits']


def test_duplicate_names_refresh_once(store):
    results = ViewRefresher(store).refresh(['weekly_commits', 'weekly_commits'])

    assert results == {'weekly_commits': True}
    assert store.refresh_log == ['weekly_commits']


def test_failure_is_reported_not_raised(store):
    results = ViewRefresher(store).refresh(['weekly_commits', 'no_such_view'])
    assert results == {'weekly_commits': True, 'no_such_view': False}


def test_failure_of_the_store(store):
    def broken(name):
        raise PersistenceError('server went away')
    store.refresh_view = broken

    assert ViewRefresher(store).refresh_one('weekly_commits') is False


def test_same_view_never_refreshes_concurrently():
    store = SlowStore()
    refresher = ViewRefresher(store)

    threads = [
        threading.Thread(target=refresher.refresh_one, args=('weekly_commits',))
        for _ in range(4)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert store.peak['weekly_commits'] == 1
    assert store.refresh_log.count('weekly_commits') == 4


def test_distinct_views_refresh_in_parallel():
    store = SlowStore()
    ViewRefresher(store, max_workers=3).refresh(
        ['weekly_commits', 'weekly_new_developers', 'cumulative_totals'],
    )
    assert store.peak_total > 1


def test_nothing_to_refresh(store):
    assert ViewRefresher(store).refresh([]) == {}
