import threading
import time
from dataclasses import dataclass
from dataclasses import field
from dataclasses import fields


@dataclass
class SyncStats:
    """Counters for one sync pass, shared by every worker thread."""
    total: int = 0
    changed: int = 0
    unchanged: int = 0
    skipped: int = 0
    missing: int = 0
    failed: int = 0
    timed_out: int = 0
    cancelled: int = 0
    branches: int = 0
    commits_inserted: int = 0
    contributions: int = 0
    api_requests: int = 0
    start_time: float = field(default_factory=time.time)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def inc(self, name: str, count: int = 1):
        with self._lock:
            setattr(self, name, getattr(self, name) + count)

    @property
    def elapsed_time(self) -> float:
        return time.time() - self.start_time

    def as_dict(self) -> dict[str, int]:
        """Counter snapshot, suitable as structured log fields."""
        with self._lock:
            return {
                f.name: getattr(self, f.name) for f in fields(self)
                if f.name not in ('start_time', '_lock')
            }
