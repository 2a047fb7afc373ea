import time
from collections.abc import Callable

from ecosync.core.exceptions import SyncTimeoutError


class Deadline:
    """Soft timeout checked between page fetches."""

    def __init__(self, seconds: float | None, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self.seconds = seconds
        self.expires_at = None if seconds is None else clock() + seconds

    @classmethod
    def never(cls) -> 'Deadline':
        return cls(None)

    @property
    def expired(self) -> bool:
        return self.expires_at is not None and self._clock() >= self.expires_at

    def check(self, what: str = '') -> None:
        if self.expired:
            raise SyncTimeoutError(
                f"Soft timeout of {self.seconds}s exceeded{f' while fetching {what}' if what else ''}",
            )
