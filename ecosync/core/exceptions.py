"""Error taxonomy for the sync engine."""


class EcoSyncError(Exception):
    """Base class for every error raised by the sync engine."""


class TransientAPIError(EcoSyncError):
    """Network failure, 5xx or rate limit that survived every retry."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class MalformedResponseError(EcoSyncError):
    """The API answered with a payload of an unexpected shape."""


class PersistenceError(EcoSyncError):
    """A write to (or read from) the backing store failed."""


class ConfigurationError(EcoSyncError):
    """Missing credentials or unreachable storage. Fatal at startup."""


class SyncTimeoutError(EcoSyncError):
    """The soft per-repository deadline expired between two page fetches."""
