"""Tracked repository sets handed over by the discovery layer."""
from pathlib import Path
from typing import Protocol

from ecosync.core.storage import load_tracked
from ecosync.models.repository import TrackedRepository


class RepositorySource(Protocol):
    def load(self) -> list[TrackedRepository]:
        ...


class StaticRepositorySource:
    def __init__(self, repositories: list[TrackedRepository]):
        self.repositories = list(repositories)

    def load(self) -> list[TrackedRepository]:
        return list(self.repositories)


class JsonlRepositorySource:
    """Re-reads the ledger on every pass so discovery updates are picked up."""

    def __init__(self, path: str | Path, only: set[str] | None = None):
        self.path = Path(path)
        self.only = only

    def load(self) -> list[TrackedRepository]:
        repositories = load_tracked(self.path)
        if self.only:
            repositories = [r for r in repositories if r.full_name in self.only]
        return repositories
