"""Dependency Injection Container."""
import threading
from typing import Optional

from ecosync.core.config import EcoSyncConfig
from ecosync.core.config import get_config
from ecosync.core.repository import ClickHouseStore
from ecosync.services.github_service import GitHubService
from ecosync.services.source_service import JsonlRepositorySource
from ecosync.services.sync_service import SyncOrchestrator


class Container:
    """Simple DI Container to manage service lifecycles."""

    _instance: Optional['Container'] = None

    def __init__(self) -> None:
        self.config: EcoSyncConfig = get_config()
        self._github_service: GitHubService | None = None

    @classmethod
    def get_instance(cls) -> 'Container':
        if cls._instance is None:
            cls._instance = Container()
        return cls._instance

    # -- Stores --

    def get_ingestion_store(self) -> ClickHouseStore:
        """Write-access store (admin role), used by the sync loop and schema setup."""
        return ClickHouseStore(self.config.get_db_config(role='admin'))

    def get_query_store(self) -> ClickHouseStore:
        """Read-only store (guest role), used by status output."""
        return ClickHouseStore(self.config.get_db_config(role='guest'))

    # -- Services (Singletons) --

    def get_github_service(self, token: str | None = None) -> GitHubService:
        """Get GitHub Service. Token is required for first init if not in env."""
        if not self._github_service:
            if token:
                self.config.github.token = token
            self._github_service = GitHubService(
                self.config.github.require_token(), self.config.github,
            )
        return self._github_service

    def create_orchestrator(
        self,
        store: ClickHouseStore,
        token: str | None = None,
        stop_event: threading.Event | None = None,
    ) -> SyncOrchestrator:
        """Factory for the orchestrator (not singleton as it holds per-run state)."""
        return SyncOrchestrator(
            self.get_github_service(token),
            store,
            self.config.sync,
            stop_event=stop_event,
        )

    def create_source(self, only: set[str] | None = None) -> JsonlRepositorySource:
        return JsonlRepositorySource(self.config.sync.repos_file, only=only)

# Global Accessor


def get_container() -> Container:
    return Container.get_instance()
