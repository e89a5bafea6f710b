"""
API dependencies.

Provides dependency injection for FastAPI routes.
"""

from yardplan.config import Settings
from yardplan.services import InMemorySnapshotStore, PlanningService, SnapshotStore


def build_store(settings: Settings) -> SnapshotStore:
    """Snapshot store selected by settings.storage."""
    if settings.storage == "memory":
        return InMemorySnapshotStore()

    from yardplan.database import SqlSnapshotStore

    return SqlSnapshotStore(settings.database_url)


class AppState:
    """Application state container."""

    _instance: "AppState | None" = None

    def __init__(self, settings: Settings | None = None, store: SnapshotStore | None = None):
        self.settings = settings or Settings.from_env()
        self.store = store or build_store(self.settings)
        self.planning_service = PlanningService(
            self.store,
            org_id=self.settings.org_id,
            event_retention=self.settings.event_retention,
            persist_retries=self.settings.persist_retries,
            seed_demo_data=self.settings.seed_demo_data,
        )

    @classmethod
    def get_instance(cls) -> "AppState":
        """Get or create singleton instance."""
        if cls._instance is None:
            cls._instance = AppState()
        return cls._instance

    @classmethod
    def configure(cls, settings: Settings | None = None, store: SnapshotStore | None = None) -> "AppState":
        """Replace the singleton with explicitly configured state."""
        cls._instance = AppState(settings=settings, store=store)
        return cls._instance

    @classmethod
    async def shutdown(cls) -> None:
        """Release storage resources held by the singleton, if any."""
        if cls._instance is None:
            return
        close = getattr(cls._instance.store, "close", None)
        if close is not None:
            await close()

    @classmethod
    def reset(cls) -> None:
        """Reset singleton (for testing)."""
        cls._instance = None


def get_planning_service() -> PlanningService:
    """Dependency for planning service."""
    return AppState.get_instance().planning_service
