"""Process-wide wiring: database, adapters, registry and refresh coordinator.

Hey future me - the HTTP layer (not part of this package) does exactly this:

    async with engine_lifespan() as container:
        ...
        async with container.provider_scope() as service:
            result = await service.resolve_file_url(file_id, user_id)

EngineContainer is built ONCE per process. Everything request-scoped (session, unit of
work, ProviderService) is built per call by provider_scope()/provider_service().
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession

from cloudmusic.application.services import ProviderService, TokenRefreshCoordinator
from cloudmusic.config import Settings, get_settings
from cloudmusic.domain.ports import IStorageProviderAdapter
from cloudmusic.infrastructure.observability import configure_logging
from cloudmusic.infrastructure.persistence import Database, SqlAlchemyUnitOfWork
from cloudmusic.infrastructure.providers import (
    DropboxAdapter,
    StorageAdapterRegistry,
    YandexDiskAdapter,
)

logger = logging.getLogger(__name__)


# Make sure the directory of a file-based SQLite DB exists before the engine touches it,
# otherwise the first query dies with "unable to open database file".
def _ensure_sqlite_directory(database_url: str) -> None:
    url = make_url(database_url)
    if not url.drivername.startswith("sqlite") or not url.database:
        return
    if url.database == ":memory:":
        return

    parent = Path(url.database).parent
    if str(parent) not in ("", "."):
        parent.mkdir(parents=True, exist_ok=True)
        logger.debug("Ensured SQLite parent directory exists: %s", parent)


def build_adapters(settings: Settings) -> list[IStorageProviderAdapter]:
    """Create one adapter per provider with complete app credentials."""
    timeout = settings.providers.http_timeout
    adapters: list[IStorageProviderAdapter] = []

    if settings.dropbox.is_configured():
        adapters.append(DropboxAdapter(settings.dropbox, timeout=timeout))
    else:
        logger.warning("Dropbox credentials not configured, Dropbox links are disabled")

    if settings.yandex.is_configured():
        adapters.append(YandexDiskAdapter(settings.yandex, timeout=timeout))
    else:
        logger.warning("Yandex credentials not configured, Yandex Disk links are disabled")

    return adapters


class EngineContainer:
    """Holds the process-wide collaborators of the provider engine."""

    def __init__(
        self,
        settings: Settings,
        database: Database | None = None,
        adapters: list[IStorageProviderAdapter] | None = None,
    ) -> None:
        """Wire the container.

        Args:
            settings: Application settings
            database: Pre-built database (tests); built from settings otherwise
            adapters: Pre-built adapters (tests); built from settings otherwise
        """
        self.settings = settings
        if database is None:
            _ensure_sqlite_directory(settings.database.url)
            database = Database(settings.database)
        self.database = database
        self.registry = StorageAdapterRegistry.from_adapters(
            adapters if adapters is not None else build_adapters(settings)
        )
        # Shared by every request so concurrent refreshes of one link are joined
        self.refresh_coordinator = TokenRefreshCoordinator()

    def provider_service(self, session: AsyncSession) -> ProviderService:
        """Build a request-scoped ProviderService over an open session."""
        return ProviderService(
            unit_of_work=SqlAlchemyUnitOfWork(session),
            adapters=self.registry,
            refresh_coordinator=self.refresh_coordinator,
        )

    @asynccontextmanager
    async def provider_scope(self) -> AsyncGenerator[ProviderService, None]:
        """Open a session, yield a ProviderService bound to it, close the session."""
        async with self.database.new_session() as session:
            yield self.provider_service(session)

    async def aclose(self) -> None:
        """Close adapter HTTP clients and dispose the engine."""
        await self.registry.close_all()
        await self.database.close()
        logger.info("Provider engine shut down")


@asynccontextmanager
async def engine_lifespan(
    settings: Settings | None = None,
    create_tables: bool = False,
) -> AsyncGenerator[EngineContainer, None]:
    """Startup/shutdown wrapper around EngineContainer.

    Args:
        settings: Settings to use (default: cached get_settings())
        create_tables: Create tables directly instead of relying on alembic (dev/tests)
    """
    settings = settings or get_settings()
    configure_logging(
        log_level=settings.log.level,
        json_format=settings.log.json_format,
        app_name=settings.app_name,
    )

    container = EngineContainer(settings)
    try:
        if create_tables:
            await container.database.create_tables()
        logger.info(
            "Provider engine started",
            extra={"providers": [t.value for t in container.registry.available_types]},
        )
        yield container
    finally:
        await container.aclose()
