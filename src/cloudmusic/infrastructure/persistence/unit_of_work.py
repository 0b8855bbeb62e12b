"""SQLAlchemy unit of work."""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cloudmusic.domain.exceptions import CommitError
from cloudmusic.domain.ports import IUnitOfWork

from .repositories import CatalogEntryRepository, ProviderLinkRepository

logger = logging.getLogger(__name__)


# Hey future me - one of these per request, wrapping ONE AsyncSession. Both repositories
# are built right here in the constructor and share that session, so everything they stage
# lands in the same transaction. commit() is the only place that turns a database failure
# into CommitError: it rolls back first, then raises. It never swallows the error - the
# caller must learn that nothing was persisted.
class SqlAlchemyUnitOfWork(IUnitOfWork):
    """Transaction boundary over one SQLAlchemy session."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize unit of work and its repositories."""
        self.session = session
        self.provider_links = ProviderLinkRepository(session)
        self.catalog_entries = CatalogEntryRepository(session)

    async def commit(self) -> None:
        """Commit everything staged on the session.

        Raises:
            CommitError: If the database rejected the commit (already rolled back)
        """
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            logger.warning(
                "Commit failed, rolling back",
                extra={"error_type": type(e).__name__},
            )
            await self.session.rollback()
            raise CommitError(f"Failed to persist changes: {e}", original_error=e) from e

    async def rollback(self) -> None:
        """Discard everything staged since the last commit."""
        await self.session.rollback()
