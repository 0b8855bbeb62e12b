"""Per-link single-flight coordination of access token refreshes.

Hey future me - when a link's access token expires, several requests for that link's files
usually arrive at once (the player pre-fetches the next tracks). Without coordination each
of them would call the provider's token endpoint. Some providers rotate refresh tokens, and
then the second refresh fails with invalid_grant because the first one already burned the
old refresh token. That's why this exists.

How it works:
- One coordinator per process (EngineContainer owns it), shared by the request-scoped
  ProviderService instances.
- _in_flight maps link id -> the asyncio.Task currently refreshing that link.
- Callers for the same link await the same task. The task removes itself from the map when
  done, so the NEXT expiry triggers a fresh refresh.
- asyncio.shield() keeps one cancelled caller from cancelling the refresh for everyone else.
- No lock is held across awaits; the dict check-and-set runs without a suspension point.
"""

import asyncio
import logging

from cloudmusic.domain.ports.storage_provider import IStorageProviderAdapter, TokenGrant
from cloudmusic.domain.value_objects import ProviderLinkId

logger = logging.getLogger(__name__)


class TokenRefreshCoordinator:
    """Joins concurrent token refreshes for the same provider link."""

    def __init__(self) -> None:
        self._in_flight: dict[ProviderLinkId, asyncio.Task[TokenGrant]] = {}

    def in_flight_count(self) -> int:
        """Number of refreshes currently running."""
        return len(self._in_flight)

    async def refresh(
        self,
        link_id: ProviderLinkId,
        adapter: IStorageProviderAdapter,
        refresh_token: bytes,
    ) -> TokenGrant:
        """Refresh the link's access token, joining an in-flight refresh if any.

        Raises:
            AdapterAuthError: Refresh token rejected by the provider
            AdapterIOError: Transport failure
        """
        task = self._in_flight.get(link_id)
        if task is None:
            logger.debug("Refreshing access token", extra={"link_id": str(link_id)})
            task = asyncio.ensure_future(adapter.refresh_access_token(refresh_token))
            self._in_flight[link_id] = task
            task.add_done_callback(lambda done: self._forget(link_id, done))
        else:
            logger.debug(
                "Joining in-flight token refresh", extra={"link_id": str(link_id)}
            )
        return await asyncio.shield(task)

    def _forget(self, link_id: ProviderLinkId, task: asyncio.Task[TokenGrant]) -> None:
        if self._in_flight.get(link_id) is task:
            del self._in_flight[link_id]
        # Mark the exception retrieved even if every waiter was cancelled
        if not task.cancelled():
            task.exception()
