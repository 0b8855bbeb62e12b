"""Shared httpx plumbing for OAuth-backed storage adapters."""

from __future__ import annotations

import logging
from typing import Any, ClassVar

import httpx

from cloudmusic.domain.entities import ProviderType
from cloudmusic.domain.exceptions import AdapterAuthError, AdapterIOError
from cloudmusic.domain.ports import IStorageProviderAdapter, TokenGrant

logger = logging.getLogger(__name__)


class OAuthHttpAdapter(IStorageProviderAdapter):
    """Base class for adapters talking to a provider's REST API over httpx.

    Subclasses set PROVIDER_TYPE and AUTH_SCHEME and implement list_files/resolve_url
    on top of _api_request().
    """

    PROVIDER_TYPE: ClassVar[ProviderType]
    AUTH_SCHEME: ClassVar[str] = "Bearer"

    # Hey future me, same trick as the other HTTP clients: the AsyncClient is NOT built in
    # __init__ (no running loop yet at startup), it's lazy-created in _get_client(). An
    # injected http_client is borrowed, so close() leaves it alone.
    def __init__(
        self,
        client_id: str,
        client_secret: str,
        token_url: str,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.token_url = token_url
        self.timeout = timeout
        self._client = http_client
        self._owns_client = http_client is None

    @property
    def name(self) -> str:
        return self.PROVIDER_TYPE.value

    def can_handle(self, provider_type: ProviderType) -> bool:
        return provider_type == self.PROVIDER_TYPE

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
            self._owns_client = True
        return self._client

    async def close(self) -> None:
        """Close HTTP client (only if we created it)."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _auth_headers(self, access_token: bytes) -> dict[str, str]:
        return {"Authorization": f"{self.AUTH_SCHEME} {access_token.decode('utf-8')}"}

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        client = await self._get_client()
        try:
            return await client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise AdapterIOError(
                f"{self.name} request failed: {type(e).__name__}: {e}",
                provider=self.name,
            ) from e

    # Listen up - every API call (not the token endpoint) goes through here. No retries:
    # 429 and 5xx become AdapterIOError and the caller decides what to do.
    async def _api_request(
        self,
        method: str,
        url: str,
        access_token: bytes,
        **kwargs: Any,
    ) -> dict[str, Any]:
        """Make an authorized API request and return the decoded JSON body.

        Raises:
            AdapterAuthError: 401/403 - access token rejected
            AdapterIOError: Transport failure, any other non-2xx, or a non-JSON body
        """
        headers = {**kwargs.pop("headers", {}), **self._auth_headers(access_token)}
        response = await self._send(method, url, headers=headers, **kwargs)

        if response.status_code in (401, 403):
            raise AdapterAuthError(
                message=f"{self.name} rejected the access token",
                provider=self.name,
                http_status=response.status_code,
                error_code="access_denied",
            )
        if response.is_error:
            raise AdapterIOError(
                f"{self.name} API error {response.status_code} for {method} {url}",
                provider=self.name,
                http_status=response.status_code,
            )
        return self._json(response)

    def _json(self, response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise AdapterIOError(
                f"{self.name} returned a non-JSON response",
                provider=self.name,
                http_status=response.status_code,
            ) from e
        if not isinstance(data, dict):
            raise AdapterIOError(
                f"{self.name} returned an unexpected response shape",
                provider=self.name,
                http_status=response.status_code,
            )
        return data

    # Hey future me - check for invalid_grant BEFORE the generic status handling!
    # Both Dropbox and Yandex answer 400 {"error": "invalid_grant"} when the refresh token
    # was revoked. That one means "re-link", while a 5xx only means "try again later".
    async def refresh_access_token(self, refresh_token: bytes) -> TokenGrant:
        """Exchange a refresh token for a new access token.

        Raises:
            AdapterAuthError: Refresh token invalid/revoked, or client credentials rejected
            AdapterIOError: Transport failure, 5xx, or malformed token response
        """
        data = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token.decode("utf-8"),
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        }
        response = await self._send(
            "POST",
            self.token_url,
            data=data,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )

        if response.status_code == 400:
            error_code = None
            error_description = "Refresh token is invalid or has been revoked"
            try:
                error_data = response.json()
                error_code = error_data.get("error")
                error_description = error_data.get("error_description", error_description)
            except (ValueError, AttributeError):
                # Not JSON - still a client error on the token endpoint
                pass
            raise AdapterAuthError(
                message=f"{self.name} refresh failed: {error_description}",
                provider=self.name,
                http_status=400,
                error_code=error_code or "invalid_request",
            )

        if response.status_code in (401, 403):
            raise AdapterAuthError(
                message=f"{self.name} rejected the client credentials",
                provider=self.name,
                http_status=response.status_code,
                error_code="access_denied",
            )

        if response.is_error:
            raise AdapterIOError(
                f"{self.name} token endpoint error {response.status_code}",
                provider=self.name,
                http_status=response.status_code,
            )

        body = self._json(response)
        try:
            access_token = str(body["access_token"]).encode("utf-8")
            expires_in = int(body["expires_in"])
        except (KeyError, TypeError, ValueError) as e:
            raise AdapterIOError(
                f"{self.name} token response is missing access_token/expires_in",
                provider=self.name,
                http_status=response.status_code,
            ) from e

        rotated = body.get("refresh_token")
        logger.debug(
            "Token refreshed",
            extra={"provider": self.name, "expires_in": expires_in, "rotated": bool(rotated)},
        )
        return TokenGrant(
            access_token=access_token,
            expires_in=expires_in,
            refresh_token=str(rotated).encode("utf-8") if rotated else None,
        )

    async def __aenter__(self) -> OAuthHttpAdapter:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
