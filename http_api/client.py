"""
http_api.client — Async authenticated backend client.

Design notes:
- Async-only: all public methods are coroutines, sharing one httpx.AsyncClient.
  Caller must call close() (or use ``async with``) when done.
- Bearer token from the TokenStore is attached to every request.
- A 401 triggers at most one token refresh and one resend per request.
- Concurrent 401s share a single refresh call. Refresh state is only touched
  on the event loop thread with no await between checking and setting it, so
  the client behaves like an actor without needing a lock.

Exports:
    APIClient   -- async client with refresh coalescing
    TokenPair   -- refresh endpoint response model
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Optional

import httpx
from pydantic import AliasChoices, BaseModel, Field, TypeAdapter, ValidationError

from http_api.endpoints import AUTH_REFRESH
from http_api.errors import (
    DecodingError,
    HttpError,
    NetworkError,
    Unauthorized,
)
from http_api.requests import APIRequest
from http_api.tokens import TokenStore

log = logging.getLogger("http_api.client")


class TokenPair(BaseModel):
    """Tokens returned by the refresh endpoint (camelCase or snake_case keys)."""

    access_token: str = Field(validation_alias=AliasChoices("accessToken", "access_token"))
    refresh_token: str = Field(validation_alias=AliasChoices("refreshToken", "refresh_token"))


class APIClient:
    """
    Async client for the backend REST API.

    Usage::

        client = APIClient(InMemoryTokenStore("access", "refresh"), "https://api.example.com")
        try:
            await client.send_no_content(APIRequest.delete("/api/mobile/workouts/w1"))
        finally:
            await client.close()
    """

    def __init__(
        self,
        token_store: TokenStore,
        base_url: str,
        timeout: float = 30.0,
        connect_timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Create the client.

        Args:
            token_store:     Source of access/refresh tokens; refreshed tokens are saved here.
            base_url:        Backend base URL, e.g. ``https://kinexfit.com``.
                             Trailing slashes are stripped automatically.
            timeout:         Total request timeout in seconds (default 30).
            connect_timeout: Connect timeout in seconds (default 5).
            transport:       Optional httpx transport (tests inject httpx.MockTransport).
        """
        self._base_url = base_url.rstrip("/")
        self._token_store = token_store
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=connect_timeout),
            transport=transport,
        )

        self._is_refreshing = False
        self._pending_waiters: list[asyncio.Future] = []
        log.debug("APIClient initialised, base_url=%s", self._base_url)

    @property
    def base_url(self) -> str:
        return self._base_url

    async def close(self) -> None:
        """Close the underlying httpx client and release connections."""
        await self._client.aclose()

    async def __aenter__(self) -> APIClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def send(self, request: APIRequest, model: Any = None) -> Any:
        """
        Send a request and decode the JSON response.

        Args:
            request: Request to send.
            model:   Pydantic model or any type ``pydantic.TypeAdapter`` accepts.
                     None returns the parsed JSON (None for an empty body).

        Returns:
            Decoded response.

        Raises:
            Unauthorized:  Credentials missing or rejected after a refresh.
            HttpError:     Any other non-2xx status.
            NetworkError:  Transport failure.
            DecodingError: Body could not be decoded into *model*.
        """
        data = await self._perform_request(request)
        try:
            if model is None:
                return json.loads(data) if data.strip() else None
            return TypeAdapter(model).validate_json(data)
        except (ValueError, ValidationError) as exc:
            raise DecodingError(f"Failed to parse server response: {exc}") from exc

    async def send_no_content(self, request: APIRequest) -> None:
        """Send a request whose response body carries nothing of interest (e.g. DELETE)."""
        await self._perform_request(request)

    # ------------------------------------------------------------------
    # Private
    # ------------------------------------------------------------------

    def _url(self, path: str) -> str:
        return f"{self._base_url}/{path.lstrip('/')}"

    async def _perform_request(self, request: APIRequest, is_retry: bool = False) -> bytes:
        headers = request.headers()
        access_token = self._token_store.access_token
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"

        try:
            resp = await self._client.request(
                request.method.value,
                self._url(request.path),
                params=request.query,
                content=request.body,
                headers=headers,
            )
        except httpx.TimeoutException as exc:
            raise NetworkError(f"Request timed out: {exc}") from exc
        except httpx.TransportError as exc:
            raise NetworkError(f"Network error: {exc}") from exc

        if resp.status_code == 401:
            if is_retry:
                log.info("%s %s still unauthorized after token refresh", request.method.value, request.path)
                raise Unauthorized()
            await self.refresh_token_if_needed()
            return await self._perform_request(request, is_retry=True)

        if not 200 <= resp.status_code < 300:
            raise HttpError(resp.status_code, resp.content)

        return resp.content

    async def refresh_token_if_needed(self) -> None:
        """
        Refresh credentials, coalescing concurrent callers into one network call.

        The first caller performs the refresh; callers arriving while it is in
        flight wait for its outcome and receive the same result or exception.
        """
        if self._is_refreshing:
            waiter = asyncio.get_running_loop().create_future()
            self._pending_waiters.append(waiter)
            log.debug("Token refresh in flight, waiting (%d waiter(s))", len(self._pending_waiters))
            await waiter
            return

        self._is_refreshing = True
        try:
            await self._perform_token_refresh()
        except asyncio.CancelledError:
            # Only the refreshing task was cancelled; waiters see a failed refresh
            for waiter in self._take_waiters():
                if not waiter.done():
                    waiter.set_exception(NetworkError("Token refresh cancelled."))
            raise
        except Exception as exc:
            for waiter in self._take_waiters():
                if not waiter.done():
                    waiter.set_exception(exc)
            raise

        for waiter in self._take_waiters():
            if not waiter.done():
                waiter.set_result(None)

    def _take_waiters(self) -> list[asyncio.Future]:
        waiting = self._pending_waiters
        self._pending_waiters = []
        self._is_refreshing = False
        return waiting

    async def _perform_token_refresh(self) -> None:
        refresh_token = self._token_store.refresh_token
        if not refresh_token:
            log.info("No refresh token available, clearing credentials")
            self._token_store.clear_tokens()
            raise Unauthorized()

        try:
            resp = await self._client.post(
                self._url(AUTH_REFRESH),
                json={"refreshToken": refresh_token},
                headers={"Accept": "application/json"},
            )
        except httpx.TimeoutException as exc:
            raise NetworkError(f"Token refresh timed out: {exc}") from exc
        except httpx.TransportError as exc:
            raise NetworkError(f"Network error during token refresh: {exc}") from exc

        if not 200 <= resp.status_code < 300:
            log.info("Token refresh rejected (HTTP %s), clearing credentials", resp.status_code)
            self._token_store.clear_tokens()
            raise Unauthorized()

        try:
            tokens = TokenPair.model_validate_json(resp.content)
        except ValidationError as exc:
            raise DecodingError(f"Failed to parse token refresh response: {exc}") from exc

        self._token_store.save(tokens.access_token, tokens.refresh_token)
        log.debug("Access token refreshed")
