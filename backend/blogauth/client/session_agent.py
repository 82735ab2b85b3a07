"""Client-side session agent: bearer attachment and transparent refresh.

The agent keeps the access token in memory only. The refresh secret lives
in the underlying httpx cookie jar as an HTTP-only cookie and is never
exposed to calling code.

Usage:
    async with SessionAgent("https://blog.example.com") as agent:
        await agent.login("a@x.com", "pw123")
        response = await agent.get("/api/v1/auth/me")

When any call gets a 401 the agent refreshes once and retries that call
once. Calls failing at the same time share one refresh.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Union

import httpx

logger = logging.getLogger(__name__)

SessionEndCallback = Callable[[], Union[None, Awaitable[None]]]

# Refresh rejections that mean the session is over rather than a server fault
_SESSION_OVER_STATUSES = {400, 401, 403}


class SessionAgent:
    """Holds the access token and keeps the session alive across expiry."""

    def __init__(
        self,
        base_url: str = "",
        *,
        client: Optional[httpx.AsyncClient] = None,
        auth_prefix: str = "/api/v1/auth",
        on_session_end: Optional[SessionEndCallback] = None,
        timeout: float = 30.0,
    ) -> None:
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=httpx.Timeout(timeout))
        self._owns_client = client is None
        self._auth_prefix = auth_prefix.rstrip("/")
        self._on_session_end = on_session_end

        self._access_token: Optional[str] = None
        self._user: Optional[Dict[str, Any]] = None
        # Bumped whenever the held token changes; lets a late 401 see that a
        # refresh already happened after its request went out.
        self._generation = 0
        # Created lazily, inside the running loop
        self._lock: Optional[asyncio.Lock] = None
        self._inflight: Optional[asyncio.Task] = None

    async def __aenter__(self) -> "SessionAgent":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    @property
    def access_token(self) -> Optional[str]:
        return self._access_token

    @property
    def user(self) -> Optional[Dict[str, Any]]:
        """Public view of the signed-in user from the last token response"""
        return self._user

    @property
    def is_authenticated(self) -> bool:
        return self._access_token is not None

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    async def register(
        self,
        username: str,
        email: str,
        password: str,
        first_name: str = "",
        last_name: str = "",
    ) -> httpx.Response:
        response = await self._client.post(
            f"{self._auth_prefix}/register",
            json={
                "username": username,
                "email": email,
                "password": password,
                "firstName": first_name,
                "lastName": last_name,
            },
        )
        if response.status_code == 201:
            self._accept(response)
        return response

    async def login(self, email: str, password: str) -> httpx.Response:
        response = await self._client.post(
            f"{self._auth_prefix}/login",
            json={"email": email, "password": password},
        )
        if response.status_code == 200:
            self._accept(response)
        return response

    async def restore(self) -> bool:
        """
        Resume a session from the refresh cookie, e.g. after a restart.

        Returns:
            True if a new access token was obtained
        """
        return await self._refresh(self._generation)

    async def logout(self) -> None:
        try:
            await self._client.post(f"{self._auth_prefix}/logout")
        finally:
            self._set_token(None, None)

    async def logout_all(self) -> None:
        try:
            await self._client.post(f"{self._auth_prefix}/logout-all")
        finally:
            self._set_token(None, None)

    # ------------------------------------------------------------------
    # Authenticated calls
    # ------------------------------------------------------------------

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """
        Send a call with the bearer token, refreshing and retrying once on 401.

        The request is replayed on retry, so streamed bodies are not supported.
        If the refresh fails the token is cleared and the original 401 is
        returned. A call made without a token is never refreshed.
        """
        generation = self._generation
        had_token = self._access_token is not None
        response = await self._send(method, url, **kwargs)
        if response.status_code != 401 or not had_token:
            return response

        if not await self._refresh(generation):
            return response

        await response.aclose()
        return await self._send(method, url, **kwargs)

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def put(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("PUT", url, **kwargs)

    async def patch(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("PATCH", url, **kwargs)

    async def delete(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("DELETE", url, **kwargs)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        headers = httpx.Headers(kwargs.pop("headers", None))
        if self._access_token:
            headers["Authorization"] = f"Bearer {self._access_token}"
        return await self._client.request(method, url, headers=headers, **kwargs)

    async def _refresh(self, seen_generation: int) -> bool:
        if self._lock is None:
            self._lock = asyncio.Lock()
        async with self._lock:
            if self._generation != seen_generation:
                # Token changed since the failed call went out; use whatever is held now.
                return self._access_token is not None
            if self._inflight is None:
                self._inflight = asyncio.ensure_future(self._perform_refresh())
            task = self._inflight
        # Shielded so one cancelled caller does not abort the shared refresh.
        return await asyncio.shield(task)

    async def _perform_refresh(self) -> bool:
        try:
            response = await self._client.post(f"{self._auth_prefix}/refresh")
            if response.status_code == 200:
                self._accept(response)
                logger.debug("Access token refreshed")
                return True
            if response.status_code in _SESSION_OVER_STATUSES:
                logger.info("Refresh rejected (%d); session ended", response.status_code)
                await self._end_session()
                return False
            response.raise_for_status()
            raise httpx.HTTPStatusError(
                f"Unexpected refresh status {response.status_code}",
                request=response.request,
                response=response,
            )
        finally:
            self._inflight = None

    def _accept(self, response: httpx.Response) -> None:
        data = response.json()
        self._set_token(data["accessToken"], data.get("user"))

    def _set_token(self, token: Optional[str], user: Optional[Dict[str, Any]]) -> None:
        self._access_token = token
        self._user = user
        self._generation += 1

    async def _end_session(self) -> None:
        had_session = self._access_token is not None
        self._set_token(None, None)
        if had_session and self._on_session_end is not None:
            result = self._on_session_end()
            if inspect.isawaitable(result):
                await result
