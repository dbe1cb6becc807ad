"""OpenList API client — credential checks against a remote OpenList server."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import httpx

from portal.errors import AuthFailure

if TYPE_CHECKING:
    from portal.services.http_client import HttpClientService

logger = logging.getLogger(__name__)

LOGIN_TIMEOUT = httpx.Timeout(15.0)


class OpenListClient:
    """Thin wrapper over the OpenList REST API.

    Only login is needed here; the token it returns is not kept.
    """

    def __init__(self, http_client: "HttpClientService"):
        self.http_client = http_client

    async def login(self, url: str, username: str, password: str) -> str:
        """Log in and return the session token, or raise :class:`AuthFailure`."""
        endpoint = f"{url.rstrip('/')}/api/auth/login"
        try:
            client = await self.http_client.get_client()
            response = await client.post(
                endpoint,
                json={"username": username, "password": password},
                timeout=LOGIN_TIMEOUT,
            )
        except httpx.HTTPError as e:
            raise AuthFailure(f"cannot reach OpenList server: {e}") from e

        try:
            data = response.json()
        except ValueError:
            raise AuthFailure(f"unexpected response from OpenList (HTTP {response.status_code})")

        if not isinstance(data, dict):
            raise AuthFailure("unexpected response from OpenList")

        payload = data.get("data")
        token = payload.get("token") if isinstance(payload, dict) else None
        if response.status_code != 200 or data.get("code") != 200 or not token:
            raise AuthFailure(data.get("message") or f"login failed (HTTP {response.status_code})")
        return token

    async def validate(self, url: str, username: str, password: str) -> None:
        """Probe the credentials; returns on success, raises :class:`AuthFailure` otherwise."""
        logger.info(f"Checking OpenList credentials for '{username}' at {url}")
        try:
            await self.login(url, username, password)
        except AuthFailure as e:
            logger.error(f"OpenList credential check failed: {e.message}")
            raise
        logger.info("OpenList credential check succeeded")
