"""
REST HTTP client for the backend — rows, storage and auth share one connection pool.
"""

import logging
from typing import Any, Optional

import httpx

from groupchat.errors import GroupChatError, StoreUnavailable, Unauthorized, ValidationError

logger = logging.getLogger(__name__)

USER_AGENT = "groupchat-sdk/0.1.0"


class HttpClient:
    def __init__(
        self,
        base_url: str,
        anon_key: str,
        token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._anon_key = anon_key
        self._token = token
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"User-Agent": USER_AGENT, "Accept": "application/json", "apikey": anon_key},
            timeout=timeout,
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def anon_key(self) -> str:
        return self._anon_key

    @property
    def token(self) -> Optional[str]:
        return self._token

    def set_token(self, token: Optional[str]) -> None:
        self._token = token

    def _auth_headers(self, authenticated: bool) -> dict[str, str]:
        # Unauthenticated calls still carry the anon key as bearer
        bearer = self._token if authenticated and self._token else self._anon_key
        return {"Authorization": f"Bearer {bearer}"}

    @staticmethod
    def _raise_for_status(resp: httpx.Response) -> None:
        if resp.status_code < 400:
            return
        text = resp.text[:200]
        details = {"status": resp.status_code}
        if resp.status_code in (401, 403):
            raise Unauthorized(f"HTTP {resp.status_code}: {text}")
        if resp.status_code == 409:
            raise ValidationError(f"Conflict: {text}", code="conflict", details=details)
        if resp.status_code >= 500:
            raise StoreUnavailable(f"HTTP {resp.status_code}: {text}", details=details)
        raise GroupChatError("http_error", f"HTTP {resp.status_code}: {text}", details)

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict[str, str]] = None,
        json: Any = None,
        content: Optional[bytes] = None,
        headers: Optional[dict[str, str]] = None,
        authenticated: bool = True,
    ) -> Any:
        merged = self._auth_headers(authenticated)
        if headers:
            merged.update(headers)
        try:
            resp = await self._client.request(
                method, path, params=params, json=json, content=content, headers=merged,
            )
        except httpx.HTTPError as e:
            logger.warning("%s %s failed: %s", method, path, e)
            raise StoreUnavailable(f"{method} {path} failed: {e}") from e
        self._raise_for_status(resp)
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise StoreUnavailable(f"{method} {path} returned a non-JSON body",
                                   details={"status": resp.status_code}) from e

    async def get(self, path: str, params: Optional[dict[str, str]] = None,
                  headers: Optional[dict[str, str]] = None, authenticated: bool = True) -> Any:
        return await self.request("GET", path, params=params, headers=headers, authenticated=authenticated)

    async def post(self, path: str, body: Any = None, params: Optional[dict[str, str]] = None,
                   headers: Optional[dict[str, str]] = None, authenticated: bool = True) -> Any:
        return await self.request("POST", path, params=params, json=body, headers=headers,
                                  authenticated=authenticated)

    async def patch(self, path: str, body: Any = None, params: Optional[dict[str, str]] = None,
                    headers: Optional[dict[str, str]] = None) -> Any:
        return await self.request("PATCH", path, params=params, json=body, headers=headers)

    async def upload(self, path: str, data: bytes, content_type: str,
                     headers: Optional[dict[str, str]] = None) -> Any:
        """Raw-body upload used by object storage."""
        merged = {"Content-Type": content_type}
        if headers:
            merged.update(headers)
        return await self.request("POST", path, content=data, headers=merged)

    async def close(self) -> None:
        await self._client.aclose()
