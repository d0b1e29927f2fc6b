"""
REST HTTP client for the marketplace backend.
"""

from typing import Any, Optional

import httpx

from coursepay.errors import TransportError

DEFAULT_BASE_URL = "http://localhost:5000"
USER_AGENT = "coursepay/0.1.0"


class HttpClient:
    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._client = httpx.AsyncClient(
            base_url=f"{self._base_url}/api",
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    def set_token(self, token: str) -> None:
        self._token = token

    def _auth_headers(self, authenticated: bool) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if authenticated and self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    @staticmethod
    def _unwrap(json_data: Any) -> Any:
        """Unwrap ``{"success": true, "data": ...}`` / ``{"status": ..., "data": ...}``."""
        if isinstance(json_data, dict) and "data" in json_data and ("success" in json_data or "status" in json_data):
            return json_data["data"]
        return json_data

    @staticmethod
    def _error_message(resp: httpx.Response) -> str:
        try:
            body = resp.json()
        except ValueError:
            return resp.text[:200]
        if isinstance(body, dict):
            return str(body.get("error") or body.get("message") or body)[:200]
        return str(body)[:200]

    async def _send(self, method: str, path: str, authenticated: bool, **kwargs: Any) -> Any:
        try:
            resp = await self._client.request(method, path, headers=self._auth_headers(authenticated), **kwargs)
        except httpx.HTTPError as e:
            raise TransportError(f"{method} {path} failed: {e}") from e
        if resp.status_code >= 400:
            message = self._error_message(resp)
            raise TransportError(f"HTTP {resp.status_code}: {message}", status_code=resp.status_code, body=message)
        if not resp.content:
            return None
        return self._unwrap(resp.json())

    async def get(self, path: str, params: Optional[dict[str, str]] = None, authenticated: bool = True) -> Any:
        return await self._send("GET", path, authenticated, params=params)

    async def post(self, path: str, body: Optional[dict[str, Any]] = None, authenticated: bool = True) -> Any:
        return await self._send("POST", path, authenticated, json=body)

    async def close(self) -> None:
        await self._client.aclose()
