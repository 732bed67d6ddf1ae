"""
API Key Validator
Minimal probe request used by the key health check
"""
from dataclasses import dataclass
from typing import Optional
import logging

import httpx


logger = logging.getLogger(__name__)

NEWS_API_URL = "https://newsapi.org/v2/everything"


@dataclass
class KeyValidation:
    """Result of probing one key"""
    is_valid: bool
    is_rate_limited: bool = False
    error: Optional[str] = None
    message: Optional[str] = None


class NewsApiKeyValidator:
    """
    Probes a key with the smallest possible search (q=test, pageSize=1).

    Usable anywhere a ``Callable[[str], Awaitable[KeyValidation]]`` is expected.
    """

    def __init__(
        self,
        base_url: str = NEWS_API_URL,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url
        self.timeout = timeout
        self._client = client

    async def __call__(self, api_key: str) -> KeyValidation:
        if self._client is not None:
            return await self._probe(self._client, api_key)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await self._probe(client, api_key)

    async def _probe(self, client: httpx.AsyncClient, api_key: str) -> KeyValidation:
        try:
            response = await client.get(
                self.base_url,
                params={"q": "test", "pageSize": 1},
                headers={"X-Api-Key": api_key},
                timeout=self.timeout,
            )
        except httpx.HTTPError as exc:
            return KeyValidation(is_valid=False, error="NETWORK_ERROR", message=str(exc) or type(exc).__name__)

        payload = _json_or_empty(response)
        code = str(payload.get("code") or "")
        message = payload.get("message")

        if response.status_code == 429 or code == "rateLimited":
            return KeyValidation(is_valid=False, is_rate_limited=True, error="RATE_LIMITED", message=message)
        if response.status_code == 401 or code.startswith("apiKey"):
            return KeyValidation(is_valid=False, error="INVALID_KEY", message=message)
        if response.status_code == 200 and payload.get("status") == "ok":
            return KeyValidation(is_valid=True)

        return KeyValidation(
            is_valid=False,
            error=code or f"HTTP_{response.status_code}",
            message=message or "Unknown error",
        )


def _json_or_empty(response: httpx.Response) -> dict:
    try:
        payload = response.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}
