from __future__ import annotations

from typing import Any
from urllib.parse import quote

import httpx

from ..api_models import encode_json
from ..logging import get_logger
from .errors import ApiTransportError

logger = get_logger(__name__)

API_BASE_URL = "https://api.vk.com/method"
API_VERSION = "5.95"


class VkClient:
    """Performs single VK API calls. Rate limiting lives in the call queue."""

    def __init__(
        self,
        token: str,
        *,
        version: str = API_VERSION,
        base_url: str = API_BASE_URL,
        timeout_s: float = 30,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not token:
            raise ValueError("VK access token is empty")
        self._token = token
        self._version = version
        self._base = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout_s)
        self._owns_client = client is None

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def call(self, method: str, params: dict[str, Any]) -> Any:
        """POST `method` and return the decoded JSON body as-is.

        Interpreting `response` / `error` is left to the caller.
        """
        logger.debug("vk.request", method=method, params=params)
        data = {
            "access_token": self._token,
            "v": self._version,
            **{key: _form_value(value) for key, value in params.items()},
        }
        url = f"{self._base}/{quote(method, safe='.')}"
        try:
            resp = await self._client.post(url, data=data)
        except httpx.HTTPError as e:
            logger.warning(
                "vk.network_error",
                method=method,
                error=str(e),
                error_type=e.__class__.__name__,
            )
            raise ApiTransportError.transport(method, f"network error: {e}") from e

        try:
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.warning(
                "vk.http_error",
                method=method,
                status=resp.status_code,
                body=resp.text,
            )
            raise ApiTransportError.transport(
                method, f"HTTP status {resp.status_code}"
            ) from e

        try:
            payload = resp.json()
        except ValueError as e:
            logger.warning(
                "vk.bad_response",
                method=method,
                status=resp.status_code,
                error=str(e),
                body=resp.text,
            )
            raise ApiTransportError.transport(method, "response is not valid JSON") from e

        logger.debug("vk.response", method=method, payload=payload)
        return payload


def _form_value(value: Any) -> str:
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (list, tuple)):
        return ",".join(_form_value(item) for item in value)
    if isinstance(value, dict):
        return encode_json(value)
    return str(value)
