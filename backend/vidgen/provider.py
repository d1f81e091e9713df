import logging
from typing import Any, Dict, Optional

import httpx

from .config import Settings
from .errors import (
    ConfigurationError,
    UpstreamContractError,
    UpstreamError,
    UpstreamUnavailableError,
    summarize_body,
)

logger = logging.getLogger("vidgen-backend")


class ProviderClient:
    """HTTP client for the external video generation provider.

    A fresh ``httpx.Client`` is opened per call with a bounded timeout; no
    connection state is shared between requests. ``transport`` lets tests
    swap in an ``httpx.MockTransport``.
    """

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str,
        model_path: str,
        timeout: float = 20.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self._api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model_path = model_path.strip("/")
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings, transport: Optional[httpx.BaseTransport] = None) -> "ProviderClient":
        return cls(
            api_key=settings.provider_api_key,
            base_url=settings.provider_base_url,
            model_path=settings.provider_model_path,
            timeout=settings.provider_timeout_seconds,
            transport=transport,
        )

    def create_generation(self, body: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", f"{self.base_url}/{self.model_path}", json=body)

    def get_status(self, task_id: str) -> Dict[str, Any]:
        return self._request("GET", f"{self.base_url}/generation/{task_id}/status")

    def _request(self, method: str, url: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        if not self._api_key:
            raise ConfigurationError("POLLO_AI_API_KEY")
        headers = {"x-api-key": self._api_key}
        if json is not None:
            headers["Content-Type"] = "application/json"
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                r = client.request(method, url, json=json, headers=headers)
        except httpx.TimeoutException as e:
            logger.warning("Provider %s %s timed out after %ss", method, url, self.timeout)
            raise UpstreamUnavailableError() from e
        except httpx.HTTPError as e:
            logger.warning("Provider %s %s failed: %s", method, url, type(e).__name__)
            raise UpstreamUnavailableError() from e

        if not r.is_success:
            summary = summarize_body(r.text, secret=self._api_key)
            logger.error("Provider %s %s -> %s: %s", method, url, r.status_code, summary)
            raise UpstreamError(r.status_code, summary)

        try:
            data = r.json()
        except ValueError as e:
            logger.error("Provider %s %s returned non-JSON body", method, url)
            raise UpstreamContractError() from e
        if not isinstance(data, dict):
            logger.error("Provider %s %s returned %s instead of an object", method, url, type(data).__name__)
            raise UpstreamContractError()
        return data
