"""Shared HTTP plumbing for the remote service clients."""

import logging
from typing import Any, Dict, Optional

import httpx

from engines.base import RemoteServiceError

logger = logging.getLogger(__name__)


class ServiceClient:
    """Thin synchronous JSON client around httpx."""

    service_name = "service"

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 30.0,
        client: Optional[httpx.Client] = None,
    ):
        self.base_url = (base_url or "").rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._client = client
        if not self.base_url and client is None:
            logger.warning(f"{self.service_name} URL is not set")

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _http(self) -> httpx.Client:
        if self._client is None:
            if not self.base_url:
                raise RemoteServiceError(f"{self.service_name} URL is not configured")
            self._client = httpx.Client(base_url=self.base_url, timeout=self.timeout)
        return self._client

    def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
    ) -> Any:
        """Send a request and return the decoded JSON body.

        Transport and HTTP errors are raised as RemoteServiceError with the
        response body (when JSON) as detail.
        """
        logger.info(f"{self.service_name}: {method} {path}")
        try:
            response = self._http().request(
                method, path, params=params, json=json, headers=self._headers()
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.error(f"HTTP error from {self.service_name}: {status} {e.response.text}")
            raise RemoteServiceError(
                f"HTTP {status}: {e.response.reason_phrase}",
                detail=_response_detail(e.response),
                status_code=status,
            ) from e
        except httpx.RequestError as e:
            logger.error(f"Request error connecting to {self.service_name}: {e}")
            raise RemoteServiceError(str(e) or e.__class__.__name__) from e

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise RemoteServiceError(
                f"{self.service_name} returned invalid JSON", detail=response.text
            ) from e

    def close(self) -> None:
        if self._client is not None:
            self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


def _response_detail(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text or None
