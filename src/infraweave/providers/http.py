"""HTTP adapter for an external provider service."""

import os
from typing import Any, Dict, Optional
import requests
from .base import ProviderCapability, ProviderResult
from ..utils.errors import ProviderError
from ..utils.logging import get_logger

logger = get_logger("providers.http")

RETRYABLE_STATUS_CODES = {408, 425, 429, 500, 502, 503, 504}


class HttpProvider(ProviderCapability):
    """
    Provider capability backed by a JSON-over-HTTP service.

    Endpoints:
        POST   {base_url}/resources/{type}        body {"spec": ...} -> {"id": ..., "attributes": ...}
        PUT    {base_url}/resources/{type}/{id}   body {"spec": ...} -> {"attributes": ...}
        DELETE {base_url}/resources/{type}/{id}
        GET    {base_url}/resources/{type}/{id}   -> {"attributes": ...}

    Connection errors, timeouts, 429 and 5xx responses are retryable.
    """

    name = "http"

    def __init__(self, base_url: Optional[str] = None, timeout: float = 30.0,
                 token: Optional[str] = None, session: Optional[requests.Session] = None):
        """
        Initialize HTTP provider.

        Args:
            base_url: Provider service base URL (default: INFRAWEAVE_PROVIDER_URL or http://localhost:8480)
            timeout: Per-request timeout in seconds
            token: Bearer token (default: INFRAWEAVE_PROVIDER_TOKEN)
            session: Optional pre-configured requests session
        """
        self.base_url = (base_url or os.getenv("INFRAWEAVE_PROVIDER_URL", "http://localhost:8480")).rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        token = token or os.getenv("INFRAWEAVE_PROVIDER_TOKEN")
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    def _url(self, resource_type: str, provider_id: Optional[str] = None) -> str:
        url = f"{self.base_url}/resources/{resource_type}"
        if provider_id:
            url += f"/{provider_id}"
        return url

    def _request(self, method: str, url: str, payload: Optional[Dict[str, Any]] = None) -> requests.Response:
        try:
            response = self.session.request(method, url, json=payload, timeout=self.timeout)
        except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
            logger.warning(f"Provider request {method} {url} failed: {e}")
            raise ProviderError(f"Provider unreachable: {e}", retryable=True)
        except requests.exceptions.RequestException as e:
            raise ProviderError(f"Provider request failed: {e}", retryable=False)
        return response

    def _raise_for_status(self, response: requests.Response, action: str) -> None:
        if response.ok:
            return
        try:
            detail = response.json().get("message", response.text)
        except ValueError:
            detail = response.text
        raise ProviderError(
            f"Provider {action} failed with HTTP {response.status_code}: {detail}",
            retryable=response.status_code in RETRYABLE_STATUS_CODES
        )

    def _json(self, response: requests.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            raise ProviderError("Provider returned a non-JSON response", retryable=False)
        if not isinstance(data, dict):
            raise ProviderError("Provider response must be a JSON object", retryable=False)
        return data

    def create(self, resource_type: str, spec: Dict[str, Any]) -> ProviderResult:
        response = self._request("POST", self._url(resource_type), {"spec": spec})
        self._raise_for_status(response, "create")
        data = self._json(response)
        provider_id = data.get("id")
        if not provider_id:
            raise ProviderError("Provider create response is missing 'id'", retryable=False)
        return ProviderResult(provider_id=str(provider_id), attributes=data.get("attributes") or {})

    def update(self, resource_type: str, provider_id: str, spec: Dict[str, Any]) -> Dict[str, Any]:
        response = self._request("PUT", self._url(resource_type, provider_id), {"spec": spec})
        self._raise_for_status(response, "update")
        return self._json(response).get("attributes") or {}

    def delete(self, resource_type: str, provider_id: str) -> None:
        response = self._request("DELETE", self._url(resource_type, provider_id))
        if response.status_code == 404:
            logger.info(f"{resource_type} {provider_id} already absent at provider")
            return
        self._raise_for_status(response, "delete")

    def read(self, resource_type: str, provider_id: str) -> Optional[Dict[str, Any]]:
        response = self._request("GET", self._url(resource_type, provider_id))
        if response.status_code == 404:
            return None
        self._raise_for_status(response, "read")
        return self._json(response).get("attributes") or {}
