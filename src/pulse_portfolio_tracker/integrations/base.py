"""Shared httpx plumbing for REST provider clients."""

import logging
from typing import Any

import httpx

from pulse_portfolio_tracker.core.exceptions import (
    MalformedResponse,
    NotFound,
    ProviderError,
    ProviderUnavailable,
    RateLimited,
)

logger = logging.getLogger(__name__)


class BaseAPIClient:
    """
    Base class for provider clients.

    Maps transport and status failures onto the provider error taxonomy:
    timeouts, transport errors and 5xx become ``ProviderUnavailable``, 429
    becomes ``RateLimited``, 404 becomes ``NotFound`` and undecodable bodies
    become ``MalformedResponse``.

    Parameters
    ----------
    base_url : str
        API base URL
    timeout : float
        Request timeout in seconds
    headers : dict[str, str] | None
        Default request headers
    client : httpx.Client | None
        Preconfigured HTTP client (used by tests with ``httpx.MockTransport``)

    """

    name = "provider"

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        headers: dict[str, str] | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.Client(timeout=timeout, headers=headers or {})
        if client is not None and headers:
            self.client.headers.update(headers)

    def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | list[tuple[str, Any]] | None = None,
        json: Any = None,
    ) -> Any:
        """
        Send a request and return the decoded JSON body.

        Parameters
        ----------
        method : str
            HTTP method
        path : str
            Path relative to ``base_url``
        params : dict[str, Any] | list[tuple[str, Any]] | None
            Query parameters
        json : Any
            JSON request body

        Returns
        -------
        Any
            Decoded JSON body

        Raises
        ------
        ProviderError
            One of the taxonomy subclasses

        """
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            response = self.client.request(method, url, params=params, json=json)
            response.raise_for_status()
        except httpx.TimeoutException as e:
            msg = f"{self.name} request timeout: {e}"
            raise ProviderUnavailable(msg, provider=self.name) from e
        except httpx.HTTPStatusError as e:
            raise self._status_error(e) from e
        except httpx.HTTPError as e:
            msg = f"{self.name} request failed: {e}"
            raise ProviderUnavailable(msg, provider=self.name) from e

        try:
            return response.json()
        except ValueError as e:
            msg = f"{self.name} returned a non-JSON body for {path}"
            raise MalformedResponse(msg, provider=self.name) from e

    def _status_error(self, error: httpx.HTTPStatusError) -> ProviderError:
        status = error.response.status_code
        msg = f"{self.name} HTTP error {status}: {error.request.url}"
        if status == 429:
            retry_after = error.response.headers.get("retry-after", "")
            retry_after_ms = int(retry_after) * 1000 if retry_after.isdigit() else 0
            return RateLimited(msg, provider=self.name, status_code=status, retry_after_ms=retry_after_ms)
        if status == 404:
            return NotFound(msg, provider=self.name, status_code=status)
        if status >= 500 or status == 408:
            return ProviderUnavailable(msg, provider=self.name, status_code=status)
        return MalformedResponse(msg, provider=self.name, status_code=status)

    def _get(self, path: str, params: dict[str, Any] | list[tuple[str, Any]] | None = None) -> Any:
        return self._request("GET", path, params=params)

    def _post(self, path: str, json: Any, params: dict[str, Any] | None = None) -> Any:
        return self._request("POST", path, params=params, json=json)

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self.client.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type: type, exc_val: Exception, exc_tb: object) -> None:
        """Context manager exit."""
        self.close()


def expect_dict(data: Any, provider: str, what: str) -> dict[str, Any]:
    """Raise ``MalformedResponse`` unless ``data`` is a JSON object."""
    if not isinstance(data, dict):
        msg = f"{provider}: expected an object for {what}, got {type(data).__name__}"
        raise MalformedResponse(msg, provider=provider)
    return data


def expect_list(data: Any, provider: str, what: str) -> list[Any]:
    """Raise ``MalformedResponse`` unless ``data`` is a JSON array."""
    if not isinstance(data, list):
        msg = f"{provider}: expected a list for {what}, got {type(data).__name__}"
        raise MalformedResponse(msg, provider=provider)
    return data
