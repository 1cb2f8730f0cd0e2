"""JSON-RPC provider with automatic endpoint failover."""

import itertools
import logging
import threading
from typing import Any

import httpx

from pulse_portfolio_tracker.core.exceptions import MalformedResponse, NotFound, ProviderUnavailable
from pulse_portfolio_tracker.rpc.retry import RetryConfig, RetryManager, RetryPolicy

logger = logging.getLogger(__name__)

# EIP-1474 code for a reverted eth_call
EXECUTION_ERROR_CODE = 3


def is_revert(error: Any) -> bool:
    """Check whether a JSON-RPC error member reports a reverted call rather than a node failure."""
    if not isinstance(error, dict):
        return "revert" in str(error).lower()
    return error.get("code") == EXECUTION_ERROR_CODE or "revert" in str(error.get("message", "")).lower()


def parse_quantity(value: Any, method: str) -> int:
    """
    Parse a hex-encoded JSON-RPC quantity.

    Parameters
    ----------
    value : Any
        ``result`` member of the response
    method : str
        RPC method, for the error message

    Returns
    -------
    int
        Decoded integer

    Raises
    ------
    MalformedResponse
        If the result is not a ``0x`` prefixed hex string

    """
    if not isinstance(value, str) or not value.startswith("0x"):
        msg = f"{method} returned a non-quantity result: {value!r}"
        raise MalformedResponse(msg, provider="rpc")
    try:
        return int(value, 16)
    except ValueError as e:
        msg = f"{method} returned an invalid quantity: {value!r}"
        raise MalformedResponse(msg, provider="rpc") from e


class MultiRPCProvider:
    """
    JSON-RPC client over several endpoints of the same chain.

    Requests go to the current endpoint; on a transport failure or error
    response the provider rotates to the next endpoint and retries.

    Parameters
    ----------
    endpoints : list[str]
        RPC endpoint URLs in failover order
    timeout : float
        Per-request timeout in seconds
    retry_policy : RetryPolicy | None
        Retry policy; defaults to one attempt per endpoint
    client : httpx.Client | None
        Preconfigured HTTP client (used by tests with ``httpx.MockTransport``)

    """

    def __init__(
        self,
        endpoints: list[str],
        timeout: float = 10.0,
        retry_policy: RetryPolicy | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        if not endpoints:
            msg = "At least one RPC endpoint is required"
            raise ValueError(msg)
        self.endpoints = list(endpoints)
        self._index = 0
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self.client = client or httpx.Client(timeout=timeout)
        self.retry_manager = RetryManager(
            self,
            retry_policy or RetryPolicy(RetryConfig(max_attempts=len(self.endpoints), base_delay=0.5)),
        )

    @property
    def current_endpoint(self) -> str:
        with self._lock:
            return self.endpoints[self._index]

    def rotate_endpoint(self) -> str:
        """
        Switch to the next endpoint.

        Returns
        -------
        str
            The new current endpoint

        """
        with self._lock:
            self._index = (self._index + 1) % len(self.endpoints)
            endpoint = self.endpoints[self._index]
        logger.debug("Rotated RPC endpoint to %s", endpoint)
        return endpoint

    def make_request(self, method: str, params: list[Any]) -> Any:
        """
        Make a single JSON-RPC request against the current endpoint.

        Parameters
        ----------
        method : str
            RPC method name (e.g., 'eth_call', 'eth_getLogs')
        params : list[Any]
            Method parameters

        Returns
        -------
        Any
            The ``result`` member of the response

        Raises
        ------
        ProviderUnavailable
            On network failure, timeout, non-2xx status or JSON-RPC error
        NotFound
            If the call reverted; never retried
        MalformedResponse
            If the body is not a JSON-RPC response

        """
        endpoint = self.current_endpoint
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        try:
            response = self.client.post(endpoint, json=payload)
            response.raise_for_status()
            body = response.json()
        except httpx.TimeoutException as e:
            msg = f"RPC timeout on {endpoint}: {e}"
            raise ProviderUnavailable(msg, provider="rpc") from e
        except httpx.HTTPStatusError as e:
            msg = f"RPC HTTP error {e.response.status_code} on {endpoint}"
            raise ProviderUnavailable(msg, provider="rpc", status_code=e.response.status_code) from e
        except httpx.HTTPError as e:
            msg = f"RPC request to {endpoint} failed: {e}"
            raise ProviderUnavailable(msg, provider="rpc") from e
        except ValueError as e:
            msg = f"RPC response from {endpoint} is not JSON"
            raise MalformedResponse(msg, provider="rpc") from e

        if not isinstance(body, dict):
            msg = f"Unexpected RPC response shape from {endpoint}"
            raise MalformedResponse(msg, provider="rpc")
        if body.get("error"):
            error = body["error"]
            message = error.get("message", error) if isinstance(error, dict) else error
            if is_revert(error):
                msg = f"Call reverted on {endpoint}: {message}"
                raise NotFound(msg, provider="rpc")
            msg = f"RPC error from {endpoint}: {message}"
            raise ProviderUnavailable(msg, provider="rpc")
        if "result" not in body:
            msg = f"RPC response from {endpoint} has no result"
            raise MalformedResponse(msg, provider="rpc")
        return body["result"]

    def request(self, method: str, params: list[Any]) -> Any:
        """Make a request, rotating endpoints and retrying on failure."""
        return self.retry_manager.execute_with_retry(method, params)

    def eth_call(self, to: str, data: str, block: str = "latest") -> str:
        """
        Execute a read-only contract call.

        Parameters
        ----------
        to : str
            Contract address
        data : str
            Hex-encoded calldata
        block : str
            Block tag

        Returns
        -------
        str
            Hex-encoded return data

        """
        return self.request("eth_call", [{"to": to, "data": data}, block])

    def get_balance(self, address: str, block: str = "latest") -> int:
        """Get the native balance of ``address`` in wei."""
        return parse_quantity(self.request("eth_getBalance", [address, block]), "eth_getBalance")

    def block_number(self) -> int:
        """Get the latest block number."""
        return parse_quantity(self.request("eth_blockNumber", []), "eth_blockNumber")

    def get_logs(self, filter_params: dict[str, Any]) -> list[dict[str, Any]]:
        """
        Query event logs.

        Parameters
        ----------
        filter_params : dict[str, Any]
            ``eth_getLogs`` filter object

        Returns
        -------
        list[dict[str, Any]]
            Raw log objects

        """
        result = self.request("eth_getLogs", [filter_params])
        return result or []

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self.client.close()

    def __enter__(self) -> "MultiRPCProvider":
        """Context manager entry."""
        return self

    def __exit__(self, exc_type: type, exc_val: Exception, exc_tb: object) -> None:
        """Context manager exit."""
        self.close()
