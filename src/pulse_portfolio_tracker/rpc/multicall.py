"""Batched ERC-20 view calls encoded with eth-abi."""

import logging
from typing import Any

from eth_abi import decode, encode

from pulse_portfolio_tracker.core.exceptions import ProviderError

logger = logging.getLogger(__name__)

# selector, argument types, return types
ERC20_METHODS: dict[str, tuple[str, list[str], list[str]]] = {
    "balanceOf": ("0x70a08231", ["address"], ["uint256"]),
    "decimals": ("0x313ce567", [], ["uint8"]),
    "symbol": ("0x95d89b41", [], ["string"]),
    "name": ("0x06fdde03", [], ["string"]),
    "token0": ("0x0dfe1681", [], ["address"]),
    "token1": ("0xd21220a7", [], ["address"]),
}

# Some older tokens return bytes32 for symbol/name.
_BYTES32_FALLBACK = {"symbol", "name"}


def encode_call(method: str, params: list[Any]) -> str:
    """
    Build calldata for a supported ERC-20 method.

    Parameters
    ----------
    method : str
        Method name (e.g., 'balanceOf')
    params : list[Any]
        Method arguments

    Returns
    -------
    str
        Hex calldata

    """
    selector, arg_types, _ = ERC20_METHODS[method]
    if not arg_types:
        return selector
    return selector + encode(arg_types, params).hex()


def decode_result(method: str, data: str) -> Any:
    """
    Decode the return data of a supported ERC-20 method.

    Parameters
    ----------
    method : str
        Method name
    data : str
        Hex-encoded return data

    Returns
    -------
    Any
        Decoded value, None when the call returned nothing

    """
    raw = bytes.fromhex(data[2:] if data.startswith("0x") else data)
    if not raw:
        return None
    _, _, return_types = ERC20_METHODS[method]
    try:
        value = decode(return_types, raw)[0]
    except Exception:
        if method not in _BYTES32_FALLBACK or len(raw) != 32:
            raise
        return raw.rstrip(b"\x00").decode("utf-8", errors="ignore")
    if isinstance(value, str) and value.startswith("0x") and return_types[0] == "address":
        return value.lower()
    return value


class MulticallBatcher:
    """
    Queues ERC-20 view calls and executes them against a JSON-RPC provider.

    Each call that fails (revert, RPC error, undecodable output) yields None
    in the result list instead of raising.

    Parameters
    ----------
    provider : Any
        RPC provider exposing ``eth_call(to, data)``

    """

    def __init__(self, provider: Any) -> None:
        self.provider = provider
        self._calls: list[dict[str, Any]] = []

    def add_call(self, contract_address: str, method: str, params: list[Any] | None = None) -> None:
        """
        Add a contract call to the batch.

        Parameters
        ----------
        contract_address : str
            Target contract address
        method : str
            Method name (one of ``ERC20_METHODS``)
        params : list[Any] | None
            Method parameters

        """
        if method not in ERC20_METHODS:
            msg = f"Unsupported method: {method}"
            raise ValueError(msg)
        self._calls.append({"address": contract_address, "method": method, "params": params or []})

    def execute(self) -> list[Any]:
        """
        Execute all queued calls.

        Returns
        -------
        list[Any]
            Results for each call in order (None if call failed)

        """
        calls, self._calls = self._calls, []
        return [self._execute_single_call(call) for call in calls]

    def _execute_single_call(self, call: dict[str, Any]) -> Any:
        try:
            data = encode_call(call["method"], call["params"])
            result = self.provider.eth_call(call["address"], data)
            return decode_result(call["method"], result or "0x")
        except ProviderError as e:
            logger.debug("%s on %s failed: %s", call["method"], call["address"], e)
        except Exception as e:
            logger.debug("Could not decode %s on %s: %s", call["method"], call["address"], e)
        return None

    def clear(self) -> None:
        """Clear all pending calls without executing."""
        self._calls = []

    @property
    def call_count(self) -> int:
        """
        Get number of calls in the batch.

        Returns
        -------
        int
            Number of pending calls

        """
        return len(self._calls)

    def read_token_metadata(self, token_address: str) -> dict[str, Any]:
        """
        Read decimals, symbol and name of a token.

        Returns
        -------
        dict[str, Any]
            Keys ``decimals``, ``symbol``, ``name``; values are None when unreadable

        """
        for method in ("decimals", "symbol", "name"):
            self.add_call(token_address, method)
        decimals, symbol, name = self.execute()
        return {"decimals": decimals, "symbol": symbol, "name": name}

    def read_balance(self, token_address: str, owner: str) -> int | None:
        """Read ``balanceOf(owner)`` on a token, None when the call fails."""
        self.add_call(token_address, "balanceOf", [owner])
        return self.execute()[0]

    def read_pair_tokens(self, token_address: str) -> tuple[str | None, str | None]:
        """Read ``token0()`` and ``token1()``; both are set only for LP pair contracts."""
        self.add_call(token_address, "token0")
        self.add_call(token_address, "token1")
        token0, token1 = self.execute()
        return token0, token1
