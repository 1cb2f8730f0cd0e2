"""Base protocol handler class with common functionality."""

from typing import ClassVar

from pulse_portfolio_tracker.core.models import TransactionCategory
from pulse_portfolio_tracker.core.registry import ContractKind
from pulse_portfolio_tracker.data.loader import get_protocol_addresses


class BaseProtocolHandler:
    """
    Base class for known-contract handlers.

    Subclasses declare their identity as class attributes; contract addresses
    come from the ``protocols`` section of pulsechain.yaml.

    Attributes
    ----------
    name : str
        Unique protocol identifier (must be set in subclass)
    display_name : str
        Human-readable protocol name
    kind : ContractKind
        Router or staking contract
    stake_selectors : dict[str, str]
        Protocol-specific stake selectors mapped to labels
    unstake_selectors : dict[str, str]
        Protocol-specific unstake selectors mapped to labels

    """

    name: ClassVar[str] = ""
    display_name: ClassVar[str] = ""
    kind: ClassVar[ContractKind] = ContractKind.ROUTER
    stake_selectors: ClassVar[dict[str, str]] = {}
    unstake_selectors: ClassVar[dict[str, str]] = {}

    def __init__(self) -> None:
        if not self.name:
            msg = f"{self.__class__.__name__} must define 'name' attribute"
            raise ValueError(msg)

    def get_contract_addresses(self) -> dict[str, str]:
        """
        Get all contract addresses for this protocol.

        Returns
        -------
        dict[str, str]
            Mapping of contract names to lowercase addresses

        """
        return get_protocol_addresses(self.name)

    def matches(self, contract_address: str) -> bool:
        """
        Check if this handler owns the given contract.

        Parameters
        ----------
        contract_address : str
            Contract address to check (any casing)

        Returns
        -------
        bool
            True if the address is one of the protocol's contracts

        """
        return contract_address.lower() in self.get_contract_addresses().values()

    def selector_label(self, selector: str) -> str | None:
        """Look up a protocol-specific label for a method selector."""
        selector = selector.lower()
        return self.stake_selectors.get(selector) or self.unstake_selectors.get(selector)

    def staking_category(self, selector: str) -> TransactionCategory | None:
        """
        Map a protocol-specific selector to stake or unstake.

        Parameters
        ----------
        selector : str
            Four-byte method selector

        Returns
        -------
        TransactionCategory | None
            STAKE, UNSTAKE, or None if the selector is not protocol-specific

        """
        selector = selector.lower()
        if selector in self.stake_selectors:
            return TransactionCategory.STAKE
        if selector in self.unstake_selectors:
            return TransactionCategory.UNSTAKE
        return None
