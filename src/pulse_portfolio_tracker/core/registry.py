"""Known-contract registry with auto-registration pattern."""

from enum import StrEnum
from typing import Protocol

from pulse_portfolio_tracker.core.models import TransactionCategory


class ContractKind(StrEnum):
    """Role of a known contract in transaction classification."""

    ROUTER = "router"
    STAKING = "staking"


class ProtocolHandlerInterface(Protocol):
    """
    Interface that all protocol handlers must implement.

    Attributes
    ----------
    name : str
        Unique protocol identifier (e.g., 'pulsex', 'hex')
    display_name : str
        Name shown on classified transactions
    kind : ContractKind
        Whether the protocol's contracts are swap routers or staking contracts

    Methods
    -------
    matches(contract_address)
        Check if a contract belongs to this protocol
    selector_label(selector)
        Protocol-specific label for a method selector

    """

    name: str
    display_name: str
    kind: ContractKind

    def matches(self, contract_address: str) -> bool:
        """
        Check if this handler owns the given contract.

        Parameters
        ----------
        contract_address : str
            Contract address to check

        Returns
        -------
        bool
            True if the contract belongs to this protocol

        """
        ...

    def selector_label(self, selector: str) -> str | None:
        """
        Look up a protocol-specific method label.

        Parameters
        ----------
        selector : str
            Four-byte method selector (``0x`` prefixed, lowercase)

        Returns
        -------
        str | None
            Label, None if the selector is not specific to this protocol

        """
        ...

    def staking_category(self, selector: str) -> TransactionCategory | None:
        """Map a protocol-specific selector to stake or unstake, None otherwise."""
        ...


class ProtocolRegistry:
    """
    Registry for known-contract handlers with auto-registration.

    Handlers register themselves using the @ProtocolRegistry.register decorator.
    The classifier queries the registry for routers, staking contracts and
    protocol names.

    """

    _handlers: dict[str, type] = {}

    @classmethod
    def register(cls, handler_class: type) -> type:
        """
        Decorator to register a protocol handler.

        Parameters
        ----------
        handler_class : type
            Handler class to register

        Returns
        -------
        type
            The handler class (for decorator chaining)

        Examples
        --------
        >>> @ProtocolRegistry.register
        ... class VelocityHandler(BaseProtocolHandler):
        ...     name = "velocity"
        ...     display_name = "Velocity"
        ...     kind = ContractKind.ROUTER

        """
        if not getattr(handler_class, "name", ""):
            msg = f"Handler {handler_class.__name__} must define 'name' attribute"
            raise ValueError(msg)

        cls._handlers[handler_class.name] = handler_class
        return handler_class

    @classmethod
    def get_handler(cls, protocol_name: str) -> type | None:
        """
        Get handler class by protocol name.

        Parameters
        ----------
        protocol_name : str
            Protocol identifier

        Returns
        -------
        type | None
            Handler class or None if not found

        """
        return cls._handlers.get(protocol_name)

    @classmethod
    def get_all_handlers(cls) -> list[type]:
        """
        Get all registered handler classes.

        Returns
        -------
        list[type]
            List of all handler classes

        """
        return list(cls._handlers.values())

    @classmethod
    def get_handlers_by_kind(cls, kind: ContractKind) -> list[type]:
        """Get all handlers whose contracts play the given role."""
        return [handler_class for handler_class in cls._handlers.values() if handler_class.kind == kind]

    @classmethod
    def find_handler_for_contract(cls, contract_address: str | None) -> ProtocolHandlerInterface | None:
        """
        Find the handler that owns a contract address.

        Parameters
        ----------
        contract_address : str | None
            Contract address

        Returns
        -------
        ProtocolHandlerInterface | None
            Handler instance if found, None otherwise

        """
        if not contract_address:
            return None
        for handler_class in cls._handlers.values():
            handler = handler_class()
            if handler.matches(contract_address):
                return handler
        return None

    @classmethod
    def is_router(cls, contract_address: str | None) -> bool:
        """Check whether an address is a known swap router."""
        handler = cls.find_handler_for_contract(contract_address)
        return handler is not None and handler.kind == ContractKind.ROUTER

    @classmethod
    def is_staking_contract(cls, contract_address: str | None) -> bool:
        """Check whether an address is a known staking contract."""
        handler = cls.find_handler_for_contract(contract_address)
        return handler is not None and handler.kind == ContractKind.STAKING

    @classmethod
    def clear(cls) -> None:
        """Clear all registered handlers (useful for testing)."""
        cls._handlers.clear()

    @classmethod
    def list_protocols(cls) -> list[str]:
        """
        Get list of all registered protocol names.

        Returns
        -------
        list[str]
            List of protocol identifiers

        """
        return list(cls._handlers.keys())
