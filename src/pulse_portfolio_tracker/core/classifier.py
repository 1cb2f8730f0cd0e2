"""Transaction classification from selectors, known contracts and token flow."""

import logging
import threading
from collections.abc import Callable

from pulse_portfolio_tracker.core.models import (
    ClassifiedTransaction,
    RawLog,
    RawTransaction,
    TokenDetail,
    TokenMetadata,
    TransactionCategory,
    TransferDirection,
    TransferEvent,
)
from pulse_portfolio_tracker.core.native import canonical_native_identity, is_native_token
from pulse_portfolio_tracker.core.registry import ContractKind, ProtocolHandlerInterface, ProtocolRegistry
from pulse_portfolio_tracker.core.units import DEFAULT_DECIMALS, format_units, parse_decimals, parse_raw_amount
from pulse_portfolio_tracker.data.addresses import NATIVE_TOKEN_ADDRESS, TRANSFER_EVENT_TOPIC
from pulse_portfolio_tracker.data.loader import get_method_selectors

logger = logging.getLogger(__name__)

UNKNOWN_SYMBOL = "UNKNOWN"

# ERC-20 transfer/transferFrom; never inferred as staking even on a staking contract
TOKEN_TRANSFER_SELECTORS = frozenset({"0xa9059cbb", "0x23b872dd"})

DEFAULT_LABELS = {
    TransactionCategory.APPROVAL: "Approve",
    TransactionCategory.LIQUIDITY_ADD: "Add Liquidity",
    TransactionCategory.LIQUIDITY_REMOVE: "Remove Liquidity",
    TransactionCategory.STAKE: "Stake",
    TransactionCategory.UNSTAKE: "Unstake",
    TransactionCategory.SWAP: "Swap",
    TransactionCategory.SEND: "Send",
    TransactionCategory.RECEIVE: "Receive",
    TransactionCategory.CONTRACT: "Contract Interaction",
    TransactionCategory.UNKNOWN: "Unknown",
}


def method_selector(input_data: str | None) -> str | None:
    """Return the lowercase four-byte selector of ``input_data``, None for plain transfers."""
    if not input_data or len(input_data) < 10 or not input_data.startswith("0x"):
        return None
    return input_data[:10].lower()


def is_meaningful_label(label: str | None) -> bool:
    return bool(label) and "unknown" not in label.lower()


def topic_to_address(topic: str) -> str:
    """Take the low 20 bytes of a 32-byte topic as an address."""
    body = topic[2:] if topic.startswith("0x") else topic
    if len(body) != 64:
        msg = f"Topic is not 32 bytes: {topic!r}"
        raise ValueError(msg)
    return "0x" + body[-40:].lower()


def decode_transfer_log(log: RawLog) -> tuple[str, str, str, int] | None:
    """
    Decode an ERC-20 ``Transfer(address,address,uint256)`` log.

    Parameters
    ----------
    log : RawLog
        Undecoded log

    Returns
    -------
    tuple[str, str, str, int] | None
        (token, from, to, value), None if the log is not a well-formed
        ERC-20 Transfer (ERC-721 transfers carry a fourth topic and are skipped)

    """
    if len(log.topics) != 3 or log.topics[0].lower() != TRANSFER_EVENT_TOPIC:
        return None
    try:
        sender = topic_to_address(log.topics[1])
        recipient = topic_to_address(log.topics[2])
        data = log.data[2:] if log.data.startswith("0x") else log.data
        if len(data) != 64:
            return None
        value = int(data, 16)
    except ValueError:
        return None
    return log.address.lower(), sender, recipient, value


def direction_for(wallet: str, sender: str, recipient: str) -> TransferDirection:
    if sender == wallet and recipient == wallet:
        return TransferDirection.SELF
    if sender == wallet:
        return TransferDirection.OUTGOING
    if recipient == wallet:
        return TransferDirection.INCOMING
    return TransferDirection.UNRELATED


class TokenMetadataResolver:
    """
    Memoizing metadata lookup that never fails.

    Parameters
    ----------
    fetch : Callable[[str], TokenMetadata | None] | None
        Upstream lookup, usually ``ProviderGateway.fetch_token_metadata``

    """

    def __init__(self, fetch: Callable[[str], TokenMetadata | None] | None = None) -> None:
        self._fetch = fetch
        self._known: dict[str, TokenMetadata] = {}
        self._lock = threading.Lock()

    def resolve(self, token_address: str) -> TokenMetadata:
        """
        Get token metadata, degrading to 18 decimals and symbol ``UNKNOWN``.

        Parameters
        ----------
        token_address : str
            Token address

        Returns
        -------
        TokenMetadata
            Metadata, possibly the degraded default

        """
        key = token_address.lower()
        if is_native_token(key):
            return TokenMetadata(**canonical_native_identity())
        with self._lock:
            known = self._known.get(key)
        if known is not None:
            return known

        metadata = None
        if self._fetch is not None:
            try:
                metadata = self._fetch(key)
            except Exception as e:
                logger.debug("Metadata lookup for %s failed: %s", key, e)
        if metadata is None:
            metadata = TokenMetadata(address=key, symbol=UNKNOWN_SYMBOL, decimals=DEFAULT_DECIMALS)
        else:
            with self._lock:
                self._known[key] = metadata
        return metadata


class TransactionClassifier:
    """
    Assigns a category, label and token legs to raw transactions.

    Checks run in a fixed order because the raw signals overlap: approval,
    liquidity, staking, swap, then a directional fallback.

    Parameters
    ----------
    metadata_resolver : TokenMetadataResolver | None
        Resolver for tokens whose transfers lack symbol/decimals
    registry : type[ProtocolRegistry]
        Known-contract registry

    """

    def __init__(
        self,
        metadata_resolver: TokenMetadataResolver | None = None,
        registry: type[ProtocolRegistry] = ProtocolRegistry,
    ) -> None:
        self.metadata_resolver = metadata_resolver or TokenMetadataResolver()
        self.registry = registry
        self.approval_selectors = get_method_selectors("approval")
        self.add_liquidity_selectors = get_method_selectors("add_liquidity")
        self.remove_liquidity_selectors = get_method_selectors("remove_liquidity")
        self.stake_selectors = get_method_selectors("stake")
        self.unstake_selectors = get_method_selectors("unstake")
        self.swap_selectors = get_method_selectors("swap")

    def classify_many(self, transactions: list[RawTransaction], wallet_address: str) -> list[ClassifiedTransaction]:
        """Classify every transaction of a page, preserving order."""
        return [self.classify(tx, wallet_address) for tx in transactions]

    def classify(self, tx: RawTransaction, wallet_address: str) -> ClassifiedTransaction:
        """
        Classify one transaction.

        A failure while classifying yields category ``unknown`` for this
        transaction only.

        Parameters
        ----------
        tx : RawTransaction
            Transaction as received from a provider (not modified)
        wallet_address : str
            Wallet whose point of view determines direction

        Returns
        -------
        ClassifiedTransaction
            Classified view wrapping ``tx``

        """
        try:
            return self._classify(tx, wallet_address.lower())
        except Exception as e:
            logger.warning("Could not classify %s: %s", tx.hash, e)
            return ClassifiedTransaction(
                transaction=tx,
                category=TransactionCategory.UNKNOWN,
                method_label=tx.method_label if is_meaningful_label(tx.method_label) else "Unknown",
                error=str(e),
            )

    def _classify(self, tx: RawTransaction, wallet: str) -> ClassifiedTransaction:
        selector = method_selector(tx.input)
        handler = self.registry.find_handler_for_contract(tx.to_address)
        events = self.extract_transfers(tx, wallet)
        sent = [self._detail(e) for e in events if e.direction == TransferDirection.OUTGOING]
        received = [self._detail(e) for e in events if e.direction == TransferDirection.INCOMING]

        category, label = self._categorize(tx, wallet, selector, handler, events, sent, received)
        return ClassifiedTransaction(
            transaction=tx,
            category=category,
            method_label=label,
            sent=sent,
            received=received,
            protocol_name=handler.display_name if handler else None,
        )

    def _categorize(
        self,
        tx: RawTransaction,
        wallet: str,
        selector: str | None,
        handler: ProtocolHandlerInterface | None,
        events: list[TransferEvent],
        sent: list[TokenDetail],
        received: list[TokenDetail],
    ) -> tuple[TransactionCategory, str]:
        upstream = tx.method_label if is_meaningful_label(tx.method_label) else None

        # 1. Approval
        if selector in self.approval_selectors or (upstream and "approv" in upstream.lower()):
            return TransactionCategory.APPROVAL, upstream or self.approval_selectors.get(selector, "Approve")

        # 2. Liquidity
        if selector in self.add_liquidity_selectors:
            base = upstream or self.add_liquidity_selectors[selector]
            return TransactionCategory.LIQUIDITY_ADD, self._with_symbols(base, sent or received)
        if selector in self.remove_liquidity_selectors:
            base = upstream or self.remove_liquidity_selectors[selector]
            return TransactionCategory.LIQUIDITY_REMOVE, self._with_symbols(base, received or sent)

        # 3. Staking: protocol selectors, then generic ones, then flow asymmetry
        if selector and handler is not None:
            category = handler.staking_category(selector)
            if category is not None:
                return category, handler.selector_label(selector) or DEFAULT_LABELS[category]
        if selector in self.stake_selectors:
            return TransactionCategory.STAKE, upstream or self.stake_selectors[selector]
        if selector in self.unstake_selectors:
            return TransactionCategory.UNSTAKE, upstream or self.unstake_selectors[selector]
        if handler is not None and handler.kind == ContractKind.STAKING and selector not in TOKEN_TRANSFER_SELECTORS:
            incoming = sum(1 for e in events if e.direction == TransferDirection.INCOMING)
            outgoing = sum(1 for e in events if e.direction == TransferDirection.OUTGOING)
            if incoming > outgoing:
                return TransactionCategory.UNSTAKE, upstream or DEFAULT_LABELS[TransactionCategory.UNSTAKE]
            if outgoing > incoming:
                return TransactionCategory.STAKE, upstream or DEFAULT_LABELS[TransactionCategory.STAKE]

        # 4. Swap
        is_router = handler is not None and handler.kind == ContractKind.ROUTER
        if (is_router or selector in self.swap_selectors) and sent and received:
            out_leg, in_leg = sent[0], received[0]
            label = f"Swap {out_leg.amount_formatted} {out_leg.symbol} for {in_leg.amount_formatted} {in_leg.symbol}"
            return TransactionCategory.SWAP, label

        # 5. Direction
        if any(e.from_address == wallet for e in events):
            return TransactionCategory.SEND, upstream or DEFAULT_LABELS[TransactionCategory.SEND]
        if any(e.to_address == wallet for e in events):
            return TransactionCategory.RECEIVE, upstream or DEFAULT_LABELS[TransactionCategory.RECEIVE]
        if tx.to_address and (selector or tx.from_address == wallet):
            label = upstream or self.swap_selectors.get(selector or "") or DEFAULT_LABELS[TransactionCategory.CONTRACT]
            return TransactionCategory.CONTRACT, label
        return TransactionCategory.UNKNOWN, upstream or DEFAULT_LABELS[TransactionCategory.UNKNOWN]

    @staticmethod
    def _with_symbols(label: str, legs: list[TokenDetail]) -> str:
        symbols = list(dict.fromkeys(leg.symbol for leg in legs if leg.symbol != UNKNOWN_SYMBOL))
        if not symbols:
            return label
        return f"{label} {'/'.join(symbols)}"

    def extract_transfers(self, tx: RawTransaction, wallet_address: str) -> list[TransferEvent]:
        """
        Collect token and native transfers of a transaction.

        Token transfers come pre-decoded from the provider when available,
        otherwise they are decoded from raw Transfer logs; malformed entries
        are skipped. Native movements come from the provider's native
        transfer list or, failing that, from the transaction value.

        Parameters
        ----------
        tx : RawTransaction
            Transaction
        wallet_address : str
            Wallet address (lowercase)

        Returns
        -------
        list[TransferEvent]
            Transfers with their direction relative to the wallet

        """
        wallet = wallet_address.lower()
        events: list[TransferEvent] = []

        if tx.token_transfers:
            for transfer in tx.token_transfers:
                if not transfer.token_address or not transfer.from_address or not transfer.to_address:
                    continue
                try:
                    raw_value = parse_raw_amount(transfer.value)
                except ValueError:
                    logger.debug("Skipping transfer with invalid value in %s", tx.hash)
                    continue
                symbol, name, decimals = transfer.token_symbol, transfer.token_name, transfer.token_decimals
                if not symbol or decimals is None:
                    metadata = self.metadata_resolver.resolve(transfer.token_address)
                    symbol = symbol or metadata.symbol
                    name = name or metadata.name
                    decimals = metadata.decimals if decimals is None else decimals
                events.append(
                    self._event(
                        transfer.token_address,
                        transfer.from_address,
                        transfer.to_address,
                        raw_value,
                        wallet,
                        symbol,
                        name,
                        decimals,
                    )
                )
        else:
            for log in tx.logs:
                decoded = decode_transfer_log(log)
                if decoded is None:
                    continue
                token, sender, recipient, raw_value = decoded
                metadata = self.metadata_resolver.resolve(token)
                events.append(
                    self._event(
                        token, sender, recipient, raw_value, wallet, metadata.symbol, metadata.name, metadata.decimals
                    )
                )

        native = canonical_native_identity()
        if tx.native_transfers:
            native_moves = [(n.from_address, n.to_address, n.value) for n in tx.native_transfers]
        else:
            native_moves = [(tx.from_address, tx.to_address or "", tx.value)]
        for sender, recipient, value in native_moves:
            try:
                raw_value = parse_raw_amount(value)
            except ValueError:
                continue
            if raw_value <= 0 or not sender or not recipient:
                continue
            events.append(
                self._event(
                    NATIVE_TOKEN_ADDRESS,
                    sender,
                    recipient,
                    raw_value,
                    wallet,
                    native["symbol"],
                    native["name"],
                    native["decimals"],
                )
            )
        return events

    @staticmethod
    def _event(
        token: str,
        sender: str,
        recipient: str,
        raw_value: int,
        wallet: str,
        symbol: str | None,
        name: str | None,
        decimals: int | None,
    ) -> TransferEvent:
        sender, recipient = sender.lower(), recipient.lower()
        return TransferEvent(
            token_address=token.lower(),
            from_address=sender,
            to_address=recipient,
            raw_value=raw_value,
            direction=direction_for(wallet, sender, recipient),
            symbol=symbol or UNKNOWN_SYMBOL,
            name=name,
            decimals=parse_decimals(decimals),
        )

    @staticmethod
    def _detail(event: TransferEvent) -> TokenDetail:
        return TokenDetail(
            address=event.token_address,
            symbol=event.symbol,
            name=event.name,
            amount=str(event.raw_value),
            amount_formatted=format_units(event.raw_value, event.decimals),
            decimals=event.decimals,
        )
