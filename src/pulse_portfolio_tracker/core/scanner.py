"""Recent-block Transfer log scanner for tokens the indexer missed."""

import logging

from pulse_portfolio_tracker.core.exceptions import ProviderError
from pulse_portfolio_tracker.data.addresses import TRANSFER_EVENT_TOPIC
from pulse_portfolio_tracker.rpc.provider import MultiRPCProvider

logger = logging.getLogger(__name__)


class TransferScanner:
    """
    Finds tokens a wallet recently sent or received using eth_getLogs.

    Only the last ``block_window`` blocks are scanned; archival discovery is
    left to the indexed providers.

    Parameters
    ----------
    rpc_provider : MultiRPCProvider
        RPC provider for log queries
    block_window : int
        Number of recent blocks to scan

    """

    def __init__(self, rpc_provider: MultiRPCProvider, block_window: int = 1000) -> None:
        self.rpc_provider = rpc_provider
        self.block_window = block_window

    def recent_token_addresses(self, user_address: str) -> set[str]:
        """
        Collect token contracts with Transfer events to or from the user.

        Parameters
        ----------
        user_address : str
            User wallet address

        Returns
        -------
        set[str]
            Lowercase token addresses, empty if the RPC is unavailable

        """
        try:
            latest = self.rpc_provider.block_number()
        except ProviderError as e:
            logger.warning("Recent transfer scan skipped: %s", e)
            return set()

        from_block = hex(max(0, latest - self.block_window))
        padded = self._pad_address(user_address)
        tokens: set[str] = set()

        # User as sender (topic 1) and as recipient (topic 2)
        for topics in ([TRANSFER_EVENT_TOPIC, padded], [TRANSFER_EVENT_TOPIC, None, padded]):
            try:
                logs = self.rpc_provider.get_logs({"fromBlock": from_block, "toBlock": "latest", "topics": topics})
            except ProviderError as e:
                logger.debug("Transfer log query failed: %s", e)
                continue
            for log in logs:
                address = log.get("address") if isinstance(log, dict) else None
                if address:
                    tokens.add(address.lower())

        logger.debug("Found %d tokens in the last %d blocks for %s", len(tokens), self.block_window, user_address)
        return tokens

    @staticmethod
    def _pad_address(address: str) -> str:
        """
        Pad address to 32 bytes for topic filtering.

        Parameters
        ----------
        address : str
            Address (0x prefixed)

        Returns
        -------
        str
            Padded address for use in topics

        """
        clean_addr = address.lower().replace("0x", "")
        return "0x" + clean_addr.zfill(64)
