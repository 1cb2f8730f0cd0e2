"""HEX staking handler."""

from pulse_portfolio_tracker.core.registry import ContractKind, ProtocolRegistry
from pulse_portfolio_tracker.protocols.base import BaseProtocolHandler


@ProtocolRegistry.register
class HexHandler(BaseProtocolHandler):
    """
    Handler for HEX stakes.

    HEX staking happens on the token contract itself. Its start/end selectors
    take precedence over the generic stake/withdraw selectors.

    """

    name = "hex"
    display_name = "HEX"
    kind = ContractKind.STAKING

    stake_selectors = {
        "0x93fa31f1": "Start HEX Stake",
        "0xd9a99b82": "Start HEX Stake",
    }
    unstake_selectors = {
        "0x835c15c5": "End HEX Stake",
        "0x3aa3e5f3": "HEX Good Accounting",
        "0x9bdd9b38": "Early End HEX Stake",
    }
