"""PulseX DEX routers and the PulseX IFO/MAXIMUS staking contract."""

from pulse_portfolio_tracker.core.registry import ContractKind, ProtocolRegistry
from pulse_portfolio_tracker.protocols.base import BaseProtocolHandler


@ProtocolRegistry.register
class PulseXHandler(BaseProtocolHandler):
    """PulseX v1 and v2 swap routers."""

    name = "pulsex"
    display_name = "PulseX"
    kind = ContractKind.ROUTER


@ProtocolRegistry.register
class PulseXIFOHandler(BaseProtocolHandler):
    """
    PulseX IFO/MAXIMUS staking contract.

    Has no recognized selectors of its own, so the classifier infers stake
    versus unstake from the direction of token flow.

    """

    name = "pulsex_ifo"
    display_name = "PulseX IFO/MAXIMUS"
    kind = ContractKind.STAKING
