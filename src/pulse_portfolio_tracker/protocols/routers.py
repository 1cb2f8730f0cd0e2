"""Third-party swap routers deployed on PulseChain."""

from pulse_portfolio_tracker.core.registry import ContractKind, ProtocolRegistry
from pulse_portfolio_tracker.protocols.base import BaseProtocolHandler


@ProtocolRegistry.register
class VelocityHandler(BaseProtocolHandler):
    name = "velocity"
    display_name = "Velocity"
    kind = ContractKind.ROUTER


@ProtocolRegistry.register
class PLDEXHandler(BaseProtocolHandler):
    name = "pldex"
    display_name = "PLDEX"
    kind = ContractKind.ROUTER


@ProtocolRegistry.register
class ThorSwapHandler(BaseProtocolHandler):
    name = "thorswap"
    display_name = "ThorSwap"
    kind = ContractKind.ROUTER
