"""Known routers and staking contracts on PulseChain."""

# Import all handlers to trigger auto-registration
from pulse_portfolio_tracker.protocols.base import BaseProtocolHandler
from pulse_portfolio_tracker.protocols.hex import HexHandler
from pulse_portfolio_tracker.protocols.pulsex import PulseXHandler, PulseXIFOHandler
from pulse_portfolio_tracker.protocols.routers import PLDEXHandler, ThorSwapHandler, VelocityHandler

__all__ = [
    "BaseProtocolHandler",
    "HexHandler",
    "PLDEXHandler",
    "PulseXHandler",
    "PulseXIFOHandler",
    "ThorSwapHandler",
    "VelocityHandler",
]
