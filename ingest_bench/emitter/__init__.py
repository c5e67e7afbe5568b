from .emitter import SignalEmitter
from .ticker import Ticker

__all__ = ["SignalEmitter", "Ticker"]
