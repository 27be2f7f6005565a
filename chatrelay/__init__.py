"""
A single-process chat relay built on trio.

Every remote client and the local operator are participants of one event
loop; whatever one of them says is broadcast to the others.
"""

from chatrelay.config import ClientConfig, RelayConfig
from chatrelay.errors import RelayError, RelaySetupError
from chatrelay.relay import Relay

__all__ = ["ClientConfig", "Relay", "RelayConfig", "RelayError", "RelaySetupError"]
