"""TeamSpeak ServerQuery presence bridge.

Keeps one resilient query session open, reports clients joining the
server to chat groups and answers "who is on TeamSpeak?" commands.
"""

from .config import BridgeConfig, load_config
from .connection import ConnectionManager, ConnectionState
from .deadline import RaceOutcome, race, with_deadline
from .executor import RetryExecutor, RetryOutcome
from .runtime import BridgeRuntime

__version__ = "0.1.0"

__all__ = [
    "BridgeConfig",
    "BridgeRuntime",
    "ConnectionManager",
    "ConnectionState",
    "RaceOutcome",
    "RetryExecutor",
    "RetryOutcome",
    "load_config",
    "race",
    "with_deadline",
]
