"""
Mosaic observer package.

Observes an origin and an auxiliary chain, builds blocks with their decoded
contract events, and hands every block to the chain's registered reactors.
"""

from .block_converter import convert_block
from .chain_connection import ChainConnection
from .config import ObserverConfig
from .errors import (
    ChainConnectionError,
    ConversionError,
    DecodeError,
    ErrorKind,
    InvalidFieldError,
    MissingFieldError,
    PipelineError,
)
from .event_handler import ContractEventHandler, EventHandler
from .models import Block, Event, Signature
from .observer import Observer, run
from .reactor import Reactor
from .scheduler import Scheduler

__all__ = [
    "Block",
    "ChainConnection",
    "ChainConnectionError",
    "ContractEventHandler",
    "ConversionError",
    "DecodeError",
    "ErrorKind",
    "InvalidFieldError",
    "Event",
    "EventHandler",
    "MissingFieldError",
    "Observer",
    "ObserverConfig",
    "PipelineError",
    "Reactor",
    "Scheduler",
    "Signature",
    "convert_block",
    "run",
]
__version__ = "0.1.0"
