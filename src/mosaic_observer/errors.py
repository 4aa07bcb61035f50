"""Error taxonomy for the observer.

Per-block failures are represented as values (``PipelineError`` items in a
block stream) so that a single bad block never terminates observation.
Account, signing and contract failures raise ``ChainConnectionError``.
"""

from enum import Enum


class ErrorKind(Enum):
    """Kind of failure, independent of the stage it happened in."""
    NODE_ERROR = "node_error"
    INVALID_BLOCK = "invalid_block"


class ObserverError(Exception):
    """Base class for all observer errors."""


class ConversionError(ObserverError):
    """A node block record could not be converted into a ``Block``."""


class MissingFieldError(ConversionError):
    """A mandatory field is absent from the node block record."""

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"Block has no {field}")


class InvalidFieldError(ConversionError):
    """A field of the node block record has a value that cannot be converted."""

    def __init__(self, field: str, value: object) -> None:
        self.field = field
        super().__init__(f"Block field {field} has an invalid value: {value!r}")


class DecodeError(ObserverError):
    """An event handler matched a log but could not decode it."""


class PipelineError(ObserverError):
    """A single item of a block stream failed.

    Attributes:
        kind: NODE_ERROR for transport failures, INVALID_BLOCK for conversion failures
        stage: Pipeline stage that failed (poll, fetch_block, convert, fetch_logs)
        chain: Name of the chain the stream belongs to
    """

    def __init__(self, kind: ErrorKind, message: str, stage: str, chain: str = "") -> None:
        self.kind = kind
        self.message = message
        self.stage = stage
        self.chain = chain
        super().__init__(message)

    def __str__(self) -> str:
        text = f"[{self.chain or '?'}:{self.stage}] {self.message}"
        if self.__cause__ is not None:
            text += f": {self.__cause__}"
        return text


class ChainConnectionError(ObserverError):
    """A node operation outside the block stream failed (accounts, sign, unlock, contract)."""

    kind = ErrorKind.NODE_ERROR

    def __init__(self, message: str, chain: str = "") -> None:
        self.message = message
        self.chain = chain
        super().__init__(message)

    def __str__(self) -> str:
        text = f"[{self.chain or '?'}] {self.message}"
        if self.__cause__ is not None:
            text += f": {self.__cause__}"
        return text
