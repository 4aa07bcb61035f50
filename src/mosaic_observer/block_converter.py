"""Conversion of node block records into domain blocks."""

from collections.abc import Callable, Mapping
from typing import Any

from eth_typing import BlockNumber
from hexbytes import HexBytes
from web3 import Web3

from .errors import InvalidFieldError, MissingFieldError
from .models import Address, Block

# Nodes encode block numbers as unsigned 64 bit quantities.
MAX_NATIVE_BLOCK_NUMBER = 2**64 - 1


def _address(value: Any) -> Address | None:
    if value is None or not Web3.is_address(value):
        return None
    return Web3.to_checksum_address(value)


def _bytes(value: Any) -> HexBytes | None:
    if value is None:
        return None
    return HexBytes(value)


def _int(value: Any) -> int | None:
    match value:
        case None:
            return None
        case int():
            return value
        case str():
            return int(value, 16) if value.startswith("0x") else int(value)
        case bytes():
            return int.from_bytes(value, byteorder="big")
        case _:
            return int(value)


def _extra_data(value: Any) -> HexBytes:
    return HexBytes(value or b"")


# Block attribute, node field, coercion
_FIELDS: tuple[tuple[str, str, Callable[[Any], Any]], ...] = (
    ("parent_hash", "parentHash", _bytes),
    ("uncles_hash", "sha3Uncles", _bytes),
    ("author", "miner", _address),
    ("state_root", "stateRoot", _bytes),
    ("transactions_root", "transactionsRoot", _bytes),
    ("receipts_root", "receiptsRoot", _bytes),
    ("logs_bloom", "logsBloom", _bytes),
    ("total_difficulty", "totalDifficulty", _int),
    ("gas_limit", "gasLimit", _int),
    ("gas_used", "gasUsed", _int),
    ("timestamp", "timestamp", _int),
    ("extra_data", "extraData", _extra_data),
    ("mix_data", "mixHash", _bytes),
    ("nonce", "nonce", _int),
)


def _convert(name: str, value: Any, coerce: Callable[[Any], Any]) -> Any:
    try:
        return coerce(value)
    except (TypeError, ValueError) as e:
        raise InvalidFieldError(name, value) from e


def convert_block(raw_block: Mapping[str, Any]) -> Block:
    """Convert a node block record into a ``Block`` with no events.

    The record may miss any optional field. Only ``hash`` and ``number`` are
    mandatory; other fields are only checked to the extent they must be
    coerced into bytes or integers.

    Args:
        raw_block: Block as returned by ``eth_getBlockBy*`` (web3 ``BlockData`` or a plain mapping)

    Returns:
        The converted block

    Raises:
        MissingFieldError: If ``hash`` or ``number`` is absent
        InvalidFieldError: If a present field cannot be coerced to its type
    """
    if (block_hash := raw_block.get("hash")) is None:
        raise MissingFieldError("hash")
    if (number := raw_block.get("number")) is None:
        raise MissingFieldError("number")

    return Block(
        hash=_convert("hash", block_hash, HexBytes),
        number=_convert("number", number, _int),
        **{
            attribute: _convert(source, raw_block.get(source), coerce)
            for attribute, source, coerce in _FIELDS
        },
    )


def to_native_block_number(number: int) -> BlockNumber:
    """Narrow a block number to the node's unsigned 64 bit representation.

    Block numbers are carried as unbounded ints, but log filters take the
    node's native quantity. Real chains are many orders of magnitude below
    the limit, so values outside it are rejected rather than truncated.

    Raises:
        OverflowError: If the number does not fit into 64 unsigned bits
    """
    if not 0 <= number <= MAX_NATIVE_BLOCK_NUMBER:
        raise OverflowError(f"Block number {number} does not fit into 64 unsigned bits")
    return BlockNumber(number)
