#!/usr/bin/env python3
"""Data models for the observer.

This module provides the domain types shared by every component: blocks,
the events extracted from their logs, and thin wrappers for addresses,
byte blobs and signatures exchanged with the node.
"""

from dataclasses import dataclass, field
from typing import Any

from eth_typing import ChecksumAddress
from hexbytes import HexBytes
from web3 import Web3

Address = ChecksumAddress
Bytes = HexBytes


def to_address(value: Any) -> Address:
    """Validate a 20-byte address and return it in checksum format.

    Args:
        value: Address as hex string or 20 bytes

    Returns:
        Checksummed address

    Raises:
        ValueError: If the value is not a valid address
    """
    if not Web3.is_address(value):
        raise ValueError(f"Invalid address: {value!r}")
    return Web3.to_checksum_address(value)


@dataclass(frozen=True, slots=True)
class Signature:
    """A signature blob as returned by the node's ``eth_sign``.

    Attributes:
        value: Raw signature bytes (r || s || v for ECDSA)
    """

    value: HexBytes

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", HexBytes(self.value))

    @property
    def r(self) -> int:
        self._require_ecdsa()
        return int.from_bytes(self.value[0:32], byteorder="big")

    @property
    def s(self) -> int:
        self._require_ecdsa()
        return int.from_bytes(self.value[32:64], byteorder="big")

    @property
    def v(self) -> int:
        self._require_ecdsa()
        return self.value[64]

    def _require_ecdsa(self) -> None:
        if len(self.value) != 65:
            raise ValueError(f"Expected a 65 byte signature, got {len(self.value)} bytes")

    def hex(self) -> str:
        return self.value.to_0x_hex()

    def __str__(self) -> str:
        return self.hex()


@dataclass(frozen=True, slots=True)
class Event:
    """A domain event decoded from one log entry of a block.

    Attributes:
        name: Name of the event in the contract ABI
        address: Contract that emitted the log
        block_number: Block the log belongs to
        transaction_hash: Transaction that emitted the log
        log_index: Position of the log within the block
        args: Decoded event arguments
    """

    name: str
    address: str
    block_number: int
    transaction_hash: str
    log_index: int
    args: dict[str, Any] = field(default_factory=dict, hash=False)

    def __str__(self) -> str:
        return f"{self.name}(log={self.log_index}, address={self.address[:10]}...)"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "name": self.name,
            "address": self.address,
            "block_number": self.block_number,
            "transaction_hash": self.transaction_hash,
            "log_index": self.log_index,
            "args": dict(self.args),
        }


@dataclass(frozen=True, slots=True)
class Block:
    """One mined block on one chain, with the events found in its logs.

    Blocks are built by the block converter with an empty ``events`` list;
    the block stream appends events in log order before handing the block
    on. Nothing mutates a block after that.

    Attributes:
        hash: Block hash
        parent_hash: Hash of the parent block
        uncles_hash: Hash of the uncles list
        author: Address of the block producer
        state_root: State trie root
        transactions_root: Transactions trie root
        receipts_root: Receipts trie root
        logs_bloom: 256 byte bloom filter of the block's logs
        total_difficulty: Total chain difficulty up to this block, if the node reports it
        number: Block number
        gas_limit: Gas limit of the block
        gas_used: Gas used by the block's transactions
        timestamp: Unix timestamp in seconds
        extra_data: Producer supplied extra data
        mix_data: Mix hash
        nonce: Proof of work nonce
        events: Events decoded from the block's logs, in log order
    """

    hash: HexBytes
    number: int
    parent_hash: HexBytes | None = None
    uncles_hash: HexBytes | None = None
    author: Address | None = None
    state_root: HexBytes | None = None
    transactions_root: HexBytes | None = None
    receipts_root: HexBytes | None = None
    logs_bloom: HexBytes | None = None
    total_difficulty: int | None = None
    gas_limit: int | None = None
    gas_used: int | None = None
    timestamp: int | None = None
    extra_data: HexBytes = field(default_factory=lambda: HexBytes(b""))
    mix_data: HexBytes | None = None
    nonce: int | None = None
    events: list[Event] = field(default_factory=list, hash=False)

    def __str__(self) -> str:
        """Human-readable string representation."""
        return (
            f"Block(number={self.number}, "
            f"hash={self.hash.to_0x_hex()[:10]}..., "
            f"timestamp={self.timestamp}, "
            f"events={len(self.events)})"
        )
