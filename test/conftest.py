#!/usr/bin/env python3
"""Shared fixtures and fakes for the observer tests."""

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from hexbytes import HexBytes

from mosaic_observer.chain_connection import ChainConnection
from mosaic_observer.credentials import Credential
from mosaic_observer.errors import DecodeError
from mosaic_observer.models import Event
from mosaic_observer.scheduler import Scheduler

VALIDATOR = "0x85BfE05492aFC3D04Ff3B2ca6771ACF6f853d90d"
CONTRACT = "0x742D35Cc6634C0532925A3B844bC9e7595f0bEB7"
PASSWORD = "correct horse battery staple"


def block_hash(number: int) -> HexBytes:
    """Deterministic 32 byte hash for a block number."""
    return HexBytes(number.to_bytes(32, byteorder="big"))


def make_raw_block(number: int, /, **overrides: Any) -> dict[str, Any]:
    """A node block record as web3 returns it from ``eth_getBlockByHash``."""
    raw = {
        "hash": block_hash(number),
        "parentHash": block_hash(number - 1),
        "sha3Uncles": HexBytes(b"\x1d" * 32),
        "miner": "0x" + "ab" * 20,
        "stateRoot": HexBytes(b"\x01" * 32),
        "transactionsRoot": HexBytes(b"\x02" * 32),
        "receiptsRoot": HexBytes(b"\x03" * 32),
        "logsBloom": HexBytes(b"\x00" * 256),
        "totalDifficulty": 131072,
        "number": number,
        "gasLimit": 8_000_000,
        "gasUsed": 21_000,
        "timestamp": 1_700_000_000 + number,
        "extraData": HexBytes(b"mosaic"),
        "mixHash": HexBytes(b"\x04" * 32),
        "nonce": HexBytes(b"\x00" * 7 + b"\x2a"),
    }
    raw.update(overrides)
    return raw


def make_log(block_number: int, log_index: int, kind: str = "event", name: str = "Ping") -> dict[str, Any]:
    """A log understood by ``FakeEventHandler``: kind is event, none or error."""
    return {
        "address": CONTRACT,
        "blockNumber": block_number,
        "logIndex": log_index,
        "transactionHash": HexBytes(bytes([log_index]) * 32),
        "topics": [HexBytes(b"\xee" * 32)],
        "data": HexBytes(b""),
        "kind": kind,
        "name": name,
    }


class FakeEventHandler:
    """Event handler driven by the ``kind`` key of fake logs."""

    def __init__(self) -> None:
        self.seen: list[int] = []

    def log_into_event(self, log: dict[str, Any]) -> Event | None:
        self.seen.append(log["logIndex"])
        match log["kind"]:
            case "event":
                return Event(
                    name=log["name"],
                    address=log["address"],
                    block_number=log["blockNumber"],
                    transaction_hash=log["transactionHash"].to_0x_hex(),
                    log_index=log["logIndex"],
                )
            case "none":
                return None
            case _:
                raise DecodeError(f"cannot decode log {log['logIndex']}")


class RecordingReactor:
    """Reactor that records every notification into a shared list."""

    def __init__(self, name: str, calls: list) -> None:
        self.name = name
        self.calls = calls

    def react(self, block, scheduler) -> None:
        self.calls.append((self.name, block, scheduler))


def make_w3(
    hash_batches: list | Any,
    blocks: dict[bytes, Any] | None = None,
    logs: dict[int, Any] | None = None,
) -> MagicMock:
    """
    Build a fake AsyncWeb3.

    Args:
        hash_batches: Side effect for ``get_new_entries`` (list of batches or callable)
        blocks: Block hash -> raw block, None, or an exception to raise
        logs: Block number -> list of logs or an exception to raise
    """
    blocks = blocks or {}
    logs = logs or {}

    block_filter = MagicMock()
    block_filter.get_new_entries = AsyncMock(side_effect=hash_batches)

    def get_block(requested_hash):
        value = blocks[bytes(HexBytes(requested_hash))]
        if isinstance(value, Exception):
            raise value
        return value

    def get_logs(filter_params):
        value = logs.get(filter_params["fromBlock"], [])
        if isinstance(value, Exception):
            raise value
        return value

    w3 = MagicMock()
    w3.eth.filter = AsyncMock(return_value=block_filter)
    w3.eth.get_block = AsyncMock(side_effect=get_block)
    w3.eth.get_logs = AsyncMock(side_effect=get_logs)
    return w3


def make_connection(w3: Any, name: str = "origin", scheduler: Scheduler | None = None, **kwargs: Any) -> ChainConnection:
    """A ChainConnection around a fake web3 handle that polls without delay."""
    return ChainConnection(
        name=name,
        w3=w3,
        validator=VALIDATOR,
        credential=Credential(PASSWORD),
        polling_interval=kwargs.pop("polling_interval", 0),
        scheduler=scheduler or Scheduler(),
        **kwargs,
    )


@pytest.fixture
def scheduler():
    """A fresh scheduler."""
    return Scheduler()


@pytest.fixture
def event_handler():
    """A fake event handler."""
    return FakeEventHandler()
