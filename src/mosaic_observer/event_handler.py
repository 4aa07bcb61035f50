#!/usr/bin/env python3
"""Event handling: decoding raw logs into domain events.

The block stream hands every log of a block to an ``EventHandler``. A
handler answers with an ``Event`` when the log is one it knows, ``None``
when it is not, and raises ``DecodeError`` when the log looks like a known
event but cannot be decoded.
"""

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Protocol

from eth_utils import event_abi_to_log_topic
from hexbytes import HexBytes
from web3 import Web3
from web3.contract import AsyncContract

from .errors import DecodeError
from .models import Event
from .utils.contract_utility import event_abis, read_contract_abi

if TYPE_CHECKING:
    from .chain_connection import ChainConnection
    from .config import ChainConfig, ObserverConfig

# Get logger for this module
logger = logging.getLogger(__name__)


class EventHandler(Protocol):
    """Converts one raw log into zero or one domain events. Must not have side effects."""

    def log_into_event(self, log: Mapping[str, Any]) -> Event | None:
        ...


class ContractEventHandler:
    """Decodes logs emitted by registered contracts using their ABIs.

    A log is recognized by the pair (emitting address, topic0). Logs of
    other contracts, anonymous events and unknown topics yield ``None``.
    """

    def __init__(self, chain_name: str) -> None:
        self.chain_name = chain_name
        # (contract address, event topic) -> (event name, contract event)
        self._events: dict[tuple[str, HexBytes], tuple[str, Any]] = {}

    def register_contract(self, contract: AsyncContract) -> None:
        """Register every non-anonymous event of a contract.

        Args:
            contract: Contract instance from ``ChainConnection.contract_instance``
        """
        for event_abi in event_abis(list(contract.abi)):
            topic = HexBytes(event_abi_to_log_topic(event_abi))
            event_obj = getattr(contract.events, event_abi["name"])()
            self._events[(contract.address, topic)] = (event_abi["name"], event_obj)
            logger.debug(f"[{self.chain_name}] Registered {event_abi['name']} on {contract.address}")

    @property
    def event_count(self) -> int:
        return len(self._events)

    def log_into_event(self, log: Mapping[str, Any]) -> Event | None:
        """Decode a log into an ``Event``.

        Args:
            log: Log entry as returned by ``eth_getLogs``

        Returns:
            The decoded event, or None if the log matches no registered event

        Raises:
            DecodeError: If the log matches a registered event but cannot be decoded
        """
        topics = log.get("topics") or []
        address = log.get("address")
        if not topics or address is None or not Web3.is_address(address):
            return None

        registered = self._events.get((Web3.to_checksum_address(address), HexBytes(topics[0])))
        if registered is None:
            return None
        event_name, event_obj = registered

        try:
            event_data = event_obj.process_log(log)
        except Exception as e:
            raise DecodeError(
                f"Could not decode {event_name} log {log.get('logIndex')} "
                f"of block {log.get('blockNumber')}: {e}"
            ) from e

        return Event(
            name=event_data["event"],
            address=event_data["address"],
            block_number=event_data["blockNumber"],
            transaction_hash=HexBytes(event_data["transactionHash"]).to_0x_hex(),
            log_index=event_data["logIndex"],
            args=dict(event_data["args"]),
        )


def build_event_handler(chain: "ChainConfig", connection: "ChainConnection") -> ContractEventHandler:
    """Build the event handler for one chain from its configured contracts.

    Raises:
        ChainConnectionError: If a contract ABI cannot be bound
        FileNotFoundError: If an ABI file is missing
    """
    handler = ContractEventHandler(chain.name)
    for contract in chain.contracts:
        abi = read_contract_abi(contract.abi_path)
        handler.register_contract(connection.contract_instance(contract.address, abi))

    logger.info(
        f"[{chain.name}] Event handler watching {handler.event_count} events "
        f"on {len(chain.contracts)} contracts"
    )
    return handler


def origin_event_handler(config: "ObserverConfig", origin: "ChainConnection") -> ContractEventHandler:
    """Event handler for the events observed on origin."""
    return build_event_handler(config.origin, origin)


def auxiliary_event_handler(config: "ObserverConfig", auxiliary: "ChainConnection") -> ContractEventHandler:
    """Event handler for the events observed on auxiliary."""
    return build_event_handler(config.auxiliary, auxiliary)
