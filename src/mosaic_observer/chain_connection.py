"""
Connection to one chain's node.

A ChainConnection owns the JSON-RPC handle, the validator account and its
credential, the polling cadence and the chain's reactor registry. Its main
job is ``stream_blocks``: turning "new block hashes" from a node-side filter
into a continuous stream of fully populated domain blocks.
"""

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Any

from aiohttp import ClientTimeout
from hexbytes import HexBytes
from web3 import AsyncWeb3, Web3
from web3.contract import AsyncContract
from web3.types import FilterParams, RPCEndpoint

from .block_converter import convert_block, to_native_block_number
from .credentials import Credential, CredentialProvider, prompt_credential
from .errors import ChainConnectionError, ConversionError, DecodeError, ErrorKind, PipelineError
from .models import Address, Block, Signature, to_address

if TYPE_CHECKING:
    from .event_handler import EventHandler
    from .reactor import Reactor
    from .scheduler import Scheduler

logger = logging.getLogger(__name__)


class ChainConnection:
    """
    A live relationship with one chain's node.

    The credential and RPC handle are read-only after construction. The
    reactor registry is append-only; ``notify_reactors`` iterates a snapshot
    so a reactor registered while a block is being dispatched is picked up
    from the next block on.
    """

    DEFAULT_MAX_POLL_FAILURES = 10

    def __init__(
        self,
        name: str,
        w3: AsyncWeb3,
        validator: str,
        credential: Credential,
        polling_interval: float,
        scheduler: "Scheduler",
        max_poll_failures: int = DEFAULT_MAX_POLL_FAILURES,
    ) -> None:
        """
        Initialize the connection around an existing web3 handle.

        Args:
            name: Chain name used in log messages (e.g. "origin")
            w3: AsyncWeb3 instance connected to the chain's node
            validator: Address of the validator account
            credential: Password to unlock the validator account
            polling_interval: Seconds between two polls for new blocks
            scheduler: Scheduler handed to reactors for spawning work
            max_poll_failures: Consecutive failed polls after which the block stream gives up
        """
        if polling_interval < 0:
            raise ValueError(f"Polling interval must not be negative, got {polling_interval}")
        if max_poll_failures <= 0:
            raise ValueError(f"Max poll failures must be positive, got {max_poll_failures}")

        self.name = name
        self.w3 = w3
        self.validator: Address = to_address(validator)
        self._credential = credential
        self.polling_interval = polling_interval
        self.scheduler = scheduler
        self.max_poll_failures = max_poll_failures
        self._reactors: list["Reactor"] = []

    @classmethod
    async def connect(
        cls,
        name: str,
        endpoint: str,
        validator: str,
        polling_interval: float,
        scheduler: "Scheduler",
        credential_provider: CredentialProvider = prompt_credential,
        request_timeout: int = 30,
        max_poll_failures: int = DEFAULT_MAX_POLL_FAILURES,
    ) -> "ChainConnection":
        """
        Open a connection to the node at ``endpoint`` and acquire the validator credential.

        Any failure here is a bootstrap failure; callers are expected to abort.

        Raises:
            ChainConnectionError: If the node is unreachable
            ValueError: If the validator address is invalid
        """
        validator_address = to_address(validator)
        logger.debug(f"Connecting to {name} chain at {endpoint}")
        w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(
            endpoint,
            request_kwargs={"timeout": ClientTimeout(total=request_timeout)}
        ))

        try:
            connected = await w3.is_connected()
            chain_id = await w3.eth.chain_id if connected else None
        except Exception as e:
            raise ChainConnectionError(f"Failed to connect to {name} chain at {endpoint}", chain=name) from e
        if not connected:
            raise ChainConnectionError(f"Failed to connect to {name} chain at {endpoint}", chain=name)

        credential = credential_provider(name, validator_address)
        logger.info(f"Connected to {name} chain {chain_id} at {endpoint} as validator {validator_address}")

        return cls(
            name=name,
            w3=w3,
            validator=validator_address,
            credential=credential,
            polling_interval=polling_interval,
            scheduler=scheduler,
            max_poll_failures=max_poll_failures,
        )

    async def close(self) -> None:
        """Release the transport's HTTP sessions."""
        provider = self.w3.provider
        if hasattr(provider, "disconnect"):
            await provider.disconnect()

    def __repr__(self) -> str:
        return f"ChainConnection(name={self.name!r}, validator={self.validator}, reactors={len(self._reactors)})"

    # Block stream

    async def stream_blocks(self, event_handler: "EventHandler") -> AsyncIterator[Block | PipelineError]:
        """
        Stream new blocks of this chain with their events attached.

        A block filter is created once, then polled every ``polling_interval``
        seconds. Every new block hash yields exactly one item, in the order
        the node reported the hashes: either a ``Block`` whose events were
        decoded from its logs by ``event_handler``, or a ``PipelineError``
        describing why that block could not be built. Per-block failures
        never end the stream.

        The stream ends only by raising, when the filter cannot be created or
        ``max_poll_failures`` polls in a row have failed.

        Args:
            event_handler: Converts raw logs into events

        Yields:
            A ``Block`` or a ``PipelineError`` per new block hash

        Raises:
            PipelineError: If the node-side block filter is unusable
        """
        try:
            block_filter = await self.w3.eth.filter("latest")
        except Exception as e:
            raise self._pipeline_error(
                ErrorKind.NODE_ERROR, "Was not able to create block filter", "filter", e
            ) from e
        logger.info(f"[{self.name}] Streaming blocks every {self.polling_interval}s")

        failed_polls = 0
        while True:
            await asyncio.sleep(self.polling_interval)
            try:
                block_hashes = await block_filter.get_new_entries()
            except Exception as e:
                failed_polls += 1
                if failed_polls >= self.max_poll_failures:
                    raise self._pipeline_error(
                        ErrorKind.NODE_ERROR,
                        f"Polling for new blocks failed {failed_polls} times in a row",
                        "poll",
                        e,
                    ) from e
                logger.warning(
                    f"[{self.name}] Error while polling for new blocks "
                    f"({failed_polls}/{self.max_poll_failures}): {e}"
                )
                continue

            failed_polls = 0
            for block_hash in block_hashes:
                yield await self._build_block(block_hash, event_handler)

    async def _build_block(self, block_hash: Any, event_handler: "EventHandler") -> Block | PipelineError:
        """Fetch, convert and populate one block. Failures are returned, not raised."""
        block_hash_hex = HexBytes(block_hash).to_0x_hex()

        try:
            raw_block = await self.w3.eth.get_block(block_hash)
        except Exception as e:
            return self._pipeline_error(
                ErrorKind.NODE_ERROR, f"Was not able to retrieve block {block_hash_hex}", "fetch_block", e
            )
        if raw_block is None:
            return self._pipeline_error(ErrorKind.NODE_ERROR, f"No block found for {block_hash_hex}", "fetch_block")

        try:
            block = convert_block(raw_block)
            block_number = to_native_block_number(block.number)
        except (ConversionError, OverflowError, ValueError) as e:
            return self._pipeline_error(
                ErrorKind.INVALID_BLOCK, f"Could not convert block {block_hash_hex}", "convert", e
            )

        # Logs of exactly this block, so nothing is scanned twice.
        log_filter: FilterParams = {"fromBlock": block_number, "toBlock": block_number}
        try:
            logs = await self.w3.eth.get_logs(log_filter)
        except Exception as e:
            return self._pipeline_error(
                ErrorKind.NODE_ERROR, f"Error while retrieving logs of block {block_number}", "fetch_logs", e
            )

        for log in logs:
            try:
                event = event_handler.log_into_event(log)
            except DecodeError as e:
                logger.warning(f"[{self.name}] Was not able to convert a log into an event: {e}")
                continue
            except Exception as e:
                logger.warning(
                    f"[{self.name}] Event handler failed on log {log.get('logIndex')} "
                    f"of block {block_number}: {e}",
                    exc_info=True
                )
                continue
            # None means the log matched no known event.
            if event is not None:
                block.events.append(event)

        return block

    def _pipeline_error(
        self, kind: ErrorKind, message: str, stage: str, cause: BaseException | None = None
    ) -> PipelineError:
        error = PipelineError(kind, message, stage=stage, chain=self.name)
        error.__cause__ = cause
        return error

    # Accounts and contracts

    async def get_accounts(self) -> list[Address]:
        """
        Retrieve the accounts the node manages.

        Raises:
            ChainConnectionError: If the node request fails
        """
        try:
            accounts = await self.w3.eth.accounts
        except Exception as e:
            raise ChainConnectionError("Was not able to retrieve accounts", chain=self.name) from e
        return [Web3.to_checksum_address(account) for account in accounts]

    async def sign(self, data: bytes) -> Signature:
        """
        Sign data with the validator account.

        The account is unlocked for a single transaction first, so every
        call consumes one unlock on the node.

        Args:
            data: The data to sign

        Returns:
            The node's signature over ``data``

        Raises:
            ChainConnectionError: If unlocking or signing fails
        """
        await self.unlock_account(None)
        try:
            signature = await self.w3.eth.sign(self.validator, data=HexBytes(data))
        except Exception as e:
            raise ChainConnectionError("Was not able to sign data", chain=self.name) from e
        return Signature(HexBytes(signature))

    def contract_instance(self, address: str, abi: bytes | str | list[dict[str, Any]]) -> AsyncContract:
        """
        Create a contract handle bound to this connection.

        Args:
            address: Address of the contract
            abi: Contract ABI as JSON (bytes or str) or already parsed

        Returns:
            Contract instance using this connection's RPC handle

        Raises:
            ChainConnectionError: If the ABI cannot be parsed or bound
        """
        try:
            abi_entries = json.loads(abi) if isinstance(abi, (bytes, str)) else abi
            return self.w3.eth.contract(address=to_address(address), abi=abi_entries)
        except Exception as e:
            raise ChainConnectionError(f"Was not able to instantiate contract at {address}", chain=self.name) from e

    async def unlock_account(self, duration: int | None = None) -> bool:
        """
        Unlock the validator account on the node with the stored credential.

        There is no re-prompt: a wrong credential fails every unlock, which
        callers must treat as fatal for the operation at hand.

        Args:
            duration: Seconds to keep the account unlocked; None unlocks for a single transaction

        Returns:
            True once the node has unlocked the account

        Raises:
            ChainConnectionError: If the duration is negative, the node refuses or the request fails
        """
        if duration is not None and duration < 0:
            raise ChainConnectionError(f"Unlock duration must not be negative, got {duration}", chain=self.name)

        try:
            unlocked = await self.w3.manager.coro_request(
                RPCEndpoint("personal_unlockAccount"),
                [self.validator, self._credential.reveal(), duration],
            )
        except Exception as e:
            raise ChainConnectionError(
                f"Was not able to unlock account {self.validator}", chain=self.name
            ) from e

        if not unlocked:
            raise ChainConnectionError(f"Node refused to unlock account {self.validator}", chain=self.name)
        return True

    # Reactors

    def register_reactor(self, reactor: "Reactor") -> None:
        """Register a reactor. Reactors are notified in registration order; duplicates are kept."""
        self._reactors.append(reactor)

    @property
    def reactors(self) -> tuple["Reactor", ...]:
        return tuple(self._reactors)

    def notify_reactors(self, block: Block) -> None:
        """
        Hand a block to every registered reactor, in registration order.

        Errors raised by a reactor are not caught here.
        """
        for reactor in tuple(self._reactors):
            reactor.react(block, self.scheduler)
