#!/usr/bin/env python3
"""Configuration management for the observer.

This module provides type-safe configuration dataclasses with validation
for observing the origin and auxiliary chains. Configuration is loaded from
environment variables with sensible defaults where appropriate.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import ClassVar
from urllib.parse import urlparse

from web3 import Web3

# Get logger for this module
logger = logging.getLogger(__name__)


def _checksum(address: str, what: str) -> str:
    if not address:
        raise ValueError(f"{what} is required")
    if not Web3.is_address(address):
        raise ValueError(f"Invalid {what}: {address}")
    return Web3.to_checksum_address(address)


@dataclass(frozen=True, slots=True)
class ContractConfig:
    """A contract whose events are extracted from every block.

    Attributes:
        address: Checksummed contract address
        abi_path: Path to a JSON file holding the contract ABI
    """

    address: str
    abi_path: str

    def __post_init__(self) -> None:
        """Validate contract configuration."""
        checksummed = _checksum(self.address, "contract address")
        if checksummed != self.address:
            object.__setattr__(self, 'address', checksummed)

        if not self.abi_path:
            raise ValueError(f"ABI path is required for contract {self.address}")
        if not Path(self.abi_path).is_file():
            raise ValueError(f"ABI file not found for contract {self.address}: {self.abi_path}")

    @classmethod
    def parse(cls, entry: str) -> "ContractConfig":
        """Parse an ``address=abi_path`` entry."""
        address, sep, abi_path = entry.strip().partition("=")
        if not sep:
            raise ValueError(f"Invalid contract entry {entry!r}, expected address=abi_path")
        return cls(address=address.strip(), abi_path=abi_path.strip())


@dataclass(frozen=True, slots=True)
class ChainConfig:
    """Configuration for one observed chain.

    Attributes:
        name: Chain name used in logs ("origin" or "auxiliary")
        rpc_url: HTTP(S) RPC endpoint of the chain's node
        validator_address: Checksummed address of the validator account on the node
        contracts: Contracts whose events are decoded from the chain's logs
        password_env: Environment variable holding the validator password (prompted if unset)
    """

    name: str
    rpc_url: str
    validator_address: str
    contracts: tuple[ContractConfig, ...] = ()
    password_env: str = ""

    SUPPORTED_SCHEMES: ClassVar[tuple[str, ...]] = ('http', 'https')

    def __post_init__(self) -> None:
        """Validate chain configuration."""
        if not self.rpc_url:
            raise ValueError(f"RPC URL is required for the {self.name} chain")

        parsed = urlparse(self.rpc_url)
        if parsed.scheme not in self.SUPPORTED_SCHEMES:
            raise ValueError(
                f"Invalid RPC URL scheme for the {self.name} chain: {parsed.scheme}. "
                "Expected http or https"
            )

        checksummed = _checksum(self.validator_address, f"{self.name} validator address")
        if checksummed != self.validator_address:
            object.__setattr__(self, 'validator_address', checksummed)

    @classmethod
    def from_env(cls, name: str, prefix: str) -> "ChainConfig":
        """Load one chain's configuration from ``<PREFIX>_*`` environment variables.

        Raises:
            ValueError: If required environment variables are missing or invalid
        """
        rpc_url = os.environ.get(f"{prefix}_RPC_URL", "")
        if not rpc_url:
            raise ValueError(
                f"{prefix}_RPC_URL environment variable is required. "
                "Example: http://localhost:8545"
            )

        validator_address = os.environ.get(f"{prefix}_VALIDATOR_ADDRESS", "")
        if not validator_address:
            raise ValueError(
                f"{prefix}_VALIDATOR_ADDRESS environment variable is required. "
                "This is the validator account unlocked on the node for signing"
            )

        contracts_env = os.environ.get(f"{prefix}_CONTRACTS", "")
        contracts = tuple(
            ContractConfig.parse(entry) for entry in contracts_env.split(",") if entry.strip()
        )

        return cls(
            name=name,
            rpc_url=rpc_url,
            validator_address=validator_address,
            contracts=contracts,
            password_env=f"{prefix}_PASSWORD",
        )


@dataclass(frozen=True, slots=True)
class MonitoringConfig:
    """Configuration for block polling."""
    polling_interval: float = 1.0  # seconds between polls for new blocks
    request_timeout: int = 30  # HTTP request timeout in seconds
    max_poll_failures: int = 10  # consecutive failed polls before a block stream gives up

    def __post_init__(self) -> None:
        """Validate monitoring configuration."""
        if self.polling_interval <= 0:
            raise ValueError(f"Polling interval must be positive, got {self.polling_interval}")
        if self.polling_interval > 300:
            raise ValueError(f"Polling interval too long (max 300s), got {self.polling_interval}")

        if self.request_timeout <= 0:
            raise ValueError(f"Request timeout must be positive, got {self.request_timeout}")
        if self.request_timeout > 120:
            raise ValueError(f"Request timeout too long (max 120s), got {self.request_timeout}")

        if self.max_poll_failures <= 0:
            raise ValueError(f"Max poll failures must be positive, got {self.max_poll_failures}")
        if self.max_poll_failures > 1000:
            raise ValueError(f"Max poll failures too high (max 1000), got {self.max_poll_failures}")


@dataclass(frozen=True, slots=True)
class ObserverConfig:
    """Main configuration for the observer.

    Attributes:
        origin: Configuration for the origin chain
        auxiliary: Configuration for the auxiliary chain
        monitoring: Polling settings shared by both chains
    """

    origin: ChainConfig
    auxiliary: ChainConfig
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)

    @classmethod
    def from_env(cls) -> "ObserverConfig":
        """Load configuration from environment variables.

        Returns:
            ObserverConfig instance with loaded values

        Raises:
            ValueError: If required environment variables are missing or invalid
        """
        origin = ChainConfig.from_env("origin", "ORIGIN")
        auxiliary = ChainConfig.from_env("auxiliary", "AUXILIARY")

        monitoring = MonitoringConfig(
            polling_interval=float(os.environ.get("POLLING_INTERVAL", "1")),
            request_timeout=int(os.environ.get("REQUEST_TIMEOUT", "30")),
            max_poll_failures=int(os.environ.get("MAX_POLL_FAILURES", "10")),
        )

        return cls(origin=origin, auxiliary=auxiliary, monitoring=monitoring)

    def log_config(self) -> None:
        """Log the configuration in a readable format for debugging."""
        logger.info("=" * 60)
        logger.info("Observer Configuration")
        logger.info("=" * 60)

        for chain in (self.origin, self.auxiliary):
            logger.info(f"{chain.name.capitalize()} Chain:")
            logger.info(f"  RPC URL: {chain.rpc_url}")
            logger.info(f"  Validator: {chain.validator_address}")
            logger.info(f"  Password: {'[SET]' if os.environ.get(chain.password_env) else '[PROMPT]'}")
            for contract in chain.contracts:
                logger.info(f"  Contract: {contract.address} ({contract.abi_path})")

        logger.info("Monitoring Settings:")
        logger.info(f"  Polling Interval: {self.monitoring.polling_interval} seconds")
        logger.info(f"  Request Timeout: {self.monitoring.request_timeout} seconds")
        logger.info(f"  Max Poll Failures: {self.monitoring.max_poll_failures}")

        logger.info("=" * 60)
