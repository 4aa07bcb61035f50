"""Validator account credentials.

The unlock password is acquired once when a chain connection is built and
is held in memory only. It is never logged and never part of an error
message.
"""

import getpass
import logging
import os
from typing import Protocol

logger = logging.getLogger(__name__)


class Credential:
    """Password for unlocking the validator account on the node."""

    __slots__ = ("_secret",)

    def __init__(self, secret: str) -> None:
        self._secret = secret

    def reveal(self) -> str:
        """Return the raw password. Only the unlock request may use this."""
        return self._secret

    def __bool__(self) -> bool:
        return bool(self._secret)

    def __repr__(self) -> str:
        return "Credential('[SET]')" if self._secret else "Credential('[NOT SET]')"

    __str__ = __repr__


class CredentialProvider(Protocol):
    """Supplies the credential for a validator account at construction time."""

    def __call__(self, chain_name: str, address: str) -> Credential:
        ...


def prompt_credential(chain_name: str, address: str) -> Credential:
    """Ask for the validator password on the terminal without echoing it."""
    secret = getpass.getpass(f"Please enter the password for account {address} on {chain_name}: ")
    return Credential(secret)


class EnvCredentialProvider:
    """Reads the password from an environment variable, prompting if it is unset.

    Args:
        env_var: Name of the environment variable holding the password
        fallback: Provider used when the variable is not set
    """

    def __init__(self, env_var: str, fallback: CredentialProvider = prompt_credential) -> None:
        self.env_var = env_var
        self.fallback = fallback

    def __call__(self, chain_name: str, address: str) -> Credential:
        secret = os.environ.get(self.env_var)
        if secret is None:
            logger.debug(f"{self.env_var} not set, prompting for {chain_name} credential")
            return self.fallback(chain_name, address)
        logger.debug(f"Using {chain_name} credential from {self.env_var}")
        return Credential(secret)
