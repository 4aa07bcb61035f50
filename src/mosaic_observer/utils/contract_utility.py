import json
from pathlib import Path
from typing import Any


def read_contract_abi(abi_path: str | Path) -> bytes:
    """Read a contract ABI file and return the ABI as JSON bytes.

    Accepts either a bare ABI list or a build artifact with an ``abi`` key.

    Args:
        abi_path: Path to the JSON file

    Returns:
        The ABI list serialized as JSON

    Raises:
        FileNotFoundError: If the file doesn't exist
        json.JSONDecodeError: If the file is invalid JSON
        ValueError: If the file holds no ABI list
    """
    path = Path(abi_path).resolve()
    with path.open() as file:
        contract_data: Any = json.load(file)

    match contract_data:
        case list() as abi:
            pass
        case {"abi": list() as abi}:
            pass
        case _:
            raise ValueError(f"No ABI found in {path}")

    return json.dumps(abi).encode()


def event_abis(abi: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Return the non-anonymous event entries of an ABI."""
    return [
        entry for entry in abi
        if entry.get("type") == "event" and not entry.get("anonymous", False)
    ]
