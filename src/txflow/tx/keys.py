"""
Keypair loading.

Keypairs are stored the way the ledger's CLI stores them: a JSON array of
64 integers (32-byte secret seed followed by the 32-byte public key).
"""

import json
import os
from pathlib import Path
from typing import Optional, Union

import structlog

from solders.keypair import Keypair

from txflow.exceptions import TxFlowError

logger = structlog.get_logger(__name__)


class KeyLoadError(TxFlowError):
    """Raised when keypair material cannot be read or decoded."""
    pass


def keypair_from_json(raw: str) -> Keypair:
    """
    Decode a keypair from its JSON byte-array form.

    Raises:
        KeyLoadError: If the JSON is not a 64-byte array
    """
    try:
        values = json.loads(raw)
    except ValueError as e:
        raise KeyLoadError("Keypair is not valid JSON") from e

    if not isinstance(values, list) or len(values) != 64:
        raise KeyLoadError("Keypair must be a JSON array of 64 bytes")

    try:
        return Keypair.from_bytes(bytes(values))
    except (TypeError, ValueError) as e:
        raise KeyLoadError(f"Invalid keypair bytes: {e}") from e


def load_keypair_from_file(key_path: Union[str, Path]) -> Keypair:
    """
    Load a keypair from a JSON file.

    Args:
        key_path: Path to the keypair file
    """
    path = Path(key_path)
    if not path.exists():
        raise KeyLoadError(f"Keypair file not found: {key_path}")

    keypair = keypair_from_json(path.read_text(encoding="utf-8"))
    logger.info("keypair_loaded", path=str(path), pubkey=str(keypair.pubkey()))
    return keypair


def load_keypair_from_env(var_name: str = "SIGNER") -> Keypair:
    """
    Load a keypair from an environment variable holding its JSON.

    Args:
        var_name: Environment variable name
    """
    raw = os.environ.get(var_name)
    if not raw:
        raise KeyLoadError(f"Environment variable {var_name} is not set")

    keypair = keypair_from_json(raw)
    logger.info("keypair_loaded_from_env", var=var_name, pubkey=str(keypair.pubkey()))
    return keypair


def load_keypair(
    key_path: Optional[Union[str, Path]] = None,
    env_var: Optional[str] = None,
) -> Keypair:
    """Load a keypair from a file if given, otherwise from the environment."""
    if key_path:
        return load_keypair_from_file(key_path)
    if env_var:
        return load_keypair_from_env(env_var)
    raise KeyLoadError("No keypair source configured")


def write_keypair_file(
    key_path: Union[str, Path],
    keypair: Optional[Keypair] = None,
    overwrite: bool = False,
) -> Keypair:
    """
    Write a keypair to a JSON file, generating a new one if not given.

    WARNING: The file holds the secret key in plain text.
    """
    path = Path(key_path)
    if path.exists() and not overwrite:
        raise KeyLoadError(f"Refusing to overwrite existing keypair file: {key_path}")

    keypair = keypair or Keypair()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(list(bytes(keypair))), encoding="utf-8")
    os.chmod(path, 0o600)

    logger.info("keypair_written", path=str(path), pubkey=str(keypair.pubkey()))
    return keypair
