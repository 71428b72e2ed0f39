"""
Keypair files and transaction signing.

Keypair files use the Solana CLI format: a JSON array of the 64 secret
key bytes.
"""

import json
import logging
import os
from pathlib import Path
from typing import List, Sequence, Union

from solders.hash import Hash
from solders.keypair import Keypair
from solders.message import Message
from solders.transaction import Transaction

from ..errors import ConfigError, SubmissionError

logger = logging.getLogger(__name__)

KEYPAIR_LENGTH = 64


def _read_keypair_bytes(path: Path) -> bytes:
    data = json.loads(path.read_text())
    if (
        not isinstance(data, list)
        or len(data) != KEYPAIR_LENGTH
        or not all(isinstance(b, int) and 0 <= b <= 255 for b in data)
    ):
        raise ValueError("expected a JSON array of 64 bytes")
    return bytes(data)


def load_keypair(path: Union[str, Path]) -> Keypair:
    """Load a keypair file written by solana-keygen."""
    path = Path(path).expanduser()
    try:
        return Keypair.from_bytes(_read_keypair_bytes(path))
    except (OSError, ValueError) as e:
        raise ConfigError(f"Error reading keypair file {path}: {e}") from e


def is_keypair_file(path: str) -> bool:
    """True when ``path`` names a readable keypair file."""
    try:
        candidate = Path(path).expanduser()
        if not candidate.is_file():
            return False
        _read_keypair_bytes(candidate)
    except (OSError, ValueError):
        return False
    return True


def write_keypair_file(keypair: Keypair, path: Union[str, Path]) -> Path:
    """Write a keypair in solana-keygen format, readable by the owner only."""
    path = Path(path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(list(bytes(keypair))))
    os.chmod(path, 0o600)
    logger.debug("Wrote keypair %s to %s", keypair.pubkey(), path)
    return path


def unique_signers(keypairs: Sequence[Keypair]) -> List[Keypair]:
    """Drop repeated keypairs, keeping the first occurrence of each address."""
    seen = set()
    unique = []
    for keypair in keypairs:
        pubkey = keypair.pubkey()
        if pubkey in seen:
            continue
        seen.add(pubkey)
        unique.append(keypair)
    return unique


def sign_transaction(message: Message, keypairs: Sequence[Keypair], recent_blockhash: Hash) -> Transaction:
    """Sign with each keypair once; every signer the message requires must be present."""
    signers = unique_signers(keypairs)
    try:
        return Transaction(signers, message, recent_blockhash)
    except Exception as e:
        raise SubmissionError(f"Failed to sign transaction: {e}") from e
