"""
Solana key helpers: pubkey validation, operator keypair loading and PDA derivation.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence, Tuple

import base58
import nacl.signing
from solders.pubkey import Pubkey

from app.core.errors import CredentialError, InvalidAccount

logger = logging.getLogger(__name__)

PUBKEY_LENGTH = 32
VAULT_SEED = b"vault"
_MAX_SEED_LENGTH = 32


def decode_pubkey(value: str) -> bytes:
    if not isinstance(value, str) or not value.strip():
        raise InvalidAccount("invalid user pubkey: empty")
    try:
        raw = base58.b58decode(value.strip())
    except ValueError as exc:
        raise InvalidAccount(f"invalid user pubkey: {exc}") from exc
    if len(raw) != PUBKEY_LENGTH:
        raise InvalidAccount(f"invalid user pubkey: expected {PUBKEY_LENGTH} bytes, got {len(raw)}")
    return raw


def normalize_pubkey(value: str) -> str:
    """Validate a base58 pubkey and return its canonical string form."""
    return base58.b58encode(decode_pubkey(value)).decode("ascii")


def find_program_address(seeds: Sequence[bytes], program_id: str) -> Tuple[str, int]:
    """Highest-bump off-curve address for `seeds` under `program_id`, as Solana derives it."""
    for seed in seeds:
        if len(seed) > _MAX_SEED_LENGTH:
            raise ValueError("seed longer than 32 bytes")
    program = Pubkey(decode_pubkey(program_id))
    address, bump = Pubkey.find_program_address(list(seeds), program)
    return str(address), bump


def vault_pda(user: str, program_id: str) -> str:
    address, _bump = find_program_address([VAULT_SEED, decode_pubkey(user)], program_id)
    return address


@dataclass(frozen=True)
class OperatorKey:
    signing_key: nacl.signing.SigningKey
    pubkey: str

    def sign(self, message: bytes) -> bytes:
        return self.signing_key.sign(message).signature


def load_operator_key(path: str) -> OperatorKey:
    """
    Read a Solana CLI keypair file (JSON array of 64 bytes: seed then pubkey).
    """
    key_path = Path(path).expanduser()
    try:
        content = key_path.read_text()
    except OSError as exc:
        raise CredentialError(f"could not read file `{key_path}`: {exc}") from exc

    try:
        values = json.loads(content)
        secret = bytes(values)
    except (ValueError, TypeError) as exc:
        raise CredentialError(f"`{key_path}` is not a keypair byte array") from exc

    if len(secret) != 64:
        raise CredentialError(f"`{key_path}` must hold 64 bytes, got {len(secret)}")

    signing_key = nacl.signing.SigningKey(secret[:32])
    public = signing_key.verify_key.encode()
    if public != secret[32:]:
        raise CredentialError(f"`{key_path}` public half does not match its secret")

    pubkey = base58.b58encode(public).decode("ascii")
    logger.info("Operator key loaded: %s", pubkey)
    return OperatorKey(signing_key=signing_key, pubkey=pubkey)
