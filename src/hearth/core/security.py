"""Signature utilities built on Ed25519 primitives."""
from __future__ import annotations

import binascii

from nacl.exceptions import BadSignatureError
from nacl.signing import SigningKey, VerifyKey

PRIVATE_KEY_HEX_LENGTH = 64  # 32-byte seed
PUBLIC_ADDRESS_HEX_LENGTH = 64  # 32-byte verify key


def load_signing_key(private_key: SigningKey | str | bytes) -> SigningKey:
    """Return a ``SigningKey`` from a key object, raw seed bytes or a hex seed.

    Raises:
        ValueError: If the material is not a 32-byte Ed25519 seed.
    """
    if isinstance(private_key, SigningKey):
        return private_key
    if isinstance(private_key, str):
        cleaned = private_key.strip().removeprefix("0x")
        if len(cleaned) != PRIVATE_KEY_HEX_LENGTH:
            raise ValueError("Ed25519 private keys must be 32 bytes (64 hex chars)")
        try:
            private_key = binascii.unhexlify(cleaned)
        except binascii.Error as err:
            raise ValueError(f"Invalid private key hex: {err}") from err
    try:
        return SigningKey(private_key)
    except (TypeError, ValueError) as err:
        raise ValueError(f"Invalid private key: {err}") from err


def public_address(private_key: SigningKey | str | bytes) -> str:
    """Derive the hex-encoded public address for a private key."""
    return load_signing_key(private_key).verify_key.encode().hex()


def generate_private_key() -> str:
    """Generate a fresh Ed25519 seed, hex encoded."""
    return SigningKey.generate().encode().hex()


def sign_bytes(message: bytes, private_key: SigningKey | str | bytes) -> str:
    """Sign ``message`` and return the detached signature as hex."""
    signing_key = load_signing_key(private_key)
    return signing_key.sign(message).signature.hex()


def verify_bytes(message: bytes, signature_hex: str, address_hex: str) -> bool:
    """Verify an Ed25519 signature.

    Args:
        message: Exact bytes that were signed.
        signature_hex: Hex-encoded 64-byte signature.
        address_hex: Hex-encoded 32-byte public key of the signer.

    Returns:
        True if the signature is valid for `message` under `address_hex`; False otherwise.
    """
    if len(address_hex) != PUBLIC_ADDRESS_HEX_LENGTH:
        return False
    try:
        verify_key = VerifyKey(binascii.unhexlify(address_hex))
        signature = binascii.unhexlify(signature_hex)
        verify_key.verify(message, signature)
        return True
    except (binascii.Error, BadSignatureError, TypeError, ValueError):
        return False
