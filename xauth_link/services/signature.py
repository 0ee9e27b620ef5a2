"""Ed25519 verification of Discord interaction requests."""

from __future__ import annotations

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey


def verify_interaction_signature(
    *, public_key_hex: str, signature_hex: str, timestamp: str, body: bytes
) -> bool:
    """Return ``True`` if *signature_hex* signs ``timestamp + body`` for the key.

    Malformed hex or key material counts as a failed verification.
    """
    try:
        public_key = Ed25519PublicKey.from_public_bytes(bytes.fromhex(public_key_hex))
        signature = bytes.fromhex(signature_hex)
    except ValueError:
        return False

    try:
        public_key.verify(signature, timestamp.encode("utf-8") + body)
    except InvalidSignature:
        return False
    return True
