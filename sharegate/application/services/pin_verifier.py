"""PIN verification for locked share tokens.

The stored value is a bcrypt hash of the PIN; the client presents the
plaintext PIN in the ``h`` query parameter. Comparison is always
``checkpw(proof, stored_hash)``.
"""
from typing import Optional

import bcrypt

from ... import config
from ...domain import MalformedTokenRecord


def is_valid_pin(pin: Optional[str]) -> bool:
    """PINs are digits only, between PIN_MIN_LENGTH and PIN_MAX_LENGTH long."""
    return (
        bool(pin)
        and pin.isdigit()
        and config.PIN_MIN_LENGTH <= len(pin) <= config.PIN_MAX_LENGTH
    )


def hash_pin(pin: str, rounds: int = 12) -> str:
    """Hash a PIN for storage on a locked token."""
    return bcrypt.hashpw(pin.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_pin(stored_hash: Optional[str], proof: Optional[str]) -> bool:
    """Check a presented PIN against the stored hash.

    Args:
        stored_hash: bcrypt hash stored on the token
        proof: Plaintext PIN presented by the client

    Returns:
        True if the PIN matches. Empty or missing input is a mismatch.

    Raises:
        MalformedTokenRecord: If the stored hash is not a bcrypt hash
    """
    if not proof or not stored_hash:
        return False
    try:
        return bcrypt.checkpw(proof.encode("utf-8"), stored_hash.encode("utf-8"))
    except ValueError:
        # Don't chain: the bcrypt message can echo the stored value
        raise MalformedTokenRecord("Stored PIN hash is not a valid bcrypt hash") from None
