"""
Password derivation for encrypted contract PDFs.

The primary flow derives the password from the contract identifiers and a
server-side salt, so the same contract always yields the same password and
nothing needs to be stored. ``generate_random_password`` is a fallback only.
"""

from __future__ import annotations

import hashlib
import secrets

PASSWORD_LENGTH = 12

# Letters and digits without the easily confused I, O, i, o, l, 0 and 1
RANDOM_PASSWORD_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZabcdefghjkmnpqrstuvwxyz23456789"


def derive_password(contract_id: str, contract_number: str, salt: str) -> str:
    """
    Derive the 12-character password for a contract.

    Args:
        contract_id: Contract UUID, non-empty
        contract_number: Human-facing contract number, non-empty
        salt: Server-side secret

    Returns:
        The first 12 lowercase hex characters of
        ``sha256(f"{contract_id}-{contract_number}-{salt}")``

    Raises:
        TypeError: If any argument is not a string
    """
    for name, value in (("contract_id", contract_id), ("contract_number", contract_number), ("salt", salt)):
        if not isinstance(value, str):
            raise TypeError(f"{name} must be a string, got {type(value).__name__}")

    data = f"{contract_id}-{contract_number}-{salt}"
    digest = hashlib.sha256(data.encode("utf-8")).hexdigest()
    return digest[:PASSWORD_LENGTH]


def generate_random_password(length: int = PASSWORD_LENGTH) -> str:
    """Cryptographically random password drawn from the unambiguous alphabet."""
    if length <= 0:
        raise ValueError("length must be positive")
    return "".join(secrets.choice(RANDOM_PASSWORD_ALPHABET) for _ in range(length))


class PasswordDeriver:
    """Binds the configured server salt so callers never read it globally."""

    def __init__(self, salt: str) -> None:
        self._salt = salt

    def derive(self, contract_id: str, contract_number: str) -> str:
        return derive_password(contract_id, contract_number, self._salt)
