"""
Password hashing - bcrypt with a separately stored salt.

The bcrypt salt string embeds the work factor ($2b$<cost>$<22 chars>),
so every stored hash stays verifiable after the configured cost is raised:
verification always re-derives with the salt that produced the hash.

Security Design - Timing Oracle Prevention:
------------------------------------------
verify() always runs exactly one bcrypt derivation, including for
passwords that bcrypt cannot accept, and dummy_verify() lets callers spend
the same time when there is no stored hash to compare against.
"""

import hmac

import bcrypt

# bcrypt only consumes the first 72 bytes of its input
MAX_PASSWORD_BYTES = 72


class PasswordHasher:
    """One-way salted hashing and constant-time verification."""

    def __init__(self, cost: int = 12) -> None:
        """
        Args:
            cost: bcrypt work factor (4-31). 12 costs a few hundred ms,
                10 roughly tens of ms on commodity hardware.
        """
        self._cost = cost
        self._dummy_salt = bcrypt.gensalt(rounds=cost)
        self._dummy_hash = bcrypt.hashpw(b"dummy_password_for_timing_safety", self._dummy_salt)

    @staticmethod
    def accepts(password: str) -> bool:
        """True if the password fits bcrypt's input limit."""
        return len(password.encode()) <= MAX_PASSWORD_BYTES

    def hash(self, password: str) -> tuple[bytes, bytes]:
        """
        Hash a password with a fresh 128-bit salt.

        Returns:
            Tuple of (hash, salt)

        Raises:
            ValueError: If the password exceeds 72 bytes
        """
        if not self.accepts(password):
            raise ValueError("password exceeds 72 bytes")
        salt = bcrypt.gensalt(rounds=self._cost)
        return bcrypt.hashpw(password.encode(), salt), salt

    def verify(self, password: str, password_hash: bytes, salt: bytes) -> bool:
        """Re-derive with the stored salt and compare digests in constant time."""
        if not self.accepts(password):
            self.dummy_verify()
            return False
        candidate = bcrypt.hashpw(password.encode(), salt)
        return hmac.compare_digest(candidate, password_hash)

    def dummy_verify(self, password: str = "") -> bool:
        """Spend one derivation against the dummy hash. Always False."""
        data = password.encode()[:MAX_PASSWORD_BYTES]
        hmac.compare_digest(bcrypt.hashpw(data, self._dummy_salt), self._dummy_hash)
        return False
