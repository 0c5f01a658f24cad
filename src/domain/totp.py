"""
TOTP engine - RFC 6238 codes via pyotp.

Authenticator-app defaults: 30-second step, 6 digits, SHA-1.
Secrets are 160 random bits, base32-encoded for manual entry.
"""

import hmac
from datetime import datetime

import pyotp

TOTP_STEP_SECONDS = 30
TOTP_DIGITS = 6
TOTP_SECRET_BYTES = 20


class TotpEngine:
    """Generates secrets and validates codes with bounded clock skew."""

    def __init__(self, tolerance_steps: int = 1) -> None:
        """
        Args:
            tolerance_steps: Accept codes from this many steps either side
                of the current one
        """
        self._tolerance = tolerance_steps

    def generate_secret(self) -> str:
        return pyotp.random_base32(length=TOTP_SECRET_BYTES * 8 // 5)

    def provisioning_uri(self, issuer: str, account_label: str, secret: str) -> str:
        """
        Build an otpauth:// URI for QR enrolment.

        Only issuer, account label and secret are encoded.
        """
        return pyotp.TOTP(secret, digits=TOTP_DIGITS, interval=TOTP_STEP_SECONDS).provisioning_uri(
            name=account_label, issuer_name=issuer
        )

    def code_at(self, secret: str, at: datetime) -> str:
        """Code for the time step containing `at`."""
        return self._totp(secret).at(at)

    def match_step(self, secret: str, code: str, at: datetime) -> int | None:
        """
        Find the time step a code belongs to.

        Every candidate step in the window is compared, so the comparison
        count does not depend on which step matched.

        Returns:
            The matched step counter, or None if the code is invalid
        """
        code = code.strip()
        if len(code) != TOTP_DIGITS or not (code.isascii() and code.isdigit()):
            return None

        totp = self._totp(secret)
        current = totp.timecode(at)
        matched = None
        for offset in range(-self._tolerance, self._tolerance + 1):
            if hmac.compare_digest(totp.at(at, counter_offset=offset), code) and matched is None:
                matched = current + offset
        return matched

    def verify_code(self, secret: str, code: str, at: datetime) -> bool:
        return self.match_step(secret, code, at) is not None

    @staticmethod
    def _totp(secret: str) -> pyotp.TOTP:
        return pyotp.TOTP(secret, digits=TOTP_DIGITS, interval=TOTP_STEP_SECONDS)
