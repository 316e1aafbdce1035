"""
One-time password helpers.
"""

from typing import Optional

import pyotp
import typer

OTP_PROMPT = """
Authorizing this command requires an OTP from an existing authenticator.
  - Starting containers can take a while. Wait for a fresh code before typing it.
Type OTP and press enter"""


def current_code(secret: str) -> str:
    """Current 6-digit TOTP for a BASE32 secret (30s step)."""
    return pyotp.TOTP(secret).now()


def read_otp(otp: Optional[str] = None) -> str:
    """Return ``otp`` or prompt for one; whitespace is removed."""
    if otp is None:
        otp = typer.prompt(OTP_PROMPT)
    return "".join(otp.split())
