"""
CLI commands for the OTP policies.

Usage:
    sconepolicy otp create [--force]
    sconepolicy otp roll-forward --force
    sconepolicy otp gen-qr-code
    sconepolicy otp test-qr-code
    sconepolicy otp add-authenticator [--otp OTP]
    sconepolicy otp print-otp
"""

import typer

from sconepolicy.cli._shared import (
    get_settings,
    register_otp_commands,
    run_create,
    run_roll_forward,
)
from sconepolicy.policies import OTP_VARIANT

otp_app = typer.Typer(help="Create/update OTP policies and manage authenticators")


@otp_app.command("create")
def create(
    ctx: typer.Context,
    force: bool = typer.Option(
        False,
        "--force",
        help="Update sessions even if they already exist, e.g. after editing templates",
    ),
):
    """Create or update the OTP policies."""
    run_create(get_settings(ctx), OTP_VARIANT, force)


@otp_app.command("roll-forward")
def roll_forward(
    ctx: typer.Context,
    force: bool = typer.Option(
        False, "--force", help="Required, to prevent accidental removal of the secret"
    ),
):
    """
    Replace the OTP secret by a new one.

    This REMOVES the old OTP key. Afterwards update your authenticator(s)
    using 'gen-qr-code' or 'add-authenticator'.
    """
    run_roll_forward(get_settings(ctx), OTP_VARIANT, force)


register_otp_commands(otp_app, OTP_VARIANT)
