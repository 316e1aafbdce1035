"""
CLI commands for the cosign signing policies.

Usage:
    sconepolicy cosign gen-policies [--prefix P] [--force]
    sconepolicy cosign create [--prefix P] [--force]
    sconepolicy cosign roll-forward [--prefix P] --force
    sconepolicy cosign gen-keypair [--otp OTP]
    sconepolicy cosign sign-image --image REF [--otp OTP]
    sconepolicy cosign verify-image --image REF [--otp OTP]

plus the QR code and authenticator commands of ``sconepolicy otp``.
"""

from typing import Optional

import typer

from sconepolicy.cli._shared import (
    get_settings,
    load_existing_state,
    policy_errors,
    register_otp_commands,
    run_create,
    run_roll_forward,
)
from sconepolicy.otp import read_otp
from sconepolicy.policies import COSIGN_VARIANT, write_policies
from sconepolicy.workloads import WorkloadRunner

cosign_app = typer.Typer(help="Manage cosign signing keys protected by OTP policies")

PREFIX_HELP = (
    "Prefix of the policy files: <prefix>_namespace.yml, "
    "<prefix>_admin.yml and <prefix>_remote.yml"
)


@cosign_app.command("gen-policies")
def gen_policies(
    ctx: typer.Context,
    prefix: str = typer.Option("policy", "--prefix", help=PREFIX_HELP),
    force: bool = typer.Option(
        False, "--force", help="Overwrite existing policy files"
    ),
):
    """
    Write the default policies so they can be customized before 'create'.

    Only {{name}} placeholders are substituted; all other text is kept as is.
    """
    settings = get_settings(ctx)
    with policy_errors():
        paths = write_policies(prefix, force, settings.workdir)
    for path in paths:
        typer.echo(f"✅ Written policy to {path.name}")


@cosign_app.command("create")
def create(
    ctx: typer.Context,
    prefix: str = typer.Option("policy", "--prefix", help=PREFIX_HELP),
    force: bool = typer.Option(
        False,
        "--force",
        help="Update sessions even if they already exist, e.g. after editing policies",
    ),
):
    """Create or update the cosign policies in a separate namespace."""
    run_create(get_settings(ctx), COSIGN_VARIANT, force, prefix)


@cosign_app.command("roll-forward")
def roll_forward(
    ctx: typer.Context,
    prefix: str = typer.Option("policy", "--prefix", help=PREFIX_HELP),
    force: bool = typer.Option(
        False, "--force", help="Required, to prevent accidental removal of the secret"
    ),
):
    """Replace the OTP secret by a new one. This REMOVES the old OTP key."""
    run_roll_forward(get_settings(ctx), COSIGN_VARIANT, force, prefix)


@cosign_app.command("gen-keypair")
def gen_keypair(
    ctx: typer.Context,
    otp: Optional[str] = typer.Option(None, "--otp", help="Current OTP"),
):
    """Generate a new cosign key pair. Asks for the current OTP."""
    settings = get_settings(ctx)
    with policy_errors():
        state = load_existing_state(settings, COSIGN_VARIANT)
        WorkloadRunner(settings).gen_keypair(state, read_otp(otp))
    typer.echo("✅ Generated key pair")


@cosign_app.command("sign-image")
def sign_image(
    ctx: typer.Context,
    image: str = typer.Option(..., "--image", help="Image reference to sign"),
    otp: Optional[str] = typer.Option(None, "--otp", help="Current OTP"),
):
    """Sign an image. Asks for the current OTP unless --otp is given."""
    settings = get_settings(ctx)
    with policy_errors():
        state = load_existing_state(settings, COSIGN_VARIANT)
        WorkloadRunner(settings).sign_image(state, read_otp(otp), image)
    typer.echo(f"✅ Signed image {image}")


@cosign_app.command("verify-image")
def verify_image(
    ctx: typer.Context,
    image: str = typer.Option(..., "--image", help="Image reference to verify"),
    otp: Optional[str] = typer.Option(None, "--otp", help="Current OTP"),
):
    """Verify an image signature. Asks for the current OTP unless --otp is given."""
    settings = get_settings(ctx)
    with policy_errors():
        state = load_existing_state(settings, COSIGN_VARIANT)
        WorkloadRunner(settings).verify_image(state, read_otp(otp), image)
    typer.echo(f"✅ Verified image {image}")


register_otp_commands(cosign_app, COSIGN_VARIANT)
