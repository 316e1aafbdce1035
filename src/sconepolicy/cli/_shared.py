"""
Helpers shared by the otp and cosign command groups.
"""

import os
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

import typer

from sconepolicy.attestation import DockerMeasurer
from sconepolicy.cas import SconeCliClient
from sconepolicy.config import Settings
from sconepolicy.errors import PolicyError
from sconepolicy.otp import current_code, read_otp
from sconepolicy.policies import PolicyVariant, load_policies
from sconepolicy.session.lifecycle import LifecycleCoordinator
from sconepolicy.session.reconciler import SessionReconciler
from sconepolicy.shell import SconeCli
from sconepolicy.state import PolicyState, StateStore
from sconepolicy.workloads import WorkloadRunner

QR_CODE_HINT = (
    "Written QR code to file qrcode.svg.\n"
    " 1. Please 'open qrcode.svg' and scan the QR code to initialize your authenticator.\n"
    " 2. Remove qrcode.svg using: 'shred -n 3 -z -u qrcode.svg'"
)


def configure_logging(verbose: bool = False):
    """Configure logging for the CLI."""
    from sconepolicy.logger import setup_logging

    log_level = "DEBUG" if verbose else os.getenv("LOG_LEVEL", "WARNING")
    setup_logging(level=log_level, log_file=os.getenv("LOG_FILE"))


def get_settings(ctx: typer.Context) -> Settings:
    if isinstance(ctx.obj, Settings):
        return ctx.obj
    return Settings.from_env()


@contextmanager
def policy_errors():
    """Turn a PolicyError into an error message and exit code 1."""
    try:
        yield
    except PolicyError as e:
        typer.echo(f"❌ {e}")
        raise typer.Exit(code=1)


def build_coordinator(
    settings: Settings, variant: PolicyVariant, prefix: str = "policy"
) -> LifecycleCoordinator:
    client = SconeCliClient(SconeCli(settings))
    return LifecycleCoordinator(
        store=StateStore(settings.state_path, variant),
        reconciler=SessionReconciler(client),
        measurer=DockerMeasurer(settings.shell),
        policies=load_policies(variant, prefix, settings.workdir),
        variant=variant,
        workdir=settings.workdir,
    )


def load_existing_state(settings: Settings, variant: PolicyVariant) -> PolicyState:
    store = StateStore(settings.state_path, variant)
    if not store.exists():
        raise PolicyError(
            f"No state found at {store.path}. Run '{variant.name} create' first."
        )
    return store.load()


def echo_state_summary(state: PolicyState) -> None:
    typer.echo(f"   Namespace: {state.namespace}")
    typer.echo(f"   Session:   {state.session} ({state.session_hash})")
    typer.echo(f"   Session2:  {state.session2} ({state.session_hash2})")
    typer.echo(f"   Volume version: {state.volume_version}")


def register_otp_commands(app: typer.Typer, variant: PolicyVariant):
    """Register the QR code and authenticator commands both tools share."""

    @app.command("gen-qr-code")
    def gen_qr_code(ctx: typer.Context):
        """Generate the QR code. Works only once after create or roll-forward."""
        settings = get_settings(ctx)
        with policy_errors():
            state = load_existing_state(settings, variant)
            WorkloadRunner(settings).gen_qr_code(state)
        typer.echo(QR_CODE_HINT)

    @app.command("test-qr-code")
    def test_qr_code(ctx: typer.Context):
        """Generate a test QR code. It cannot be used to add an authenticator."""
        settings = get_settings(ctx)
        with policy_errors():
            state = load_existing_state(settings, variant)
            WorkloadRunner(settings).test_qr_code(state)
        typer.echo("Written test QR code to file test.svg.")
        typer.echo("- This cannot be used for authorization.")

    @app.command("add-authenticator")
    def add_authenticator(
        ctx: typer.Context,
        otp: Optional[str] = typer.Option(
            None, "--otp", help="Current OTP of an existing authenticator"
        ),
    ):
        """Add a new authenticator. Asks for the current OTP unless --otp is given."""
        settings = get_settings(ctx)
        with policy_errors():
            state = load_existing_state(settings, variant)
            WorkloadRunner(settings).add_authenticator(state, read_otp(otp))
        typer.echo(QR_CODE_HINT)

    @app.command("print-otp")
    def print_otp(ctx: typer.Context):
        """Print the current OTP for the stored secret."""
        settings = get_settings(ctx)
        with policy_errors():
            state = load_existing_state(settings, variant)
        typer.echo(current_code(state.secret))


def run_create(
    settings: Settings, variant: PolicyVariant, force: bool, prefix: str = "policy"
) -> None:
    with policy_errors():
        state = build_coordinator(settings, variant, prefix).create(force)
    typer.echo(f"✅ {variant.name} policies are up to date")
    echo_state_summary(state)


def run_roll_forward(
    settings: Settings, variant: PolicyVariant, force: bool, prefix: str = "policy"
) -> None:
    if not force:
        raise typer.BadParameter(
            "roll-forward removes the current OTP secret; pass --force to confirm",
            param_hint="--force",
        )
    with policy_errors():
        state = build_coordinator(settings, variant, prefix).roll_forward(force)
    typer.echo(f"✅ Rolled forward to volume version {state.volume_version}")
    typer.echo(
        "   Update your authenticator(s) with 'gen-qr-code' or 'add-authenticator'."
    )
    echo_state_summary(state)


def resolve_workdir(workdir: Path) -> Path:
    return Path(workdir).expanduser().resolve()
