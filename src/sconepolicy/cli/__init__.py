"""
sconepolicy CLI.

- otp:    create, roll-forward, gen-qr-code, test-qr-code, add-authenticator, print-otp
- cosign: the otp commands plus gen-policies, gen-keypair, sign-image, verify-image
"""

from pathlib import Path

import typer

from sconepolicy.cli._shared import configure_logging, resolve_workdir
from sconepolicy.cli.cosign import cosign_app
from sconepolicy.cli.otp import otp_app
from sconepolicy.config import Settings

app = typer.Typer(help="Manage OTP and cosign policy sessions on SCONE CAS")


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable verbose logging (DEBUG level)"
    ),
    workdir: Path = typer.Option(
        Path("."), "--workdir", "-C", help="Directory holding state.js and policies"
    ),
):
    """
    Manage OTP and cosign policy sessions on SCONE CAS.
    """
    configure_logging(verbose)
    ctx.obj = Settings.from_env(resolve_workdir(workdir))


app.add_typer(otp_app, name="otp")
app.add_typer(cosign_app, name="cosign")

if __name__ == "__main__":
    app()
