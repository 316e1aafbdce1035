"""
Launchers for the attested workloads configured by the sessions.

Each workload is a ``docker run`` whose configuration is fetched from CAS
via ``SCONE_CONFIG_ID=<session>/<service>[@<otp>]``. Output goes to
``qr.output`` in the working directory.
"""

import shlex

from sconepolicy.config import Settings
from sconepolicy.errors import WorkloadFailed
from sconepolicy.logger import get_logger
from sconepolicy.shell import CommandResult, run_shell
from sconepolicy.state import PolicyState

logger = get_logger(__name__)

OUTPUT_FILE = "qr.output"


class WorkloadRunner:
    """Starts workloads from the working directory in ``settings``."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def _run(
        self,
        label: str,
        config_id: str,
        image: str,
        binary: str,
        extra_mounts: tuple = (),
        args: str = "",
    ) -> CommandResult:
        parts = [
            'docker run --rm -w "/root" -v "$PWD:/root"',
            *extra_mounts,
            f"-e SCONE_CAS_ADDR={self.settings.cas_addr}",
            f"-e SCONE_CONFIG_ID={shlex.quote(config_id)}",
            image,
            binary,
        ]
        if args:
            parts.append(args)
        command = " ".join(parts) + f" > {OUTPUT_FILE}"
        result = run_shell(command, shell=self.settings.shell, cwd=self.settings.workdir)
        logger.info(f"{label}: returned code {result.code}")
        if not result.ok:
            raise WorkloadFailed(
                f"Executing '{label}' failed with code {result.code}", result.stderr
            )
        return result

    def _docker_mounts(self) -> tuple:
        return (
            "-v /var/run/docker.sock:/var/run/docker.sock",
            f"-v {shlex.quote(str(self.settings.docker_config))}:/root/.docker",
            '-v "$PWD/cosign_keys:/root/cosign_keys"',
        )

    def gen_qr_code(self, state: PolicyState) -> CommandResult:
        """QR code for the current secret. Works once per volume version."""
        return self._run(
            "gen-qr-code", f"{state.session}/otpqr", state.otp_image, state.otp_binary
        )

    def test_qr_code(self, state: PolicyState) -> CommandResult:
        """QR code for a fixed test secret; cannot be used to authorize."""
        return self._run(
            "test-qr-code", f"{state.session}/test", state.otp_image, state.otp_binary
        )

    def add_authenticator(self, state: PolicyState, otp: str) -> CommandResult:
        """New QR code, authorized by an OTP from an existing authenticator."""
        return self._run(
            "add-authenticator",
            f"{state.session2}/otpqr@{otp}",
            state.otp_image,
            state.otp_binary,
        )

    def gen_keypair(self, state: PolicyState, otp: str) -> CommandResult:
        return self._run(
            "cosign generate-key-pair",
            f"{state.session2}/generate-key-pair@{otp}",
            self.settings.cosign_image,
            self.settings.cosign_binary,
        )

    def sign_image(self, state: PolicyState, otp: str, image: str) -> CommandResult:
        return self._run(
            "cosign sign",
            f"{state.session2}/sign@{otp}",
            self.settings.cosign_image,
            self.settings.cosign_binary,
            extra_mounts=self._docker_mounts(),
            args=shlex.quote(image),
        )

    def verify_image(self, state: PolicyState, otp: str, image: str) -> CommandResult:
        return self._run(
            "cosign verify",
            f"{state.session2}/verify@{otp}",
            self.settings.cosign_image,
            self.settings.cosign_binary,
            extra_mounts=self._docker_mounts(),
            args=shlex.quote(image),
        )
