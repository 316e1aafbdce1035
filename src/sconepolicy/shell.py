"""
Blocking shell execution with captured output.

All external tools (docker, the scone CLI) are reached through here so
tests can patch a single seam.
"""

import shlex
import subprocess
from dataclasses import dataclass

from sconepolicy.config import Settings
from sconepolicy.logger import get_logger

logger = get_logger(__name__)


@dataclass
class CommandResult:
    """Exit status plus captured output of one command."""

    code: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.code == 0


def run_shell(command: str, shell: str = "sh", cwd=None) -> CommandResult:
    """Run ``command`` through ``shell -c`` and capture its output."""
    logger.debug(f"Running: {command}")
    try:
        result = subprocess.run(
            [shell, "-c", command],
            capture_output=True,
            text=True,
            cwd=cwd,
            encoding="utf-8",
            errors="replace",
        )
    except OSError as e:
        return CommandResult(126, "", str(e))
    return CommandResult(result.returncode, result.stdout, result.stderr)


class SconeCli:
    """
    Runs ``scone`` commands inside the SCONE CLI container.

    The working directory is mounted at ``/root`` so files written there
    (rendered documents, read sessions) are visible to the CLI.
    """

    def __init__(self, settings: Settings):
        self.settings = settings

    def prefix(self) -> str:
        s = self.settings
        mounts = [
            "/var/run/docker.sock:/var/run/docker.sock",
            f"{s.docker_config}:/root/.docker",
            f"{s.cas_config}:/root/.cas",
            f"{s.scone_config}:/root/.scone",
            f"{s.workdir.resolve()}:/root",
        ]
        volume_args = " ".join(f"-v {shlex.quote(m)}" for m in mounts)
        return f"docker run --rm {volume_args} -w /root {shlex.quote(s.cli_image)}"

    def run(self, command: str) -> CommandResult:
        return run_shell(
            f"{self.prefix()} {command}",
            shell=self.settings.shell,
            cwd=self.settings.workdir,
        )
