"""
MRENCLAVE measurement of the binary referenced by the sessions.
"""

import shlex
from abc import ABC, abstractmethod

from sconepolicy.errors import MeasurementFailed
from sconepolicy.logger import get_logger
from sconepolicy.shell import run_shell
from sconepolicy.state import PolicyState

logger = get_logger(__name__)


class Measurer(ABC):
    """Computes the measurement of ``binary`` inside ``image``."""

    @abstractmethod
    def measure(self, image: str, binary: str) -> str:
        """
        Returns:
            The measurement token.

        Raises:
            MeasurementFailed: If it cannot be determined.
        """


class DockerMeasurer(Measurer):
    """Runs the binary with ``SCONE_HASH=1``, which prints MRENCLAVE and exits."""

    def __init__(self, shell: str = "sh"):
        self.shell = shell

    def measure(self, image: str, binary: str) -> str:
        result = run_shell(
            f"docker run --rm -e SCONE_HASH=1 {shlex.quote(image)} {shlex.quote(binary)}",
            shell=self.shell,
        )
        if not result.ok:
            raise MeasurementFailed(
                f"Failed to determine MRENCLAVE of {binary} in {image}. Does the image exist?",
                result.stderr,
            )
        mrenclave = "".join(result.stdout.split())
        if not mrenclave:
            raise MeasurementFailed(
                f"Empty MRENCLAVE for {binary} in {image}", result.stderr
            )
        logger.info(f"MrEnclave = {mrenclave}")
        return mrenclave


def refresh_measurement(
    state: PolicyState, measurer: Measurer, force: bool = False
) -> PolicyState:
    """Return ``state`` with ``mrenclave`` measured if it is empty or ``force``."""
    if state.mrenclave and not force:
        return state
    mrenclave = measurer.measure(state.otp_image, state.otp_binary)
    return state.model_copy(update={"mrenclave": mrenclave})
