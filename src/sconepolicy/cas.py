"""
Session service client.

The reconciler only depends on the four operations of
``SessionServiceClient``. ``SconeCliClient`` implements them with the
``scone session`` command line tool running in a container.
"""

import shlex
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

from sconepolicy.logger import get_logger
from sconepolicy.shell import CommandResult, SconeCli

logger = get_logger(__name__)

READ_SESSION_FILE = "tmp_read_session.yml"
RENDERED_SESSION_FILE = "tmp_rendered.yml"


@dataclass
class ServiceResult:
    """Outcome of one session service call."""

    ok: bool
    output: str = ""
    stderr: str = ""

    @classmethod
    def from_command(cls, result: CommandResult) -> "ServiceResult":
        return cls(ok=result.ok, output=result.stdout.strip(), stderr=result.stderr)


class SessionServiceClient(ABC):
    """The four operations the reconciler needs from the session store."""

    @abstractmethod
    def read_session(self, name: str) -> ServiceResult:
        """Fetch a session. ``output`` is the session document."""

    @abstractmethod
    def verify_session(self, content: str) -> ServiceResult:
        """Verify a fetched session. ``output`` is its hash."""

    @abstractmethod
    def check_document(self, document: str) -> ServiceResult:
        """Dry-run validation of a rendered document."""

    @abstractmethod
    def create_session(self, document: str) -> ServiceResult:
        """Create or update a session. ``output`` is the new hash."""


class SconeCliClient(SessionServiceClient):
    """
    ``scone session`` commands run through ``SconeCli``.

    Documents are exchanged through scratch files in the working directory,
    which the CLI container sees as ``/root``.
    """

    def __init__(self, cli: SconeCli):
        self.cli = cli

    @property
    def workdir(self) -> Path:
        return self.cli.settings.workdir

    def _write(self, filename: str, content: str) -> None:
        (self.workdir / filename).write_text(content, encoding="utf-8")

    def read_session(self, name: str) -> ServiceResult:
        result = self.cli.run(f"scone session read {shlex.quote(name)}")
        return ServiceResult(ok=result.ok, output=result.stdout, stderr=result.stderr)

    def verify_session(self, content: str) -> ServiceResult:
        self._write(READ_SESSION_FILE, content)
        return ServiceResult.from_command(
            self.cli.run(f"scone session verify {READ_SESSION_FILE}")
        )

    def check_document(self, document: str) -> ServiceResult:
        self._write(RENDERED_SESSION_FILE, document)
        return ServiceResult.from_command(
            self.cli.run(f"scone session check {RENDERED_SESSION_FILE}")
        )

    def create_session(self, document: str) -> ServiceResult:
        self._write(RENDERED_SESSION_FILE, document)
        result = ServiceResult.from_command(
            self.cli.run(f"scone session create {RENDERED_SESSION_FILE}")
        )
        if not result.ok:
            logger.info(f"Rejected document kept in {self.workdir / RENDERED_SESSION_FILE}")
        return result
