"""
Error types raised by sconepolicy.

Every error carries a short message plus, where an external command was
involved, the diagnostic text it printed. The CLI prints both and exits
with a non-zero status.
"""


class PolicyError(Exception):
    """Base class for all operator-visible failures."""

    def __init__(self, message: str, detail: str = ""):
        super().__init__(message)
        self.message = message
        self.detail = detail.strip()

    def __str__(self) -> str:
        if self.detail:
            return f"{self.message}\n{self.detail}"
        return self.message


class CorruptState(PolicyError):
    """The local state file exists but cannot be decoded."""


class TemplateError(PolicyError):
    """A template references an undefined binding or is malformed."""


class SessionVerifyFailed(PolicyError):
    """A session could be read but did not verify."""


class TemplateInvalid(PolicyError):
    """The rendered policy document was rejected by the dry-run check."""


class SessionCreateFailed(PolicyError):
    """The session store rejected a create/update."""


class MeasurementFailed(PolicyError):
    """The MRENCLAVE of the target binary could not be determined."""


class PolicyFileExists(PolicyError):
    """A policy file would be overwritten without --force."""


class PolicyFileMissing(PolicyError):
    """A policy file required by the cosign variant does not exist."""


class WorkloadFailed(PolicyError):
    """An attested workload (QR generator, cosign) exited with an error."""
