"""
Persistent policy state.

One JSON record per working directory tracks the namespace, the names,
hashes and versions of its two sessions, the cached MRENCLAVE and the
current OTP secret. The record is always loaded and saved as a whole.
"""

import base64
import getpass
import json
import os
import secrets
import string
import tempfile
from pathlib import Path

from pydantic import BaseModel, ValidationError

from sconepolicy.errors import CorruptState
from sconepolicy.logger import get_logger
from sconepolicy.policies import OTP_VARIANT, PolicyVariant

logger = get_logger(__name__)

_NAME_ALPHABET = string.ascii_letters + string.digits


def random_name(length: int) -> str:
    """Random alphanumeric identifier, used for namespaces."""
    return "".join(secrets.choice(_NAME_ALPHABET) for _ in range(length))


def new_secret() -> str:
    """256 random bits, BASE32 encoded without padding."""
    return base64.b32encode(secrets.token_bytes(32)).decode("ascii").rstrip("=")


def current_user() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return random_name(10)


class PolicyState(BaseModel):
    """Snapshot of everything we know about the remote sessions."""

    namespace: str = ""  # randomly selected, never changes
    namespace_hash: str = ""  # empty: unknown / never created

    session: str = ""  # namespace/suffix
    session_hash: str = ""
    session_version: int = 0  # volume_version at last (re)creation

    session2: str = ""
    session_hash2: str = ""
    session_version2: int = 0

    mrenclave: str = ""  # empty: must be measured
    volume_version: int = 0  # incremented by roll-forward
    otp_image: str = ""
    otp_binary: str = ""
    scone_user: str = ""
    scone_account: str = ""
    secret: str = ""  # clear text for now

    @classmethod
    def initial(cls, variant: PolicyVariant = OTP_VARIANT) -> "PolicyState":
        """Fresh state with a random namespace and secret."""
        namespace = random_name(20)
        state = cls(
            namespace=namespace,
            session=f"{namespace}/{variant.primary_suffix}",
            session2=f"{namespace}/{variant.secondary_suffix}",
            scone_user=current_user(),
            scone_account=variant.account,
            otp_image="otpqr:scone",
            otp_binary="/bin/otpqr",
            secret=new_secret(),
        )
        logger.info(f"Initialized state is {state.redacted()}")
        return state

    def redacted(self) -> dict:
        """Field dump safe for logging."""
        data = self.model_dump()
        if data["secret"]:
            data["secret"] = "***"
        return data


class StateStore:
    """Loads and saves ``PolicyState`` at a fixed path."""

    def __init__(self, path: Path, variant: PolicyVariant = OTP_VARIANT):
        self.path = Path(path)
        self.variant = variant

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> PolicyState:
        """
        Read the persisted state, or return fresh defaults on first use.

        Raises:
            CorruptState: If the file exists but does not decode.
        """
        if not self.path.exists():
            logger.info(f"No state at {self.path}, starting fresh")
            return PolicyState.initial(self.variant)

        try:
            raw = self.path.read_text(encoding="utf-8")
            state = PolicyState.model_validate(json.loads(raw))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError, ValidationError) as e:
            raise CorruptState(
                f"Cannot decode state file '{self.path}'. Repair or delete it.",
                str(e),
            ) from e

        logger.debug(f"Read state from {self.path}: {state.redacted()}")
        return state

    def save(self, state: PolicyState) -> None:
        """Write the whole record; a crash never leaves a half-written file."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(state.model_dump(), indent=2)
        with tempfile.NamedTemporaryFile(
            "w", delete=False, dir=str(self.path.parent), encoding="utf-8"
        ) as tmp:
            tmp.write(payload)
            tmp.flush()
            os.fsync(tmp.fileno())
            tmp_name = tmp.name
        os.replace(tmp_name, self.path)
        logger.info(f"Wrote state to {self.path}")
        logger.debug(f"State: {state.redacted()}")
