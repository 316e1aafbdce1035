"""
Reconciliation of a single session against the session store.

A session moves through Unknown -> Verified -> Validated -> Committed.
The reconciler never touches ``PolicyState``; it returns the hash the
caller should record. Any failure raises before a hash is returned, so a
failed run can simply be repeated.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional

from sconepolicy.cas import SessionServiceClient
from sconepolicy.errors import SessionCreateFailed, SessionVerifyFailed, TemplateInvalid
from sconepolicy.logger import get_logger
from sconepolicy.templates import (
    NO_PREDECESSOR,
    PREDECESSOR_KEY,
    Binding,
    TemplateRenderer,
)

logger = get_logger(__name__)


class ReconcileState(str, Enum):
    UNKNOWN = "unknown"
    VERIFIED = "verified"
    VALIDATED = "validated"
    COMMITTED = "committed"


@dataclass
class ReconcileOutcome:
    """Result of reconciling one session."""

    name: str
    hash: str
    state: ReconcileState

    @property
    def committed(self) -> bool:
        return self.state == ReconcileState.COMMITTED


class SessionReconciler:
    """Decides between skip, refresh and (re)create for one session."""

    def __init__(
        self,
        client: SessionServiceClient,
        renderer: Optional[TemplateRenderer] = None,
    ):
        self.client = client
        self.renderer = renderer or TemplateRenderer()

    def reconcile(
        self,
        name: str,
        known_hash: str,
        template: str,
        bindings: Mapping[str, Binding],
        force: bool = False,
    ) -> ReconcileOutcome:
        """
        Bring session ``name`` up to date.

        Args:
            name: Fully qualified session name.
            known_hash: Last hash recorded locally, "" if unknown.
            template: Policy template for this session.
            bindings: State bindings; the predecessor keys are filled in here.
            force: Recreate even if the session exists.

        Returns:
            The outcome; ``outcome.hash`` is the hash to record.

        Raises:
            SessionVerifyFailed: The session exists but does not verify.
            TemplateInvalid: The rendered document fails the dry-run check.
            SessionCreateFailed: The store rejected the document.
            TemplateError: The template references an unbound name.
        """
        if known_hash and not force:
            logger.debug(f"Session {name} known as {known_hash}, skipping")
            return ReconcileOutcome(name, known_hash, ReconcileState.UNKNOWN)

        logger.info(f"Determining hash of session {name}")
        read = self.client.read_session(name)
        if read.ok:
            logger.info(f"Got session {name}, verifying")
            verified = self.client.verify_session(read.output)
            if not verified.ok:
                raise SessionVerifyFailed(
                    f"Error verifying session {name}",
                    verified.stderr or verified.output,
                )
            logger.info(f"Verified session {name}")
            predecessor_key, predecessor = PREDECESSOR_KEY, verified.output
            outcome = ReconcileOutcome(name, verified.output, ReconcileState.VERIFIED)
        else:
            logger.info(f"Reading session {name} failed, creating it: {read.stderr.strip()}")
            predecessor_key, predecessor = NO_PREDECESSOR, ""
            outcome = ReconcileOutcome(name, known_hash, ReconcileState.UNKNOWN)
            force = True

        if not force:
            return outcome

        document = self.renderer.render(
            template,
            {**bindings, "predecessor_key": predecessor_key, "predecessor": predecessor},
        )

        check = self.client.check_document(document)
        if not check.ok:
            raise TemplateInvalid(
                f"Policy document for session {name} contains errors",
                check.stderr or check.output,
            )
        logger.info(f"Policy document for session {name} is correct")
        logger.debug(f"Session {name}: {ReconcileState.VALIDATED.value}")

        created = self.client.create_session(document)
        if not created.ok:
            raise SessionCreateFailed(
                f"Failed to create session {name}",
                created.stderr or created.output,
            )
        logger.info(f"Created session {name}: {created.output}")
        return ReconcileOutcome(name, created.output, ReconcileState.COMMITTED)
