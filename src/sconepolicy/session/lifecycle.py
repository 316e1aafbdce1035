"""
Lifecycle of the namespace and its two dependent sessions.

``create`` reconciles namespace, primary and secondary session in that
order. A session is recreated when forced or when its recorded version
lags ``volume_version``; recreating the primary also recreates the
secondary, which imports the primary's volume and secret.

``roll_forward`` bumps ``volume_version`` and replaces the secret, saves
that immediately, and then runs ``create``.
"""

from pathlib import Path

from sconepolicy.attestation import Measurer, refresh_measurement
from sconepolicy.logger import get_logger
from sconepolicy.policies import PolicySet, PolicyVariant
from sconepolicy.session.reconciler import SessionReconciler
from sconepolicy.state import PolicyState, StateStore, new_secret
from sconepolicy.templates import build_bindings

logger = get_logger(__name__)

# Single-use markers written by the QR generator into the volume.
SINGLE_USE_FILES = ("single_run/once", "single_run/volume.fspf")


def needs_primary_update(state: PolicyState, force: bool) -> bool:
    return force or state.session_version != state.volume_version


def needs_secondary_update(state: PolicyState, primary_needed: bool) -> bool:
    return primary_needed or state.session_version2 != state.volume_version


class LifecycleCoordinator:
    """Runs create and roll-forward against one working directory."""

    def __init__(
        self,
        store: StateStore,
        reconciler: SessionReconciler,
        measurer: Measurer,
        policies: PolicySet,
        variant: PolicyVariant,
        workdir: Path,
    ):
        self.store = store
        self.reconciler = reconciler
        self.measurer = measurer
        self.policies = policies
        self.variant = variant
        self.workdir = Path(workdir)

    def _ensure_volume_dirs(self) -> None:
        for name in self.variant.volume_dirs:
            (self.workdir / name).mkdir(parents=True, exist_ok=True)

    def reconcile_all(self, state: PolicyState, force: bool) -> PolicyState:
        """
        Reconcile the three sessions and return the updated state.

        Nothing is saved here. If a step raises, the caller still holds the
        state it passed in.
        """
        state = refresh_measurement(state, self.measurer, force)

        outcome = self.reconciler.reconcile(
            state.namespace,
            state.namespace_hash,
            self.policies.namespace,
            build_bindings(state),
            force,
        )
        state = state.model_copy(update={"namespace_hash": outcome.hash})

        need_primary = needs_primary_update(state, force)
        outcome = self.reconciler.reconcile(
            state.session,
            state.session_hash,
            self.policies.primary,
            build_bindings(state),
            need_primary,
        )
        state = state.model_copy(
            update={"session_hash": outcome.hash, "session_version": state.volume_version}
        )
        logger.info(f"Session hash = {state.session_hash}")

        need_secondary = needs_secondary_update(state, need_primary)
        outcome = self.reconciler.reconcile(
            state.session2,
            state.session_hash2,
            self.policies.secondary,
            build_bindings(state),
            need_secondary,
        )
        state = state.model_copy(
            update={"session_hash2": outcome.hash, "session_version2": state.volume_version}
        )
        logger.info(f"Session hash2 = {state.session_hash2}")
        return state

    def create(self, force: bool = False) -> PolicyState:
        """Create or update all sessions and persist the result."""
        self._ensure_volume_dirs()
        state = self.reconcile_all(self.store.load(), force)
        self.store.save(state)
        return state

    def roll_forward(self, force: bool = True) -> PolicyState:
        """
        Replace the OTP secret and move to a new volume version.

        The new secret is saved before any remote call so it survives a
        failure of the following ``create``; rerunning ``create`` finishes
        the rotation.
        """
        state = self.store.load()
        state = state.model_copy(
            update={"volume_version": state.volume_version + 1, "secret": new_secret()}
        )
        self.store.save(state)
        logger.info(f"Rolled forward to volume version {state.volume_version}")

        for name in SINGLE_USE_FILES:
            (self.workdir / name).unlink(missing_ok=True)

        logger.info("Updating policies...")
        return self.create(force)
