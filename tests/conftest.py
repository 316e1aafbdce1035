"""Shared pytest fixtures and fakes."""

import hashlib
import re

import pytest

from sconepolicy.attestation import Measurer
from sconepolicy.cas import ServiceResult, SessionServiceClient
from sconepolicy.errors import MeasurementFailed
from sconepolicy.policies import OTP_POLICIES, OTP_VARIANT
from sconepolicy.session.lifecycle import LifecycleCoordinator
from sconepolicy.session.reconciler import SessionReconciler
from sconepolicy.state import StateStore

_NAME_LINE = re.compile(r"^name:\s*(\S+)", re.MULTILINE)

MUTATING_OPS = ("check", "create")


class FakeSessionService(SessionServiceClient):
    """In-memory session store recording every call."""

    def __init__(self):
        self.sessions: dict[str, tuple[str, str]] = {}  # name -> (document, hash)
        self.calls: list[tuple[str, str]] = []
        self.fail_on: set[str] = set()
        self.reject_names: set[str] = set()

    def _hash(self, document: str) -> str:
        return hashlib.sha256(document.encode()).hexdigest()[:32]

    def read_session(self, name):
        self.calls.append(("read", name))
        if "read" in self.fail_on or name not in self.sessions:
            return ServiceResult(ok=False, stderr=f"session {name} not found")
        return ServiceResult(ok=True, output=self.sessions[name][0])

    def verify_session(self, content):
        self.calls.append(("verify", content))
        if "verify" in self.fail_on:
            return ServiceResult(ok=False, stderr="signature mismatch")
        for document, session_hash in self.sessions.values():
            if document == content:
                return ServiceResult(ok=True, output=session_hash)
        return ServiceResult(ok=False, stderr="unknown session")

    def check_document(self, document):
        self.calls.append(("check", document))
        if "check" in self.fail_on:
            return ServiceResult(ok=False, stderr="line 3: unexpected key")
        return ServiceResult(ok=True)

    def create_session(self, document):
        self.calls.append(("create", document))
        name = _NAME_LINE.search(document).group(1)
        if "create" in self.fail_on or name in self.reject_names:
            return ServiceResult(ok=False, stderr="permission denied")
        session_hash = self._hash(document)
        self.sessions[name] = (document, session_hash)
        return ServiceResult(ok=True, output=session_hash)

    def ops(self, *names):
        return [c for c in self.calls if not names or c[0] in names]

    def created_names(self):
        return [_NAME_LINE.search(doc).group(1) for op, doc in self.calls if op == "create"]

    def reset_calls(self):
        self.calls.clear()


class FakeMeasurer(Measurer):
    def __init__(self, value="a" * 64, fail=False):
        self.value = value
        self.fail = fail
        self.calls = 0

    def measure(self, image, binary):
        self.calls += 1
        if self.fail:
            raise MeasurementFailed("Failed to determine MRENCLAVE", "no such image")
        return self.value


@pytest.fixture
def service():
    return FakeSessionService()


@pytest.fixture
def measurer():
    return FakeMeasurer()


@pytest.fixture
def store(tmp_path):
    return StateStore(tmp_path / "state.js", OTP_VARIANT)


@pytest.fixture
def coordinator(tmp_path, store, service, measurer):
    return LifecycleCoordinator(
        store=store,
        reconciler=SessionReconciler(service),
        measurer=measurer,
        policies=OTP_POLICIES,
        variant=OTP_VARIANT,
        workdir=tmp_path,
    )
