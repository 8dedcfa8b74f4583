"""
Shared fixtures for the corpusgate test suite.
"""

from pathlib import Path

import pytest

from corpusgate.core.crypto import SigningKey
from corpusgate.gate import AccessGate
from corpusgate.ledger.audit import AuditLog
from corpusgate.policy.allowlist import AllowlistRegistry
from corpusgate.policy.store import PolicyStore, default_rules

EXAMPLES_DIR = Path(__file__).resolve().parent.parent / "examples"


@pytest.fixture
def key():
    """A fresh Ed25519 signing key for each test."""
    return SigningKey.generate()


@pytest.fixture
def store():
    return PolicyStore(default_rules())


@pytest.fixture
def allowlist():
    return AllowlistRegistry()


@pytest.fixture
def audit(key):
    """In-memory audit log."""
    return AuditLog(signing_key=key)


@pytest.fixture
def gate(store, allowlist, audit):
    return AccessGate(store=store, allowlist=allowlist, audit=audit)


@pytest.fixture
def policy_file():
    return EXAMPLES_DIR / "policy.yaml"


@pytest.fixture
def allowlist_file():
    return EXAMPLES_DIR / "allowlist.yaml"
