"""
tests/test_gate.py

AccessGate wiring: construction from config, admin trail, persistence.
"""

from pathlib import Path

import pytest

from corpusgate import AccessGate, GateConfig
from corpusgate.core.exceptions import (
    AuditWriteFailure,
    ConfigError,
    InvalidTransition,
    PolicyError,
)
from corpusgate.core.models import (
    AccessRequest,
    Category,
    ContentItem,
    LicenseState,
    Outcome,
    PolicyRule,
    Reason,
    RequesterTier,
)
from corpusgate.ledger.audit import EntryType, read_entries
from corpusgate.policy.evaluator import decide
from corpusgate.policy.store import default_rules


def _admin(audit):
    return [e.payload for e in audit.entries() if e.entry_type == EntryType.ADMIN]


def _refuse_admin(action, **details):
    raise AuditWriteFailure("disk full")


def _public_outcome(gate, item):
    """Outcome for a public request, without writing to the audit log."""
    return decide(
        item,
        RequesterTier.PUBLIC,
        gate.store.snapshot(),
        gate.allowlist.snapshot(),
        gate.licenses.state_of,
    ).outcome


class TestFromConfig:

    def test_defaults(self):
        gate = AccessGate.from_config(GateConfig())
        assert gate.store.version == 1
        assert len(gate.store.snapshot()) == 16
        assert len(gate.allowlist) == 0
        assert gate.audit.path is None

    def test_example_files(self, policy_file, allowlist_file):
        gate = AccessGate.from_config(
            GateConfig(policy_file=policy_file, allowlist_file=allowlist_file)
        )
        assert gate.store.snapshot().name == "corpus-access"
        assert "synthesis-method-overview" in gate.allowlist

        item = ContentItem("synthesis-method-overview", "full_transcript", "no_permission")
        d = gate.evaluate(item, AccessRequest(item.content_id))
        assert d.reason is Reason.ALLOWLIST_OVERRIDE

    def test_example_policy_equals_defaults(self, policy_file):
        from_file = AccessGate.from_config(GateConfig(policy_file=policy_file))
        built_in = AccessGate.from_config(GateConfig())
        assert from_file.store.snapshot().table_hash == built_in.store.snapshot().table_hash

    def test_key_created_and_reused(self, tmp_path):
        config = GateConfig(
            audit_path=tmp_path / "audit.jsonl",
            key_path=tmp_path / "keys" / "audit.pem",
        )
        first = AccessGate.from_config(config)
        assert config.key_path.exists()

        second = AccessGate.from_config(config)
        assert (
            first.audit.signing_key.public_key_hex
            == second.audit.signing_key.public_key_hex
        )

    def test_bad_policy_file(self, tmp_path):
        path = tmp_path / "policy.yaml"
        path.write_text("rules: not-a-list\n", encoding="utf-8")
        with pytest.raises(PolicyError):
            AccessGate.from_config(GateConfig(policy_file=path))

    def test_missing_allowlist_file(self, tmp_path):
        with pytest.raises(ConfigError):
            AccessGate.from_config(GateConfig(allowlist_file=tmp_path / "missing.yaml"))


class TestAdminTrail:

    def test_publish_rules_recorded(self, gate, audit):
        version = gate.publish_rules(default_rules(), name="revised")
        assert version == 2
        [record] = _admin(audit)
        assert record["action"] == "publish_rules"
        assert record["version"] == 2
        assert record["rule_count"] == 16
        assert record["table_hash"] == gate.store.snapshot().table_hash

    def test_rejected_publication_not_recorded(self, gate, audit):
        with pytest.raises(PolicyError):
            gate.publish_rules([
                PolicyRule.of("full_transcript", "no_permission", "ALLOW_FULL"),
            ])
        assert gate.store.version == 1
        assert _admin(audit) == []

    def test_license_updates_recorded(self, gate, audit):
        gate.update_license_state("quote_excerpt", "pending")
        gate.update_license_state("quote_excerpt", "denied")
        gate.reset_license_state("quote_excerpt")

        records = _admin(audit)
        assert [r["action"] for r in records] == [
            "update_license_state",
            "update_license_state",
            "reset_license_state",
        ]
        assert records[1]["previous"] == "pending"
        assert records[1]["current"] == "denied"
        assert records[2]["previous"] == "denied"
        assert gate.licenses.state_of(Category.QUOTE_EXCERPT) is LicenseState.NO_PERMISSION

    def test_invalid_transition_not_recorded(self, gate, audit):
        with pytest.raises(InvalidTransition):
            gate.update_license_state("full_transcript", "granted")
        assert _admin(audit) == []

    def test_allowlist_changes_recorded_once(self, gate, audit):
        assert gate.allowlist_add("X")
        assert not gate.allowlist_add("X")
        assert gate.allowlist_remove("X")
        assert not gate.allowlist_remove("X")
        assert [r["action"] for r in _admin(audit)] == ["allowlist_add", "allowlist_remove"]

    def test_allowlist_removal_restores_base_rule(self, gate):
        item = ContentItem("X", "full_transcript", "no_permission")
        gate.allowlist_add("X")
        assert gate.evaluate(item, AccessRequest("X")).outcome is Outcome.ALLOW_FULL
        gate.allowlist_remove("X")
        assert gate.evaluate(item, AccessRequest("X")).outcome is Outcome.ALLOW_EXCERPT


class TestAuditedAdminChanges:
    """An admin change whose audit record cannot be written does not apply."""

    @pytest.fixture
    def broken_gate(self, gate, audit, monkeypatch):
        def refuse(line):
            raise AuditWriteFailure("disk full")

        monkeypatch.setattr(audit, "path", Path("unused.jsonl"))
        monkeypatch.setattr(audit, "_write_line", refuse)
        return gate

    def test_publish_rules(self, broken_gate):
        with pytest.raises(AuditWriteFailure):
            broken_gate.publish_rules(default_rules())
        assert broken_gate.store.version == 1
        assert [h["version"] for h in broken_gate.store.history()] == [1]

    def test_allowlist_add(self, broken_gate):
        with pytest.raises(AuditWriteFailure):
            broken_gate.allowlist_add("X")
        assert "X" not in broken_gate.allowlist

        item = ContentItem("X", "full_transcript", "no_permission")
        assert _public_outcome(broken_gate, item) is Outcome.ALLOW_EXCERPT

    def test_allowlist_remove(self, gate, audit, monkeypatch):
        gate.allowlist_add("X")
        monkeypatch.setattr(audit, "record_admin", _refuse_admin)
        with pytest.raises(AuditWriteFailure):
            gate.allowlist_remove("X")
        assert "X" in gate.allowlist

    def test_license_changes(self, gate, audit, monkeypatch):
        gate.update_license_state("full_transcript", "pending")
        monkeypatch.setattr(audit, "record_admin", _refuse_admin)
        with pytest.raises(AuditWriteFailure):
            gate.update_license_state("full_transcript", "granted")
        with pytest.raises(AuditWriteFailure):
            gate.reset_license_state("full_transcript")
        assert gate.licenses.state_of(Category.FULL_TRANSCRIPT) is LicenseState.PENDING

    def test_nothing_recorded(self, broken_gate, audit):
        with pytest.raises(AuditWriteFailure):
            broken_gate.publish_rules(default_rules())
        with pytest.raises(AuditWriteFailure):
            broken_gate.allowlist_add("X")
        assert _admin(audit) == []


class TestPersistence:

    def test_decisions_survive_restart(self, tmp_path):
        config = GateConfig(
            audit_path=tmp_path / "audit.jsonl",
            key_path=tmp_path / "audit.pem",
        )
        gate = AccessGate.from_config(config)
        gate.evaluate(ContentItem("a", "distillation"), AccessRequest("a"))
        gate.allowlist_add("b")

        restarted = AccessGate.from_config(config)
        restarted.evaluate(ContentItem("a", "distillation"), AccessRequest("a"))

        entries = read_entries(config.audit_path)
        assert [e.sequence for e in entries] == [0, 1, 2]
        assert len(restarted.audit.history("a")) == 2
        assert restarted.audit.verify().valid

    def test_repr(self, gate):
        assert "rule_table_version=1" in repr(gate)
