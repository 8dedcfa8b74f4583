"""
tests/test_audit_log.py

Audit log: chain, signatures, tamper detection, restore, history.
"""

import json

import pytest

from corpusgate.core.crypto import SigningKey
from corpusgate.core.exceptions import AuditLogError, AuditWriteFailure
from corpusgate.core.models import (
    AuditRecord,
    ContentItem,
    Decision,
    Outcome,
    Reason,
    RequesterTier,
)
from corpusgate.ledger.audit import (
    GENESIS_HASH,
    AuditEntry,
    AuditLog,
    EntryType,
    read_entries,
    verify_entries,
)


def _record(content_id="doc", outcome=Outcome.ALLOW_FULL, reason=Reason.BASE_POLICY_RULE):
    item = ContentItem(content_id, "distillation", "no_permission")
    decision = Decision(outcome, reason, 1, content_id)
    return AuditRecord.capture(item, RequesterTier.PUBLIC, False, decision)


def _rewrite(path, mutate):
    lines = path.read_text(encoding="utf-8").splitlines()
    lines = mutate(lines)
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")


@pytest.fixture
def log_path(tmp_path):
    return tmp_path / "audit" / "audit.jsonl"


@pytest.fixture
def filled(log_path, key):
    audit = AuditLog(path=log_path, signing_key=key)
    audit.record(_record("a"))
    audit.record(_record("b"))
    audit.record_admin("allowlist_add", content_id="b")
    audit.record(_record("a", Outcome.DENY, Reason.MISSING_RULE))
    return audit


# ─────────────────────────────────────────────────────────────
# Chain
# ─────────────────────────────────────────────────────────────

class TestChain:

    def test_first_entry_links_to_genesis(self, audit):
        entry = audit.record(_record())
        assert entry.sequence == 0
        assert entry.prev_hash == GENESIS_HASH
        assert entry.entry_type == EntryType.DECISION

    def test_entries_link_to_predecessor(self, audit):
        first = audit.record(_record("a"))
        second = audit.record(_record("b"))
        assert second.sequence == 1
        assert second.prev_hash == first.entry_hash()

    def test_signatures_verify(self, audit, key):
        entry = audit.record(_record())
        assert entry.signer_public_key == key.public_key_hex
        assert entry.verify_signature()

    def test_verify_clean_log(self, filled):
        report = filled.verify()
        assert report.valid
        assert report.total_entries == 4
        assert report.valid_signatures == 4
        assert report.entry_type_counts == {"decision": 3, "admin": 1}

    def test_empty_log_is_valid(self, audit):
        report = audit.verify()
        assert report.valid
        assert report.total_entries == 0
        assert report.first_timestamp is None

    def test_file_matches_memory(self, filled, log_path):
        on_disk = read_entries(log_path)
        assert [e.to_dict() for e in on_disk] == [e.to_dict() for e in filled.entries()]


# ─────────────────────────────────────────────────────────────
# Tamper detection
# ─────────────────────────────────────────────────────────────

class TestTamperDetection:

    def test_modified_payload(self, filled, log_path):
        def flip(lines):
            data = json.loads(lines[1])
            data["payload"]["decision"]["outcome"] = "DENY"
            lines[1] = json.dumps(data)
            return lines

        _rewrite(log_path, flip)
        report = verify_entries(read_entries(log_path))

        kinds = {(v.at_sequence, v.kind) for v in report.violations}
        assert (1, "invalid_signature") in kinds
        assert (2, "chain_break") in kinds
        assert not report.chain_valid
        assert not report.valid

    def test_deleted_entry(self, filled, log_path):
        _rewrite(log_path, lambda lines: lines[:1] + lines[2:])
        report = verify_entries(read_entries(log_path))

        kinds = {v.kind for v in report.violations}
        assert "sequence_gap" in kinds
        assert "chain_break" in kinds
        assert report.invalid_signatures == 0

    def test_foreign_signer(self, audit):
        entry = audit.record(_record())
        other = SigningKey.generate()
        forged = AuditEntry.from_dict(entry.to_dict())
        forged.signer_public_key = other.public_key_hex
        assert not forged.verify_signature()

    def test_unknown_entry_type(self, audit, key):
        entry = AuditEntry(
            sequence=0, entry_id="aud-x", entry_type="note",
            timestamp="2026-01-01T00:00:00.000Z", prev_hash=GENESIS_HASH,
            signer_public_key=key.public_key_hex, payload={},
        ).sign(key)
        report = verify_entries([entry])
        assert [v.kind for v in report.violations] == ["schema"]
        assert report.chain_valid

    def test_malformed_timestamp(self, audit, key):
        entry = AuditEntry(
            sequence=0, entry_id="aud-x", entry_type=EntryType.ADMIN,
            timestamp="2026-01-01 00:00:00", prev_hash=GENESIS_HASH,
            signer_public_key=key.public_key_hex, payload={},
        ).sign(key)
        report = verify_entries([entry])
        assert [v.kind for v in report.violations] == ["schema"]
        assert not report.valid


# ─────────────────────────────────────────────────────────────
# Persistence
# ─────────────────────────────────────────────────────────────

class TestPersistence:

    def test_restore_continues_chain(self, filled, log_path):
        reopened = AuditLog(path=log_path, signing_key=SigningKey.generate())
        assert len(reopened) == 4
        entry = reopened.record(_record("c"))
        assert entry.sequence == 4
        assert entry.prev_hash == filled.entries()[-1].entry_hash()
        assert reopened.verify().valid

    def test_restore_refuses_broken_chain(self, filled, log_path):
        _rewrite(log_path, lambda lines: lines[:1] + lines[2:])
        with pytest.raises(AuditLogError):
            AuditLog(path=log_path)

    def test_parent_directory_created(self, log_path, key):
        assert not log_path.parent.exists()
        AuditLog(path=log_path, signing_key=key).record(_record())
        assert log_path.exists()

    def test_write_failure_leaves_state_untouched(self, tmp_path, key):
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        audit = AuditLog(path=blocker / "audit.jsonl", signing_key=key)
        with pytest.raises(AuditWriteFailure):
            audit.record(_record())
        assert len(audit) == 0

    def test_unserializable_payload(self, audit):
        with pytest.raises(AuditWriteFailure):
            audit.record_admin("note", blob=object())
        assert len(audit) == 0


# ─────────────────────────────────────────────────────────────
# Reading
# ─────────────────────────────────────────────────────────────

class TestReading:

    def test_history_in_request_order(self, filled):
        history = filled.history("a")
        assert [e.sequence for e in history] == [0, 3]
        assert history[1].payload["decision"]["reason"] == "MissingRule"

    def test_history_skips_admin_entries(self, filled):
        assert [e.sequence for e in filled.history("b")] == [1]

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_entries(tmp_path / "nope.jsonl")

    def test_malformed_json(self, tmp_path):
        path = tmp_path / "audit.jsonl"
        path.write_text("{not json}\n", encoding="utf-8")
        with pytest.raises(AuditLogError):
            read_entries(path)

    def test_missing_field(self, tmp_path):
        path = tmp_path / "audit.jsonl"
        path.write_text(json.dumps({"sequence": 0}) + "\n", encoding="utf-8")
        with pytest.raises(AuditLogError):
            read_entries(path)
