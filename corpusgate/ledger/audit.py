"""
corpusgate/ledger/audit.py

Append-only audit log for access decisions.

record() MUST, in this exact order:
  1. Acquire lock
  2. Build the entry with the next sequence and prev_hash
  3. Sign the entry's canonical bytes
  4. Append to the JSONL file (flush + fsync)
  5. Advance in-memory state, only after a confirmed write
  6. Return the signed entry

Chain:
    prev_hash = SHA-256(JCS(prev.to_signing_dict()))
    first     = GENESIS_HASH ("0" * 64)

Entries are never rewritten or deleted. A failed write raises
AuditWriteFailure and leaves the log exactly as it was.
"""

import json
import os
import threading
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from corpusgate.core.canonical import canonical_hash, canonicalize
from corpusgate.core.crypto import SigningKey
from corpusgate.core.exceptions import AuditLogError, AuditWriteFailure
from corpusgate.core.logs import get_logger
from corpusgate.core.models import AuditRecord
from corpusgate.core.time import gate_timestamp, parse_timestamp

log = get_logger(__name__)

GENESIS_HASH = "0" * 64


class EntryType:
    DECISION = "decision"
    ADMIN    = "admin"


_VALID_ENTRY_TYPES = {EntryType.DECISION, EntryType.ADMIN}


@dataclass
class AuditEntry:
    """One line of the audit log."""
    sequence:          int
    entry_id:          str
    entry_type:        str
    timestamp:         str
    prev_hash:         str
    signer_public_key: str
    payload:           Dict[str, Any]
    signature:         Optional[str] = None

    def to_signing_dict(self) -> Dict[str, Any]:
        return {
            "sequence":          self.sequence,
            "entry_id":          self.entry_id,
            "entry_type":        self.entry_type,
            "timestamp":         self.timestamp,
            "prev_hash":         self.prev_hash,
            "signer_public_key": self.signer_public_key,
            "payload":           self.payload,
        }

    def to_dict(self) -> Dict[str, Any]:
        d = self.to_signing_dict()
        d["signature"] = self.signature
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuditEntry":
        return cls(
            sequence=          data["sequence"],
            entry_id=          data["entry_id"],
            entry_type=        data["entry_type"],
            timestamp=         data["timestamp"],
            prev_hash=         data["prev_hash"],
            signer_public_key= data["signer_public_key"],
            payload=           data.get("payload", {}),
            signature=         data.get("signature"),
        )

    def entry_hash(self) -> str:
        """The prev_hash the next entry must carry."""
        return canonical_hash(self.to_signing_dict())

    def sign(self, key: SigningKey) -> "AuditEntry":
        self.signature = key.sign(canonicalize(self.to_signing_dict()))
        return self

    def verify_signature(self) -> bool:
        if not self.signature:
            return False
        return SigningKey.verify_detached(
            canonicalize(self.to_signing_dict()),
            self.signature,
            self.signer_public_key,
        )

    @property
    def content_id(self) -> Optional[str]:
        return self.payload.get("content_id")


@dataclass
class Violation:
    """A single integrity problem found by verify()."""
    at_sequence: int
    entry_id:    str
    kind:        str   # "sequence_gap" | "chain_break" | "invalid_signature" | "schema"
    detail:      str


@dataclass
class AuditReport:
    total_entries:      int
    chain_valid:        bool
    valid_signatures:   int
    invalid_signatures: int
    violations:         List[Violation] = field(default_factory=list)
    entry_type_counts:  Dict[str, int] = field(default_factory=dict)
    first_timestamp:    Optional[str] = None
    last_timestamp:     Optional[str] = None

    @property
    def valid(self) -> bool:
        return self.chain_valid and not self.violations

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid":              self.valid,
            "total_entries":      self.total_entries,
            "chain_valid":        self.chain_valid,
            "valid_signatures":   self.valid_signatures,
            "invalid_signatures": self.invalid_signatures,
            "entry_type_counts":  self.entry_type_counts,
            "first_timestamp":    self.first_timestamp,
            "last_timestamp":     self.last_timestamp,
            "violations": [
                {
                    "at_sequence": v.at_sequence,
                    "entry_id":    v.entry_id,
                    "kind":        v.kind,
                    "detail":      v.detail,
                }
                for v in self.violations
            ],
        }


def read_entries(path: Path) -> List[AuditEntry]:
    """
    Load every entry of a JSONL audit file.

    Raises:
        FileNotFoundError: path does not exist.
        AuditLogError:     a line is not valid JSON or lacks required fields.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Audit log not found: {path}")

    entries: List[AuditEntry] = []
    with open(path, "r", encoding="utf-8") as f:
        for line_num, raw in enumerate(f, 1):
            raw = raw.strip()
            if not raw:
                continue
            try:
                entries.append(AuditEntry.from_dict(json.loads(raw)))
            except json.JSONDecodeError as exc:
                raise AuditLogError(
                    f"Malformed JSON at audit line {line_num}: {exc}"
                ) from exc
            except (KeyError, TypeError) as exc:
                raise AuditLogError(
                    f"Missing audit field at line {line_num}: {exc}"
                ) from exc
    return entries


def verify_entries(entries: List[AuditEntry]) -> AuditReport:
    """Check schema, sequence, chain linkage and every signature."""
    violations: List[Violation] = []
    counts: Dict[str, int] = {}
    valid_sigs = 0

    for i, entry in enumerate(entries):
        counts[entry.entry_type] = counts.get(entry.entry_type, 0) + 1

        if entry.entry_type not in _VALID_ENTRY_TYPES:
            violations.append(Violation(
                entry.sequence, entry.entry_id, "schema",
                f"Unknown entry_type {entry.entry_type!r}",
            ))

        try:
            parse_timestamp(entry.timestamp)
        except ValueError:
            violations.append(Violation(
                entry.sequence, entry.entry_id, "schema",
                f"Malformed timestamp {entry.timestamp!r}",
            ))

        if entry.sequence != i:
            violations.append(Violation(
                entry.sequence, entry.entry_id, "sequence_gap",
                f"Expected sequence {i}, got {entry.sequence}",
            ))

        expected = entries[i - 1].entry_hash() if i > 0 else GENESIS_HASH
        if entry.prev_hash != expected:
            violations.append(Violation(
                entry.sequence, entry.entry_id, "chain_break",
                f"prev_hash mismatch: expected ...{expected[-12:]}, "
                f"got ...{str(entry.prev_hash)[-12:]}",
            ))

        if entry.verify_signature():
            valid_sigs += 1
        else:
            violations.append(Violation(
                entry.sequence, entry.entry_id, "invalid_signature",
                "Signature does not verify against signer_public_key",
            ))

    chain_valid = not any(
        v.kind in ("chain_break", "sequence_gap") for v in violations
    )
    return AuditReport(
        total_entries=      len(entries),
        chain_valid=        chain_valid,
        valid_signatures=   valid_sigs,
        invalid_signatures= len(entries) - valid_sigs,
        violations=         violations,
        entry_type_counts=  counts,
        first_timestamp=    entries[0].timestamp if entries else None,
        last_timestamp=     entries[-1].timestamp if entries else None,
    )


class AuditLog:
    """
    Signed, hash-chained audit log.

    With a path, entries are appended to ``<path>`` as JSONL and state is
    restored from it on construction. Without a path, entries are kept in
    memory only.

    Thread-safe via internal lock (single-process only). The global
    sequence fixes request order across all content items.
    """

    def __init__(
        self,
        path:        Optional[Path] = None,
        signing_key: Optional[SigningKey] = None,
    ) -> None:
        self.path = Path(path) if path is not None else None
        self.signing_key = signing_key or SigningKey.generate()

        self._lock = threading.Lock()
        self._entries: List[AuditEntry] = []

        if self.path is not None and self.path.exists():
            self._restore()

    # ── Public API ────────────────────────────────────────────

    def record(self, record: AuditRecord) -> AuditEntry:
        """Append one decision record. Raises AuditWriteFailure."""
        return self._append(EntryType.DECISION, record.to_payload())

    def record_admin(self, action: str, **details: Any) -> AuditEntry:
        """Append one administrative action (rule publication, allowlist change)."""
        return self._append(EntryType.ADMIN, {"action": action, **details})

    def entries(self) -> List[AuditEntry]:
        with self._lock:
            return list(self._entries)

    def history(self, content_id: str) -> List[AuditEntry]:
        """Decision entries for one content item, in request order."""
        return [
            e for e in self.entries()
            if e.entry_type == EntryType.DECISION and e.content_id == content_id
        ]

    def verify(self) -> AuditReport:
        return verify_entries(self.entries())

    def __len__(self) -> int:
        return len(self._entries)

    # ── Internal ──────────────────────────────────────────────

    def _append(self, entry_type: str, payload: Dict[str, Any]) -> AuditEntry:
        with self._lock:
            prev = self._entries[-1] if self._entries else None
            entry = AuditEntry(
                sequence=          len(self._entries),
                entry_id=          f"aud-{uuid.uuid4()}",
                entry_type=        entry_type,
                timestamp=         gate_timestamp(),
                prev_hash=         prev.entry_hash() if prev else GENESIS_HASH,
                signer_public_key= self.signing_key.public_key_hex,
                payload=           payload,
            )
            try:
                entry.sign(self.signing_key)
                line = json.dumps(entry.to_dict(), ensure_ascii=False)
            except (TypeError, ValueError) as exc:
                raise AuditWriteFailure(
                    f"Audit entry could not be serialized: {exc}",
                    {"entry_type": entry_type},
                ) from exc

            if self.path is not None:
                self._write_line(line)

            self._entries.append(entry)
            return entry

    def _write_line(self, line: str) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line + "\n")
                f.flush()
                os.fsync(f.fileno())
        except OSError as exc:
            log.error("audit_write_failed", path=str(self.path), error=str(exc))
            raise AuditWriteFailure(
                f"Failed to append audit entry: {exc}",
                {"path": str(self.path)},
            ) from exc

    def _restore(self) -> None:
        """
        Load existing entries and refuse to continue a broken chain.
        Appending after a chain break would bury the break.
        """
        entries = read_entries(self.path)
        report = verify_entries(entries)
        if not report.chain_valid:
            first = report.violations[0]
            raise AuditLogError(
                "Existing audit log fails chain verification",
                {"path": str(self.path), "at_sequence": first.at_sequence, "kind": first.kind},
            )
        self._entries = entries
        log.info("audit_log_restored", path=str(self.path), entries=len(entries))
