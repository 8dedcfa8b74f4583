"""
corpusgate audit ledger - signed, hash-chained, append-only.
"""

from corpusgate.ledger.audit import AuditEntry, AuditLog, AuditReport, read_entries

__all__ = ["AuditEntry", "AuditLog", "AuditReport", "read_entries"]
