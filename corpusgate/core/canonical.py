"""
corpusgate/core/canonical.py

RFC 8785 (JCS) canonical JSON.

Rule-table hashes, the audit chain and audit signatures are all computed
over these bytes, so the same payload hashes identically on any machine.

RFC 8785: https://www.rfc-editor.org/rfc/rfc8785
"""

import hashlib

import jcs


def canonicalize(obj: dict) -> bytes:
    """
    Canonical UTF-8 bytes of a JSON-primitive dict.

    Key order in the input does not matter. Enum members must already be
    reduced to their ``.value``.
    """
    return jcs.canonicalize(obj)


def canonical_hash(obj: dict) -> str:
    """Lowercase hex SHA-256 of ``canonicalize(obj)``."""
    return hashlib.sha256(canonicalize(obj)).hexdigest()
