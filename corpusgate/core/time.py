"""
corpusgate/core/time.py

Timestamps on decisions, rule tables and audit entries.

Wire format: 2026-03-01T12:00:00.123Z
    UTC, millisecond precision, literal Z suffix.
"""

from datetime import datetime, timezone

WIRE_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def gate_timestamp() -> str:
    """Current UTC time in wire format."""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def parse_timestamp(value: str) -> datetime:
    """
    Parse a wire-format timestamp into an aware UTC datetime.

    Raises:
        ValueError: value is not in wire format.
    """
    if not isinstance(value, str) or len(value) != 24 or not value.endswith("Z"):
        raise ValueError(f"Not a wire-format timestamp: {value!r}")
    return datetime.strptime(value, WIRE_FORMAT).replace(tzinfo=timezone.utc)
