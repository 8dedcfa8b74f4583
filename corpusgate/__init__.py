"""
corpusgate/__init__.py

corpusgate: content access policy engine for research corpora.

Decides, per content item and request, whether the requester sees the
full item, an excerpt, or nothing, and records every decision in a
signed, hash-chained audit log.
"""

__version__ = "0.3.0"

from corpusgate.core.models import (
    AccessRequest,
    AuditRecord,
    Category,
    ContentItem,
    Decision,
    LicenseState,
    Outcome,
    PolicyRule,
    Reason,
    RequesterTier,
)
from corpusgate.core.exceptions import (
    AuditWriteFailure,
    CorpusGateError,
    InvalidTransition,
    MissingRule,
    UnclassifiedContent,
)
from corpusgate.config import GateConfig
from corpusgate.gate import AccessGate

__all__ = [
    # Model
    "AccessRequest",
    "AuditRecord",
    "Category",
    "ContentItem",
    "Decision",
    "LicenseState",
    "Outcome",
    "PolicyRule",
    "Reason",
    "RequesterTier",
    # Errors
    "AuditWriteFailure",
    "CorpusGateError",
    "InvalidTransition",
    "MissingRule",
    "UnclassifiedContent",
    # Entry points
    "AccessGate",
    "GateConfig",
]
