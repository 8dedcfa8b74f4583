"""
corpusgate/core/models.py

Access Policy Data Model

═══════════════════════════════════════════════════════════════════
CONTRACTS
═══════════════════════════════════════════════════════════════════

CONTRACT 1: Closed vocabularies
    Category, LicenseState, RequesterTier, Outcome and Reason are closed
    enumerations. parse() raises ValidationError on any other value.

CONTRACT 2: Immutability
    ContentItem, AccessRequest, PolicyRule, Decision and AuditRecord are
    frozen. Nothing mutates them after construction.

CONTRACT 3: Decision equality
    timestamp and decision_id are excluded from Decision equality.
    Two evaluations over identical inputs compare equal.

CONTRACT 4: Permissiveness
    DENY < ALLOW_EXCERPT < ALLOW_FULL, compared through Outcome.rank.
═══════════════════════════════════════════════════════════════════
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Union

from corpusgate.core.exceptions import ValidationError
from corpusgate.core.time import gate_timestamp


# ─────────────────────────────────────────────────────────────
# Vocabularies
# ─────────────────────────────────────────────────────────────

class _ClosedEnum(str, Enum):
    """String enum whose parse() refuses anything outside the vocabulary."""

    @classmethod
    def parse(cls, value: Any):
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip())
            except ValueError:
                pass
        raise ValidationError(
            f"Unrecognized {cls.__name__} {value!r}",
            {"valid": sorted(m.value for m in cls)},
        )


class Category(_ClosedEnum):
    DISTILLATION    = "distillation"
    QUOTE_EXCERPT   = "quote_excerpt"
    FULL_TRANSCRIPT = "full_transcript"
    PROMPT_TEMPLATE = "prompt_template"


class LicenseState(_ClosedEnum):
    NO_PERMISSION = "no_permission"
    PENDING       = "pending"
    GRANTED       = "granted"
    DENIED        = "denied"


class RequesterTier(_ClosedEnum):
    PUBLIC            = "public"
    AUTHENTICATED_LAB = "authenticated_lab"


class Outcome(_ClosedEnum):
    ALLOW_FULL    = "ALLOW_FULL"
    ALLOW_EXCERPT = "ALLOW_EXCERPT"
    DENY          = "DENY"

    @property
    def rank(self) -> int:
        """Permissiveness rank. Higher is more permissive."""
        return _OUTCOME_RANK[self]

    def at_least(self, other: "Outcome") -> bool:
        return self.rank >= other.rank


_OUTCOME_RANK = {
    Outcome.DENY:          0,
    Outcome.ALLOW_EXCERPT: 1,
    Outcome.ALLOW_FULL:    2,
}


class Reason(_ClosedEnum):
    """Which step of the precedence chain produced a decision."""
    UNCLASSIFIED_CONTENT = "UnclassifiedContent"
    ALLOWLIST_OVERRIDE   = "AllowlistOverride"
    LAB_TIER_OVERRIDE    = "LabTierOverride"
    BASE_POLICY_RULE     = "BasePolicyRule"
    MISSING_RULE         = "MissingRule"
    AUDIT_WRITE_FAILURE  = "AuditWriteFailure"


def _value(v: Any) -> Any:
    return v.value if isinstance(v, Enum) else v


def _declared(v: Any) -> Optional[str]:
    if v is None:
        return None
    return str(_value(v))


# ─────────────────────────────────────────────────────────────
# Inputs
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ContentItem:
    """
    A content record as declared by the content store.

    category and license_state are kept as declared. They may be missing
    or hold unrecognized strings; the classifier decides what they mean.
    """
    content_id:    str
    category:      Union[Category, str, None] = None
    license_state: Union[LicenseState, str, None] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ContentItem":
        content_id = data.get("id", data.get("content_id"))
        if not isinstance(content_id, str) or not content_id:
            raise ValidationError("Content record has no id", {"record": data})
        return cls(
            content_id=    content_id,
            category=      data.get("category"),
            license_state= data.get("license_state"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "content_id":    self.content_id,
            "category":      _value(self.category),
            "license_state": _value(self.license_state),
        }


@dataclass(frozen=True)
class AccessRequest:
    """One incoming request for one content item. Never persisted."""
    content_id:     str
    requester_tier: Union[RequesterTier, str] = RequesterTier.PUBLIC


@dataclass(frozen=True)
class PolicyRule:
    """(category, license_state) → base_outcome"""
    category:      Category
    license_state: LicenseState
    base_outcome:  Outcome

    @property
    def key(self):
        return (self.category, self.license_state)

    @classmethod
    def of(cls, category, license_state, base_outcome) -> "PolicyRule":
        return cls(
            category=      Category.parse(category),
            license_state= LicenseState.parse(license_state),
            base_outcome=  Outcome.parse(base_outcome),
        )

    def to_dict(self) -> Dict[str, str]:
        return {
            "category":      self.category.value,
            "license_state": self.license_state.value,
            "base_outcome":  self.base_outcome.value,
        }


# ─────────────────────────────────────────────────────────────
# Outputs
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Decision:
    """
    The result of one evaluation.

    rule_table_version is the version of the snapshot the evaluation
    started against, whichever step produced the outcome.
    """
    outcome:            Outcome
    reason:             Reason
    rule_table_version: int
    content_id:         str
    detail:             Optional[str] = None
    timestamp:          str = field(default_factory=gate_timestamp, compare=False)
    decision_id:        str = field(
        default_factory=lambda: f"dec-{uuid.uuid4()}", compare=False,
    )

    @property
    def allowed(self) -> bool:
        return self.outcome is not Outcome.DENY

    @property
    def is_full(self) -> bool:
        return self.outcome is Outcome.ALLOW_FULL

    def to_dict(self) -> Dict[str, Any]:
        return {
            "decision_id":        self.decision_id,
            "content_id":         self.content_id,
            "outcome":            self.outcome.value,
            "reason":             self.reason.value,
            "rule_table_version": self.rule_table_version,
            "detail":             self.detail,
            "timestamp":          self.timestamp,
        }


@dataclass(frozen=True)
class AuditRecord:
    """
    Full snapshot of one evaluation's inputs and its Decision.

    effective_license_state is the state the rule lookup used: the declared
    one, or the category's tracked state when the item declares none.
    None when the item could not be classified.
    """
    content_id:              str
    declared_category:       Optional[str]
    declared_license_state:  Optional[str]
    effective_license_state: Optional[str]
    requester_tier:          str
    allowlisted:             bool
    decision:                Decision

    @classmethod
    def capture(
        cls,
        item:        ContentItem,
        tier:        RequesterTier,
        allowlisted: bool,
        decision:    Decision,
        effective_license_state: Optional[LicenseState] = None,
    ) -> "AuditRecord":
        return cls(
            content_id=              item.content_id,
            declared_category=       _declared(item.category),
            declared_license_state=  _declared(item.license_state),
            effective_license_state= _declared(effective_license_state),
            requester_tier=          tier.value,
            allowlisted=             allowlisted,
            decision=                decision,
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "content_id":              self.content_id,
            "declared_category":       self.declared_category,
            "declared_license_state":  self.declared_license_state,
            "effective_license_state": self.effective_license_state,
            "requester_tier":          self.requester_tier,
            "allowlisted":             self.allowlisted,
            "decision":                self.decision.to_dict(),
        }
