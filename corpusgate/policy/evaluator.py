"""
Decision evaluator.

PROTOCOL INVARIANT: precedence is fixed, highest first.

    1. classification fails        → DENY        UnclassifiedContent
    2. content id on allowlist     → ALLOW_FULL  AllowlistOverride
    3. tier is authenticated_lab   → ALLOW_FULL  LabTierOverride
    4. base rule found             → its outcome BasePolicyRule
    5. base rule missing           → DENY        MissingRule

Steps 1 and 5 are fail-closed. Any redesign must keep DENY at the bottom
of the chain.

Every evaluate() call writes exactly one audit record before returning.
If that write fails the caller gets DENY / AuditWriteFailure.
"""

from typing import Callable, FrozenSet, Optional

from corpusgate.core.exceptions import (
    AuditWriteFailure,
    MissingRule,
    UnclassifiedContent,
    ValidationError,
)
from corpusgate.core.logs import get_logger
from corpusgate.core.models import (
    AccessRequest,
    AuditRecord,
    Category,
    ContentItem,
    Decision,
    LicenseState,
    Outcome,
    Reason,
    RequesterTier,
)
from corpusgate.ledger.audit import AuditLog
from corpusgate.policy.allowlist import AllowlistRegistry
from corpusgate.policy.classifier import (
    classify,
    classify_license,
    effective_license_state,
)
from corpusgate.policy.store import PolicyStore, RuleTable

log = get_logger(__name__)


def resolve_tier(value) -> RequesterTier:
    """Anything that is not a recognized tier is treated as public."""
    try:
        return RequesterTier.parse(value)
    except ValidationError:
        return RequesterTier.PUBLIC


def decide(
    item:        ContentItem,
    tier:        RequesterTier,
    table:       RuleTable,
    allowlist:   FrozenSet[str],
    license_fallback: Optional[Callable[[Category], LicenseState]] = None,
) -> Decision:
    """
    Pure decision over explicit inputs. No audit, no shared state.
    """
    def _decision(outcome: Outcome, reason: Reason, detail: Optional[str] = None) -> Decision:
        return Decision(
            outcome=            outcome,
            reason=             reason,
            rule_table_version= table.version,
            content_id=         item.content_id,
            detail=             detail,
        )

    try:
        category = classify(item)
        license_state = classify_license(item, category, license_fallback)
    except UnclassifiedContent as exc:
        return _decision(Outcome.DENY, Reason.UNCLASSIFIED_CONTENT, exc.message)

    if item.content_id in allowlist:
        return _decision(Outcome.ALLOW_FULL, Reason.ALLOWLIST_OVERRIDE)

    if tier is RequesterTier.AUTHENTICATED_LAB:
        return _decision(Outcome.ALLOW_FULL, Reason.LAB_TIER_OVERRIDE)

    try:
        outcome = table.lookup(category, license_state)
    except MissingRule as exc:
        return _decision(Outcome.DENY, Reason.MISSING_RULE, str(exc))

    return _decision(
        outcome,
        Reason.BASE_POLICY_RULE,
        f"{category.value}/{license_state.value}",
    )


class DecisionEvaluator:
    """
    Combines classifier, policy store, allowlist and requester tier into a
    Decision, and records every Decision in the audit log.

    Read-only against shared state: the store and allowlist snapshots are
    taken once per call.
    """

    def __init__(
        self,
        store:      PolicyStore,
        allowlist:  AllowlistRegistry,
        audit:      AuditLog,
        license_fallback: Optional[Callable[[Category], LicenseState]] = None,
    ):
        self.store = store
        self.allowlist = allowlist
        self.audit = audit
        self.license_fallback = license_fallback

    def evaluate(self, item: ContentItem, request: AccessRequest) -> Decision:
        tier = resolve_tier(request.requester_tier)
        table = self.store.snapshot()
        members = self.allowlist.snapshot()

        if request.content_id != item.content_id:
            log.warning(
                "request_item_mismatch",
                request_content_id=request.content_id,
                item_content_id=item.content_id,
            )

        # The tracked state is read once so the decision and its record agree.
        license_state = effective_license_state(item, self.license_fallback)
        decision = decide(item, tier, table, members, lambda _category: license_state)
        allowlisted = item.content_id in members

        record = AuditRecord.capture(item, tier, allowlisted, decision, license_state)
        try:
            self.audit.record(record)
        except AuditWriteFailure as exc:
            log.error(
                "decision_unaudited",
                content_id=item.content_id,
                withheld_outcome=decision.outcome.value,
                error=str(exc),
            )
            return Decision(
                outcome=            Outcome.DENY,
                reason=             Reason.AUDIT_WRITE_FAILURE,
                rule_table_version= table.version,
                content_id=         item.content_id,
                detail=             exc.message,
            )

        if decision.outcome is Outcome.DENY:
            log.debug(
                "access_denied",
                content_id=item.content_id,
                reason=decision.reason.value,
                version=table.version,
            )
        return decision

