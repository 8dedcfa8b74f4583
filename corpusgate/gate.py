"""
corpusgate/gate.py

AccessGate: the single object a serving layer holds.

    gate = AccessGate.from_config(GateConfig.from_env())
    decision = gate.evaluate(item, AccessRequest(item.content_id, tier))

evaluate() is the only per-request entry point. Every other public
method is administrative and writes an admin record to the audit log.
"""

from typing import Iterable, Optional

from corpusgate.config import GateConfig
from corpusgate.core.crypto import SigningKey
from corpusgate.core.logs import configure_logging
from corpusgate.core.models import (
    AccessRequest,
    Category,
    ContentItem,
    Decision,
    LicenseState,
    PolicyRule,
)
from corpusgate.ledger.audit import AuditLog
from corpusgate.policy.allowlist import AllowlistRegistry
from corpusgate.policy.evaluator import DecisionEvaluator
from corpusgate.policy.licensing import LicenseRegistry
from corpusgate.policy.store import PolicyStore, RuleTable, default_rules, load_rules


class AccessGate:
    """Policy store, allowlist, license registry and audit log, wired together."""

    def __init__(
        self,
        store:     PolicyStore,
        allowlist: AllowlistRegistry,
        audit:     AuditLog,
        licenses:  Optional[LicenseRegistry] = None,
    ):
        self.store = store
        self.allowlist = allowlist
        self.audit = audit
        self.licenses = licenses or LicenseRegistry()
        self.evaluator = DecisionEvaluator(
            store=store,
            allowlist=allowlist,
            audit=audit,
            license_fallback=self.licenses.state_of,
        )

    @classmethod
    def from_config(cls, config: GateConfig, configure_logs: bool = False) -> "AccessGate":
        """Create a gate from configuration files."""
        if configure_logs:
            configure_logging(config.log_level, config.log_json)

        if config.policy_file is not None:
            name, rules = load_rules(config.policy_file)
            store = PolicyStore(rules, name=name)
        else:
            store = PolicyStore(default_rules())

        if config.allowlist_file is not None:
            allowlist = AllowlistRegistry.load(config.allowlist_file)
        else:
            allowlist = AllowlistRegistry()

        key = SigningKey.load_or_create(config.key_path) if config.key_path else None
        audit = AuditLog(path=config.audit_path, signing_key=key)

        return cls(store=store, allowlist=allowlist, audit=audit)

    # ── Per-request ───────────────────────────────────────────

    def evaluate(self, item: ContentItem, request: AccessRequest) -> Decision:
        return self.evaluator.evaluate(item, request)

    # ── Administrative ────────────────────────────────────────
    #
    # Each change is recorded from inside the component's own lock, before
    # the change is installed. A failed audit write leaves the gate as it was.

    def publish_rules(self, rules: Iterable[PolicyRule], name: Optional[str] = None) -> int:
        def record(table: RuleTable) -> None:
            self.audit.record_admin(
                "publish_rules",
                version=table.version,
                table_hash=table.table_hash,
                rule_count=len(table),
            )

        return self.store.publish_new_version(rules, name=name, before_swap=record)

    def update_license_state(self, category, new_state) -> LicenseState:
        _, current = self.licenses.update(
            category, new_state, before_change=self._record_license("update_license_state"),
        )
        return current

    def reset_license_state(self, category) -> LicenseState:
        _, current = self.licenses.reset(
            category, before_change=self._record_license("reset_license_state"),
        )
        return current

    def allowlist_add(self, content_id: str) -> bool:
        return self.allowlist.add(
            content_id,
            before_change=lambda cid: self.audit.record_admin("allowlist_add", content_id=cid),
        )

    def allowlist_remove(self, content_id: str) -> bool:
        return self.allowlist.remove(
            content_id,
            before_change=lambda cid: self.audit.record_admin("allowlist_remove", content_id=cid),
        )

    def _record_license(self, action: str):
        def record(category: Category, previous: LicenseState, current: LicenseState) -> None:
            self.audit.record_admin(
                action,
                category=category.value,
                previous=previous.value,
                current=current.value,
            )
        return record

    def __repr__(self) -> str:
        return (
            f"AccessGate("
            f"rule_table_version={self.store.version}, "
            f"allowlist={len(self.allowlist)}, "
            f"audit_entries={len(self.audit)})"
        )
