"""
Policy store: versioned, immutable rule tables.

PROTOCOL INVARIANT: a RuleTable is never mutated. publish_new_version()
builds a complete new table and swaps the store's reference to it under a
lock. Readers take the reference once and see the old table or the new
one in full, never a mix.
"""

import threading
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

import yaml

from corpusgate.core.canonical import canonical_hash
from corpusgate.core.exceptions import MissingRule, PolicyError, ValidationError
from corpusgate.core.logs import get_logger
from corpusgate.core.models import Category, LicenseState, Outcome, PolicyRule
from corpusgate.core.time import gate_timestamp

log = get_logger(__name__)

RuleKey = Tuple[Category, LicenseState]

WILDCARD = "*"


class RuleTable:
    """
    An immutable snapshot of (category, license_state) → base_outcome.
    """

    def __init__(
        self,
        version: int,
        rules: Iterable[PolicyRule],
        name: str = "corpus-access",
        published_at: Optional[str] = None,
    ):
        mapping: Dict[RuleKey, Outcome] = {}
        for rule in rules:
            existing = mapping.get(rule.key)
            if existing is not None and existing is not rule.base_outcome:
                raise PolicyError(
                    "Conflicting rules for the same category and license state",
                    {
                        "category": rule.category.value,
                        "license_state": rule.license_state.value,
                    },
                )
            mapping[rule.key] = rule.base_outcome

        self._version = version
        self._name = name
        self._rules: Mapping[RuleKey, Outcome] = MappingProxyType(mapping)
        self._published_at = published_at or gate_timestamp()
        self._table_hash = canonical_hash(self._hash_surface())

    @property
    def version(self) -> int:
        return self._version

    @property
    def name(self) -> str:
        return self._name

    @property
    def published_at(self) -> str:
        return self._published_at

    @property
    def table_hash(self) -> str:
        """SHA-256 of the canonical rule list. Independent of version."""
        return self._table_hash

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, key: RuleKey) -> bool:
        return key in self._rules

    def lookup(self, category: Category, license_state: LicenseState) -> Outcome:
        """
        Return the base outcome for (category, license_state).

        Raises:
            MissingRule: no entry exists. Never falls back to a default.
        """
        try:
            return self._rules[(category, license_state)]
        except KeyError:
            raise MissingRule(
                "No rule for category and license state",
                {
                    "category": category.value,
                    "license_state": license_state.value,
                    "version": self._version,
                },
            ) from None

    def rules(self) -> List[PolicyRule]:
        """Rules sorted by category then license state."""
        return [
            PolicyRule(category=c, license_state=s, base_outcome=o)
            for (c, s), o in sorted(
                self._rules.items(), key=lambda kv: (kv[0][0].value, kv[0][1].value)
            )
        ]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self._name,
            "version": self._version,
            "table_hash": self._table_hash,
            "published_at": self._published_at,
            "rules": [r.to_dict() for r in self.rules()],
        }

    def _hash_surface(self) -> Dict[str, Any]:
        return {
            "name": self._name,
            "rules": [r.to_dict() for r in self.rules()],
        }

    def __repr__(self) -> str:
        return (
            f"RuleTable(name={self._name!r}, version={self._version}, "
            f"rules={len(self._rules)}, hash={self._table_hash[:12]}...)"
        )


def validate_rules(rules: Iterable[PolicyRule]) -> List[PolicyRule]:
    """
    Check a candidate rule list before publication.

    Rejects:
        - full_transcript with no_permission mapped to ALLOW_FULL
        - a category whose granted outcome is less permissive than
          its no_permission outcome
    """
    rules = list(rules)
    by_key = {r.key: r.base_outcome for r in rules}

    unlicensed = by_key.get((Category.FULL_TRANSCRIPT, LicenseState.NO_PERMISSION))
    if unlicensed is Outcome.ALLOW_FULL:
        raise PolicyError(
            "full_transcript without permission may not map to ALLOW_FULL",
            {"category": Category.FULL_TRANSCRIPT.value},
        )

    for category in Category:
        before = by_key.get((category, LicenseState.NO_PERMISSION))
        after = by_key.get((category, LicenseState.GRANTED))
        if before is not None and after is not None and not after.at_least(before):
            raise PolicyError(
                "Granting permission may not reduce access",
                {
                    "category": category.value,
                    "no_permission": before.value,
                    "granted": after.value,
                },
            )

    return rules


class PolicyStore:
    """
    Holds the active RuleTable and every table published before it.

    lookup() and snapshot() take no lock. publish_new_version() holds the
    lock only to assign the next version number and swap the reference.
    """

    def __init__(self, rules: Optional[Iterable[PolicyRule]] = None, name: str = "corpus-access"):
        self._lock = threading.Lock()
        self._history: List[RuleTable] = []
        self._active: RuleTable = RuleTable(version=0, rules=(), name=name)
        if rules is not None:
            self.publish_new_version(rules, name=name)

    def snapshot(self) -> RuleTable:
        """The active table. Hold on to it for the length of one evaluation."""
        return self._active

    @property
    def version(self) -> int:
        return self._active.version

    def lookup(self, category: Category, license_state: LicenseState) -> Outcome:
        return self._active.lookup(category, license_state)

    def publish_new_version(
        self,
        rules: Iterable[PolicyRule],
        name: Optional[str] = None,
        before_swap: Optional[Callable[[RuleTable], None]] = None,
    ) -> int:
        """
        Atomically replace the active table.

        before_swap, if given, is called with the new table while the lock
        is held and before it becomes active. If it raises, the table is
        discarded and the exception propagates.

        Returns:
            The new version id.

        Raises:
            PolicyError: the rule list fails validation. The active table
                         is left untouched.
        """
        rules = validate_rules(rules)
        with self._lock:
            table = RuleTable(
                version=self._active.version + 1,
                rules=rules,
                name=name or self._active.name,
            )
            if before_swap is not None:
                before_swap(table)
            self._history.append(table)
            self._active = table

        log.info(
            "rule_table_published",
            version=table.version,
            rule_count=len(table),
            table_hash=table.table_hash,
        )
        return table.version

    def history(self) -> List[Dict[str, Any]]:
        """Every published version, oldest first."""
        with self._lock:
            tables = list(self._history)
        return [
            {
                "version": t.version,
                "name": t.name,
                "table_hash": t.table_hash,
                "published_at": t.published_at,
                "rule_count": len(t),
            }
            for t in tables
        ]

    def get_version(self, version: int) -> Optional[RuleTable]:
        with self._lock:
            for table in self._history:
                if table.version == version:
                    return table
        return None


# ── Rule loading ──────────────────────────────────────────────

_DEFAULT_TABLE = {
    Category.DISTILLATION: {
        LicenseState.NO_PERMISSION: Outcome.ALLOW_FULL,
        LicenseState.PENDING:       Outcome.ALLOW_FULL,
        LicenseState.GRANTED:       Outcome.ALLOW_FULL,
        LicenseState.DENIED:        Outcome.ALLOW_FULL,
    },
    Category.PROMPT_TEMPLATE: {
        LicenseState.NO_PERMISSION: Outcome.ALLOW_FULL,
        LicenseState.PENDING:       Outcome.ALLOW_FULL,
        LicenseState.GRANTED:       Outcome.ALLOW_FULL,
        LicenseState.DENIED:        Outcome.ALLOW_FULL,
    },
    Category.QUOTE_EXCERPT: {
        LicenseState.NO_PERMISSION: Outcome.ALLOW_EXCERPT,
        LicenseState.PENDING:       Outcome.ALLOW_EXCERPT,
        LicenseState.GRANTED:       Outcome.ALLOW_FULL,
        LicenseState.DENIED:        Outcome.ALLOW_EXCERPT,
    },
    Category.FULL_TRANSCRIPT: {
        LicenseState.NO_PERMISSION: Outcome.ALLOW_EXCERPT,
        LicenseState.PENDING:       Outcome.ALLOW_EXCERPT,
        LicenseState.GRANTED:       Outcome.ALLOW_FULL,
        LicenseState.DENIED:        Outcome.DENY,
    },
}


def default_rules() -> List[PolicyRule]:
    """The built-in rule table covering every category and license state."""
    return [
        PolicyRule(category=category, license_state=state, base_outcome=outcome)
        for category, states in _DEFAULT_TABLE.items()
        for state, outcome in states.items()
    ]


def rules_from_dict(data: Dict[str, Any]) -> List[PolicyRule]:
    """
    Build rules from a policy document.

        name: corpus-access
        rules:
          - category: distillation
            license_state: "*"
            outcome: ALLOW_FULL

    ``license_state: "*"`` expands to every license state. Explicit
    entries for the same category override the wildcard.
    """
    if not isinstance(data, dict) or not isinstance(data.get("rules"), list):
        raise PolicyError("Policy document must contain a 'rules' list")

    wildcard: Dict[RuleKey, PolicyRule] = {}
    explicit: Dict[RuleKey, PolicyRule] = {}
    for index, entry in enumerate(data["rules"]):
        if not isinstance(entry, dict):
            raise PolicyError("Rule entry must be a mapping", {"index": index})
        try:
            outcome = entry.get("outcome", entry.get("base_outcome"))
            state = entry.get("license_state", WILDCARD)
            states = list(LicenseState) if state == WILDCARD else [state]
            for s in states:
                rule = PolicyRule.of(entry.get("category"), s, outcome)
                target = wildcard if state == WILDCARD else explicit
                if rule.key in target and target[rule.key] != rule:
                    raise PolicyError(
                        "Conflicting rules for the same category and license state",
                        {"index": index},
                    )
                target[rule.key] = rule
        except ValidationError as exc:
            raise PolicyError(
                f"Invalid rule entry: {exc.message}", {"index": index}
            ) from exc

    merged = {**wildcard, **explicit}
    return list(merged.values())


def load_rules(path: Path) -> Tuple[str, List[PolicyRule]]:
    """
    Load (name, rules) from a YAML policy file.

    Raises:
        PolicyError: unreadable file or malformed document.
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as exc:
        raise PolicyError(f"Failed to load policy file {path}: {exc}") from exc

    rules = rules_from_dict(data)
    return str(data.get("name", "corpus-access")), rules
