"""
corpusgate policy engine

Components:
- classifier: explicit category / license state classification
- store: versioned immutable rule tables
- allowlist: always-public content ids
- licensing: license state machine
- evaluator: fixed-precedence decision chain
"""

from corpusgate.policy.allowlist import AllowlistRegistry
from corpusgate.policy.evaluator import DecisionEvaluator, decide
from corpusgate.policy.licensing import LicenseRegistry, validate_transition
from corpusgate.policy.store import PolicyStore, RuleTable, default_rules, load_rules

__all__ = [
    "AllowlistRegistry",
    "DecisionEvaluator",
    "LicenseRegistry",
    "PolicyStore",
    "RuleTable",
    "decide",
    "default_rules",
    "load_rules",
    "validate_transition",
]
