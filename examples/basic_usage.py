"""
corpusgate: Basic Usage Example

Demonstrates:
- Building a gate from the example policy and allowlist
- Public vs lab-tier decisions
- Moving a category through the license state machine
- Verifying the audit log
"""

import tempfile
from pathlib import Path

from corpusgate import (
    AccessGate,
    AccessRequest,
    ContentItem,
    GateConfig,
    RequesterTier,
)

HERE = Path(__file__).parent


def show(gate: AccessGate, item: ContentItem, tier: RequesterTier) -> None:
    decision = gate.evaluate(item, AccessRequest(item.content_id, tier))
    print(
        f"  {item.content_id:<28} {tier.value:<18} "
        f"{decision.outcome.value:<14} {decision.reason.value}"
    )


def main():
    workdir = Path(tempfile.mkdtemp(prefix="corpusgate-"))
    config = GateConfig(
        policy_file=    HERE / "policy.yaml",
        allowlist_file= HERE / "allowlist.yaml",
        audit_path=     workdir / "audit.jsonl",
        key_path=       workdir / "audit.key",
    )
    gate = AccessGate.from_config(config, configure_logs=True)

    transcript = ContentItem("complete-transcript", "full_transcript")
    quotes     = ContentItem("quote-bank", "quote_excerpt", "no_permission")
    synthesis  = ContentItem("synthesis-method-overview", "full_transcript", "no_permission")
    broken     = ContentItem("mystery-file", None)

    print("Before permission:")
    for item in (transcript, quotes, synthesis, broken):
        show(gate, item, RequesterTier.PUBLIC)
    show(gate, transcript, RequesterTier.AUTHENTICATED_LAB)

    gate.update_license_state("full_transcript", "pending")
    gate.update_license_state("full_transcript", "granted")

    print("After permission granted:")
    show(gate, transcript, RequesterTier.PUBLIC)

    report = gate.audit.verify()
    print(f"Audit log: {report.total_entries} entries, valid={report.valid}")
    print(f"Written to {config.audit_path}")


if __name__ == "__main__":
    main()
