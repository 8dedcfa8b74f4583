"""
corpusgate evaluate: one access decision from the command line.

Usage:
    corpusgate evaluate transcript --category full_transcript --license-state no_permission
    corpusgate evaluate transcript --category full_transcript --tier authenticated_lab
    corpusgate evaluate notes --category distillation --audit audit.jsonl --format json

Exit codes:
    0  access allowed (full or excerpt)
    1  access denied
    2  error (bad policy file, unreadable allowlist, unwritable key path, ...)
"""

import sys
from pathlib import Path
from typing import Optional

import click

from corpusgate.cli._style import configure_color, emit_error, emit_json, outcome_colored, row
from corpusgate.config import GateConfig
from corpusgate.core.exceptions import CorpusGateError
from corpusgate.core.models import AccessRequest, ContentItem, RequesterTier
from corpusgate.gate import AccessGate


@click.command(name="evaluate")
@click.argument("content_id")
@click.option("--category", default=None, help="Declared content category.")
@click.option("--license-state", default=None, help="Declared license state.")
@click.option(
    "--tier",
    type=click.Choice([t.value for t in RequesterTier]),
    default=RequesterTier.PUBLIC.value,
    show_default=True,
)
@click.option("--policy", "policy_file", type=click.Path(exists=True, dir_okay=False), default=None,
              help="YAML policy file. Built-in rules when omitted.")
@click.option("--allowlist", "allowlist_file", type=click.Path(exists=True, dir_okay=False), default=None,
              help="YAML list of always-public content ids.")
@click.option("--audit", "audit_path", type=click.Path(dir_okay=False), default=None,
              help="JSONL audit log to append to. In-memory when omitted.")
@click.option("--key", "key_path", type=click.Path(dir_okay=False), default=None,
              help="Ed25519 PEM key for audit signatures. Created if missing.")
@click.option(
    "--format", "fmt",
    type=click.Choice(["human", "json"], case_sensitive=False),
    default="human",
    show_default=True,
)
@click.option("--no-color", is_flag=True, default=False, help="Disable ANSI color output.")
def evaluate_command(
    content_id:     str,
    category:       Optional[str],
    license_state:  Optional[str],
    tier:           str,
    policy_file:    Optional[str],
    allowlist_file: Optional[str],
    audit_path:     Optional[str],
    key_path:       Optional[str],
    fmt:            str,
    no_color:       bool,
) -> None:
    """
    Evaluate access to CONTENT_ID and print the decision.
    """
    configure_color(not no_color)

    config = GateConfig(
        policy_file=    Path(policy_file) if policy_file else None,
        allowlist_file= Path(allowlist_file) if allowlist_file else None,
        audit_path=     Path(audit_path) if audit_path else None,
        key_path=       Path(key_path) if key_path else None,
    )
    try:
        gate = AccessGate.from_config(config)
    except (CorpusGateError, ValueError, OSError) as exc:
        emit_error(str(exc), fmt)
        sys.exit(2)

    item = ContentItem(content_id=content_id, category=category, license_state=license_state)
    decision = gate.evaluate(item, AccessRequest(content_id=content_id, requester_tier=tier))

    if fmt == "json":
        emit_json(decision.to_dict())
    else:
        click.echo()
        click.echo(row("Content", content_id))
        click.echo(row("Tier", tier))
        click.echo(row("Outcome", outcome_colored(decision.outcome.value)))
        click.echo(row("Reason", decision.reason.value))
        click.echo(row("Rule table", f"v{decision.rule_table_version}"))
        if decision.detail:
            click.echo(row("Detail", decision.detail))
        click.echo()

    sys.exit(0 if decision.allowed else 1)
