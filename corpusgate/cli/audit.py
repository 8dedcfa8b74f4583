"""
corpusgate audit: inspect and verify audit logs.

Usage:
    corpusgate audit verify audit.jsonl
    corpusgate audit verify audit.jsonl --format json
    corpusgate audit verify audit.jsonl --quiet && echo "clean"
    corpusgate audit history audit.jsonl transcript

Exit codes (verify):
    0  log fully valid (sequence + chain + signatures)
    1  log has violations
    2  error (file missing, malformed JSON)
"""

import sys

import click

from corpusgate.cli._style import (
    configure_color,
    emit_error,
    emit_json,
    fail,
    ok,
    outcome_colored,
    row,
)
from corpusgate.core.exceptions import AuditLogError
from corpusgate.ledger.audit import EntryType, read_entries, verify_entries


@click.group(name="audit")
def audit_group() -> None:
    """Inspect and verify decision audit logs."""


@audit_group.command(name="verify")
@click.argument("path", type=click.Path(dir_okay=False))
@click.option(
    "--format", "fmt",
    type=click.Choice(["human", "json"], case_sensitive=False),
    default="human",
    show_default=True,
)
@click.option("--quiet", is_flag=True, default=False,
              help="Suppress all output. Use exit code only (0=valid, 1=invalid, 2=error).")
@click.option("--no-color", is_flag=True, default=False, help="Disable ANSI color output.")
def verify_command(path: str, fmt: str, quiet: bool, no_color: bool) -> None:
    """
    Verify an audit log: sequence, hash chain, signatures.
    """
    configure_color(not no_color)

    try:
        entries = read_entries(path)
    except (FileNotFoundError, AuditLogError) as exc:
        emit_error(str(exc), fmt, quiet)
        sys.exit(2)

    report = verify_entries(entries)

    if quiet:
        sys.exit(0 if report.valid else 1)

    if fmt == "json":
        emit_json({"path": path, **report.to_dict()})
        sys.exit(0 if report.valid else 1)

    click.echo()
    click.echo(row("Audit log", path))
    click.echo(row("Entries", str(report.total_entries)))
    for entry_type, count in sorted(report.entry_type_counts.items()):
        click.echo(row(f"  {entry_type}", str(count)))
    click.echo(row("Signatures", f"{report.valid_signatures} valid, {report.invalid_signatures} invalid"))
    if report.first_timestamp:
        click.echo(row("Span", f"{report.first_timestamp} → {report.last_timestamp}"))
    click.echo()

    if report.valid:
        click.echo(ok("  VALID: chain intact, all signatures verify"))
    else:
        click.echo(fail(f"  INVALID: {len(report.violations)} violation(s)"))
        for v in report.violations:
            click.echo(f"    [{v.at_sequence}] {v.kind}: {v.detail}")
    click.echo()

    sys.exit(0 if report.valid else 1)


@audit_group.command(name="history")
@click.argument("path", type=click.Path(dir_okay=False))
@click.argument("content_id")
@click.option(
    "--format", "fmt",
    type=click.Choice(["human", "json"], case_sensitive=False),
    default="human",
    show_default=True,
)
@click.option("--no-color", is_flag=True, default=False, help="Disable ANSI color output.")
def history_command(path: str, content_id: str, fmt: str, no_color: bool) -> None:
    """
    List every decision recorded for CONTENT_ID, in request order.
    """
    configure_color(not no_color)

    try:
        entries = read_entries(path)
    except (FileNotFoundError, AuditLogError) as exc:
        emit_error(str(exc), fmt)
        sys.exit(2)

    decisions = [
        e for e in entries
        if e.entry_type == EntryType.DECISION and e.content_id == content_id
    ]

    if fmt == "json":
        emit_json([e.to_dict() for e in decisions])
        return

    if not decisions:
        click.echo(f"  no decisions recorded for {content_id}")
        return

    for e in decisions:
        decision = e.payload.get("decision", {})
        click.echo(
            f"  {e.sequence:>6}  {e.timestamp}  "
            f"{e.payload.get('requester_tier', '?'):<18}"
            f"{outcome_colored(decision.get('outcome', '?'), width=15)}"
            f"{decision.get('reason', '?')}  v{decision.get('rule_table_version', '?')}"
        )
