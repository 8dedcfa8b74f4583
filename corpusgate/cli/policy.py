"""
corpusgate policy: inspect rule tables.
"""

import sys
from typing import Optional

import click

from corpusgate.cli._style import (
    configure_color,
    emit_error,
    emit_json,
    heading,
    muted,
    outcome_colored,
    row,
)
from corpusgate.core.exceptions import CorpusGateError
from corpusgate.core.models import Category, LicenseState
from corpusgate.policy.store import PolicyStore, default_rules, load_rules


@click.group(name="policy")
def policy_group() -> None:
    """Inspect access policy rule tables."""


@policy_group.command(name="show")
@click.option("--policy", "policy_file", type=click.Path(exists=True, dir_okay=False), default=None,
              help="YAML policy file. Built-in rules when omitted.")
@click.option(
    "--format", "fmt",
    type=click.Choice(["human", "json"], case_sensitive=False),
    default="human",
    show_default=True,
)
@click.option("--no-color", is_flag=True, default=False, help="Disable ANSI color output.")
def show_command(policy_file: Optional[str], fmt: str, no_color: bool) -> None:
    """
    Validate a rule table and print it as a category × license state grid.
    """
    configure_color(not no_color)
    try:
        if policy_file:
            name, rules = load_rules(policy_file)
            store = PolicyStore(rules, name=name)
        else:
            store = PolicyStore(default_rules())
    except CorpusGateError as exc:
        emit_error(str(exc), fmt)
        sys.exit(2)

    table = store.snapshot()
    if fmt == "json":
        emit_json(table.to_dict())
        return

    click.echo()
    click.echo(row("Policy", table.name))
    click.echo(row("Hash", table.table_hash))
    click.echo(row("Rules", str(len(table))))
    click.echo()

    header = "".join(f"{s.value:<16}" for s in LicenseState)
    click.echo(heading(f"  {'category':<18}{header}"))
    for category in Category:
        cells = []
        for state in LicenseState:
            if (category, state) in table:
                value = table.lookup(category, state).value
                cells.append(outcome_colored(value, width=16))
            else:
                cells.append(muted(f"{'(missing)':<16}"))
        click.echo(f"  {category.value:<18}" + "".join(cells))
    click.echo()
