"""
corpusgate/cli/__init__.py

corpusgate CLI: root Click command group.

Registered in pyproject.toml as:

    [project.scripts]
    corpusgate = "corpusgate.cli:cli"
"""

import os

import click

from corpusgate.config import parse_flag
from corpusgate.core.logs import configure_logging
from corpusgate.cli.audit import audit_group
from corpusgate.cli.evaluate import evaluate_command
from corpusgate.cli.policy import policy_group


@click.group()
@click.version_option(package_name="corpusgate")
def cli() -> None:
    """
    corpusgate: content access policy engine.

    \b
    Commands:
      evaluate       Decide access to one content item.
      policy show    Print a rule table.
      audit verify   Verify an audit log: chain and signatures.
      audit history  Decisions for one content item.
    """
    configure_logging(
        level=os.environ.get("CORPUSGATE_LOG_LEVEL", "WARNING"),
        json=parse_flag(os.environ.get("CORPUSGATE_LOG_JSON")),
    )


cli.add_command(evaluate_command)
cli.add_command(policy_group)
cli.add_command(audit_group)
