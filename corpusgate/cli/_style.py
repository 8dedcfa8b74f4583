"""
Terminal output helpers shared by CLI commands.

Color goes through click.style and is switched off for --no-color or
when stdout is not a terminal.
"""

import json
import sys

import click

_color = {"enabled": True}

_OUTCOME_FG = {
    "ALLOW_FULL":    "green",
    "ALLOW_EXCERPT": "yellow",
    "DENY":          "red",
}


def configure_color(enabled: bool) -> None:
    _color["enabled"] = enabled and sys.stdout.isatty()


def paint(text: str, fg: str = None, bold: bool = False, dim: bool = False) -> str:
    if not _color["enabled"]:
        return text
    return click.style(text, fg=fg, bold=bold or None, dim=dim or None)


def ok(text: str) -> str:
    return paint(text, fg="green")


def fail(text: str) -> str:
    return paint(text, fg="red")


def heading(text: str) -> str:
    return paint(text, bold=True)


def muted(text: str) -> str:
    return paint(text, dim=True)


def row(label: str, value: str) -> str:
    return f"  {muted(f'{label:<20}')}  {value}"


def outcome_colored(outcome: str, width: int = 0) -> str:
    return paint(f"{outcome:<{width}}", fg=_OUTCOME_FG.get(outcome, "red"))


def emit_json(data) -> None:
    click.echo(json.dumps(data, indent=2, sort_keys=True))


def emit_error(message: str, fmt: str, quiet: bool = False) -> None:
    """JSON errors go to stdout so scripts can parse them; text goes to stderr."""
    if quiet:
        return
    if fmt == "json":
        emit_json({"error": message})
    else:
        click.echo(fail(f"  error: {message}"), err=True)
