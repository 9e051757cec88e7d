"""
Command-line interface for just-expression.
Certifies ESTree JSON produced by an external JavaScript parser.
"""
# typer relies on function calls used as default values
# pyright: reportCallInDefaultInitializer=false

from __future__ import annotations

import json
import logging
import sys
from dataclasses import replace
from enum import Enum
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from just_expression.errors import ConfigurationError, JustExpressionError
from just_expression.estree import load_expression, to_estree
from just_expression.function import js_function
from just_expression.nodes import emit
from just_expression.policy import ENV_PREFIX, Features
from just_expression.transform import transform

cli = typer.Typer(
	name="just-expression",
	help="Certify a JavaScript expression tree against a feature policy",
	no_args_is_help=True,
)


class OutputFormat(str, Enum):
	js = "js"
	json = "json"
	function = "function"


@cli.command("check")
def check(
	source: str = typer.Argument(
		"-", help="ESTree JSON file (Program, ExpressionStatement or expression), '-' for stdin"
	),
	params: list[str] = typer.Option(
		[], "--param", "-p", help="Top-level parameter name (repeatable)"
	),
	global_name: str | None = typer.Option(
		None,
		"--global",
		"-g",
		help="Parameter (or 'this') that absorbs free identifiers",
	),
	enable: list[str] = typer.Option(
		[], "--enable", "-e", help="Turn a feature switch on (repeatable)"
	),
	disable: list[str] = typer.Option(
		[], "--disable", "-d", help="Turn a feature switch off (repeatable)"
	),
	output: OutputFormat = typer.Option(
		OutputFormat.js, "--format", "-f", help="Output as JS source, ESTree JSON or function source"
	),
	verbose: bool = typer.Option(False, "--verbose", "-v", help="Log the traversal"),
):
	"""Certify an expression and print the rewritten result."""
	_configure_logging(verbose)
	console = Console(stderr=True)

	try:
		data = _read_json(source)
		features = _build_features(enable, disable)
		node = transform(load_expression(data), params, global_name, features)
	except JustExpressionError as exc:
		console.print(f"❌ [red]{exc.kind} error:[/red] {escape(str(exc))}")
		raise typer.Exit(1) from None
	except (OSError, ValueError) as exc:
		console.print(f"❌ [red]Could not read {escape(source)}:[/red] {escape(str(exc))}")
		raise typer.Exit(1) from None

	if output is OutputFormat.json:
		typer.echo(json.dumps(to_estree(node), indent=2))
	elif output is OutputFormat.function:
		typer.echo(js_function(params, emit(node)).source)
	else:
		typer.echo(emit(node))


@cli.command("features")
def features(
	enable: list[str] = typer.Option([], "--enable", "-e"),
	disable: list[str] = typer.Option([], "--disable", "-d"),
):
	"""Show the feature switches in effect (defaults, environment, flags)."""
	console = Console()
	try:
		resolved = _build_features(enable, disable)
	except ConfigurationError as exc:
		Console(stderr=True).print(f"❌ [red]config error:[/red] {escape(str(exc))}")
		raise typer.Exit(1) from None

	table = Table(title="Features")
	table.add_column("switch")
	table.add_column("enabled")
	table.add_column("environment variable")
	for name in Features.switch_names():
		on = getattr(resolved, name)
		table.add_row(
			name,
			"[green]yes[/green]" if on else "[red]no[/red]",
			ENV_PREFIX + name.upper(),
		)
	console.print(table)


def _build_features(enable: list[str], disable: list[str]) -> Features:
	"""Defaults, then environment overrides, then command-line flags."""
	overrides: dict[str, bool] = {}
	for name in enable:
		overrides[name] = True
	for name in disable:
		overrides[name] = False
	known = Features.switch_names()
	for name in overrides:
		if name not in known:
			raise ConfigurationError(
				f"unknown feature '{name}' (expected one of: {', '.join(known)})",
				name=name,
			)
	return replace(Features.from_env(), **overrides)


def _read_json(source: str) -> Any:
	if source == "-":
		return json.loads(sys.stdin.read())
	return json.loads(Path(source).read_text())


def _configure_logging(verbose: bool) -> None:
	logging.basicConfig(
		level=logging.DEBUG if verbose else logging.WARNING,
		format="%(levelname)s %(name)s: %(message)s",
	)


def main():
	"""Main CLI entry point."""
	try:
		cli()
	except Exception:
		console = Console()
		console.print_exception()
		raise typer.Exit(1) from None


if __name__ == "__main__":
	main()
