"""Admission rules: which node kinds and operators an expression may use.

The table is fixed. The only knobs are the five ``Features`` switches.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from typing import Any

from just_expression.errors import ConfigurationError, PolicyViolation
from just_expression.identifiers import (
	is_bigint_digits,
	is_identifier_name,
	is_literal_token,
	is_regex_literal,
	is_template_raw,
)
from just_expression.nodes import (
	ArrowFunctionExpression,
	AssignmentExpression,
	BinaryExpression,
	Identifier,
	Literal,
	LogicalExpression,
	Node,
	TemplateElement,
	UnaryExpression,
	UpdateExpression,
)

ENV_PREFIX = "JUST_EXPRESSION_ENABLE_"

ALWAYS_ADMITTED: frozenset[str] = frozenset(
	{
		"Identifier",
		"Literal",
		"ArrayExpression",
		"ObjectExpression",
		"MemberExpression",
		"ChainExpression",
		"LogicalExpression",
		"SequenceExpression",
		"ConditionalExpression",
		"TemplateLiteral",
		# Pattern and auxiliary kinds
		"Property",
		"ObjectPattern",
		"ArrayPattern",
		"RestElement",
		"AssignmentPattern",
		"SpreadElement",
		"TemplateElement",
	}
)

# Kinds gated by a single switch
FEATURE_GATED: dict[str, str] = {
	"ArrowFunctionExpression": "arrow",
	"UpdateExpression": "update",
	"AssignmentExpression": "update",
	"NewExpression": "call",
	"CallExpression": "call",
	"TaggedTemplateExpression": "call",
	"ThisExpression": "this",
}

# Kinds never admitted, whatever the switches say
UNSUPPORTED: frozenset[str] = frozenset(
	{
		"FunctionExpression",
		"ClassExpression",
		"MetaProperty",
		"YieldExpression",
		"AwaitExpression",
		"ImportExpression",
	}
)

MUTATION_OPERATORS: frozenset[str] = frozenset({"delete"})
INSPECTION_OPERATORS: frozenset[str] = frozenset({"typeof", "in", "instanceof"})

# Every operator each kind may carry, whatever the switches say
OPERATORS: dict[type[Node], frozenset[str]] = {
	BinaryExpression: frozenset(
		"== != === !== < <= > >= << >> >>> + - * / % ** | ^ & in instanceof".split()
	),
	LogicalExpression: frozenset({"||", "&&", "??"}),
	UnaryExpression: frozenset({"-", "+", "!", "~", "typeof", "void", "delete"}),
	UpdateExpression: frozenset({"++", "--"}),
	AssignmentExpression: frozenset(
		"= += -= *= /= %= **= <<= >>= >>>= |= ^= &= ||= &&= ??=".split()
	),
}


@dataclass(frozen=True, slots=True)
class Features:
	"""Feature switches for one certification run.

	Defaults: calls and arrow functions on, everything else off.
	"""

	this: bool = False
	call: bool = True
	arrow: bool = True
	update: bool = False
	inspect: bool = False

	@classmethod
	def from_mapping(cls, options: Mapping[str, Any]) -> Features:
		"""Build from an option bag like {"this": True, "update": True}."""
		known = cls.switch_names()
		for key in options:
			if key not in known:
				raise ConfigurationError(f"unknown feature '{key}'", name=key)
			if not isinstance(options[key], bool):
				raise ConfigurationError(
					f"feature '{key}' must be true or false, got {options[key]!r}",
					name=key,
				)
		return cls(**options)

	@classmethod
	def from_env(cls, base: Features | None = None) -> Features:
		"""Apply JUST_EXPRESSION_ENABLE_<SWITCH> environment overrides."""
		features = base if base is not None else cls()
		overrides: dict[str, bool] = {}
		for name in cls.switch_names():
			value = os.environ.get(ENV_PREFIX + name.upper())
			if value is None:
				continue
			overrides[name] = value not in {"0", "false", "False"}
		return replace(features, **overrides)

	@classmethod
	def switch_names(cls) -> tuple[str, ...]:
		return tuple(f.name for f in fields(cls))


def admit(node: Node, features: Features) -> None:
	"""Raise PolicyViolation unless ``node`` may appear under ``features``."""
	node_type = node.type
	check_operator(node)
	check_source_text(node)

	if node_type in ALWAYS_ADMITTED:
		return

	if isinstance(node, (UnaryExpression, BinaryExpression)):
		op = node.operator
		if (op in MUTATION_OPERATORS and not features.update) or (
			op in INSPECTION_OPERATORS and not features.inspect
		):
			raise PolicyViolation(
				f"operator {op} is disabled",
				node_type=node_type,
				operator=op,
				reason="disabled",
			)
		return

	switch = FEATURE_GATED.get(node_type)
	if switch is not None:
		if getattr(features, switch):
			return
		operator = getattr(node, "operator", None)
		if operator is not None:
			message = f"operator {operator} is disabled"
		else:
			message = f"expression {node_type} is disabled"
		raise PolicyViolation(
			message,
			node_type=node_type,
			operator=operator,
			reason="disabled",
		)

	if node_type in UNSUPPORTED:
		raise PolicyViolation(
			f"expression {node_type} is not supported",
			node_type=node_type,
			reason="unsupported",
		)

	raise PolicyViolation(
		f"unknown node type {node_type}",
		node_type=node_type,
		reason="unknown",
	)


def require_expression_body(node: ArrowFunctionExpression) -> None:
	"""Arrow functions must have an expression body, never a block."""
	if node.body.type == "BlockStatement":
		raise PolicyViolation(
			"arrow function with block statement is not allowed",
			node_type=node.type,
			reason="block-body",
		)


def check_operator(node: Node) -> None:
	"""Operators must come from the fixed table for their node kind."""
	allowed = OPERATORS.get(type(node))
	if allowed is None:
		return
	op = getattr(node, "operator", None)
	if not isinstance(op, str) or op not in allowed:
		raise PolicyViolation(
			f"operator {op!r} is not supported",
			node_type=node.type,
			operator=op if isinstance(op, str) else None,
			reason="unsupported",
		)


def check_source_text(node: Node) -> None:
	"""Names and literal text are emitted verbatim: each must be one token."""
	if isinstance(node, Identifier):
		ok = is_identifier_name(node.name)
		text = node.name
	elif isinstance(node, Literal):
		ok = _is_literal_ok(node)
		text = node.raw if node.raw is not None else node.value
	elif isinstance(node, TemplateElement):
		ok = is_template_raw(node.raw)
		text = node.raw
	else:
		return
	if not ok:
		raise PolicyViolation(
			f"invalid {node.type} text {text!r}",
			node_type=node.type,
			reason="invalid",
		)


def _is_literal_ok(node: Literal) -> bool:
	if node.regex is not None:
		pattern, flags = node.regex
		if not is_regex_literal(pattern, flags):
			return False
		return node.raw is None or node.raw == f"/{pattern}/{flags}"
	if node.bigint is not None and not is_bigint_digits(node.bigint):
		return False
	if node.raw is not None:
		return is_literal_token(node.raw)
	return node.value is None or isinstance(node.value, (str, bool, int, float))
