from __future__ import annotations

from just_expression.errors import PatternError
from just_expression.nodes import (
	ArrayPattern,
	AssignmentPattern,
	Identifier,
	Node,
	ObjectPattern,
	Property,
	RestElement,
)


def collect_bindings(pattern: Node, scope: list[str]) -> None:
	"""Append every name bound by a parameter pattern to ``scope``.

	Names are appended left to right, outer to inner. Default values are not
	binding sites and are skipped; so are object pattern keys.
	"""
	if isinstance(pattern, Identifier):
		scope.append(pattern.name)
	elif isinstance(pattern, ObjectPattern):
		for entry in pattern.properties:
			if isinstance(entry, RestElement):
				collect_bindings(entry.argument, scope)
			elif isinstance(entry, Property):
				collect_bindings(entry.value, scope)
			else:
				raise PatternError(
					f"unknown ObjectPattern syntax {entry.type}",
					node_type=entry.type,
				)
	elif isinstance(pattern, ArrayPattern):
		for element in pattern.elements:
			if element is not None:
				collect_bindings(element, scope)
	elif isinstance(pattern, RestElement):
		collect_bindings(pattern.argument, scope)
	elif isinstance(pattern, AssignmentPattern):
		collect_bindings(pattern.left, scope)
	else:
		raise PatternError(
			f"unknown Pattern syntax {pattern.type}", node_type=pattern.type
		)


def bound_names(*patterns: Node) -> list[str]:
	"""Names bound by a parameter list, in order (duplicates kept)."""
	scope: list[str] = []
	for p in patterns:
		collect_bindings(p, scope)
	return scope
