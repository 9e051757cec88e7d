"""Conversion between ESTree JSON (as produced by acorn, meriyah, esprima...)
and the node model.

Unknown node types load as ``Opaque`` so the policy can reject them by name.
Structural problems (no ``type``, a missing child, a non-object where a node
is expected, a list or scalar of the wrong shape) raise ``TreeFormatError``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import MISSING, fields
from typing import Any

from just_expression.errors import TreeFormatError
from just_expression.nodes import (
	NODE_TYPES,
	ArrowFunctionExpression,
	BlockStatement,
	Literal,
	Node,
	Opaque,
	TemplateElement,
)

# Python field name -> ESTree key, where they differ
_ESTREE_KEYS: dict[str, str] = {"is_async": "async"}

# Scalar field annotation -> accepted JSON types
_SCALAR_TYPES: dict[str, tuple[type, ...]] = {
	"str": (str,),
	"bool": (bool,),
}


def from_estree(data: Any, path: str = "$") -> Node:
	"""Load an ESTree node (a JSON-like mapping) into the node model."""
	if not isinstance(data, Mapping):
		raise TreeFormatError(
			f"expected a node object, got {type(data).__name__}", path=path
		)
	node_type = data.get("type")
	if not isinstance(node_type, str):
		raise TreeFormatError("node has no 'type'", path=path)

	cls = NODE_TYPES.get(node_type)
	if cls is None:
		return Opaque(node_type, dict(data))
	if cls is Literal:
		return _load_literal(data, path)
	if cls is TemplateElement:
		return _load_template_element(data, path)

	kwargs: dict[str, Any] = {}
	for f in fields(cls):
		key = _ESTREE_KEYS.get(f.name, f.name)
		if f.name in cls.child_fields:
			kwargs[f.name] = _load_child(data, key, str(f.type), f"{path}.{key}")
		elif key in data:
			kwargs[f.name] = _load_scalar(data, key, str(f.type), f"{path}.{key}")
		elif f.default is MISSING and f.default_factory is MISSING:
			raise TreeFormatError(f"{node_type} is missing '{key}'", path=path)
	return cls(**kwargs)


def load_expression(data: Any) -> Node:
	"""Load the expression of a parsed program or expression statement.

	Accepts a bare expression node, an ``ExpressionStatement``, or a
	``Program`` whose body is exactly one statement.
	"""
	path = "$"
	if isinstance(data, Mapping) and data.get("type") == "Program":
		body = data.get("body")
		if not isinstance(body, list) or len(body) != 1:
			raise TreeFormatError(
				"program must contain exactly one statement", path="$.body"
			)
		data = body[0]
		path = "$.body[0]"
	if isinstance(data, Mapping) and data.get("type") == "ExpressionStatement":
		data = data.get("expression")
		path = f"{path}.expression"
	return from_estree(data, path)


def to_estree(node: Node) -> dict[str, Any]:
	"""Dump a node back into ESTree JSON."""
	if isinstance(node, Opaque):
		return dict(node.data)
	if isinstance(node, Literal):
		return _dump_literal(node)
	if isinstance(node, TemplateElement):
		return {
			"type": "TemplateElement",
			"value": {"raw": node.raw, "cooked": node.cooked},
			"tail": node.tail,
		}

	out: dict[str, Any] = {"type": node.type}
	for f in fields(node):  # pyright: ignore[reportArgumentType]
		key = _ESTREE_KEYS.get(f.name, f.name)
		value = getattr(node, f.name)
		if f.name in node.child_fields:
			out[key] = _dump_child(value)
		else:
			out[key] = value
	if isinstance(node, ArrowFunctionExpression):
		out["id"] = None
		out["generator"] = False
		out["expression"] = not isinstance(node.body, BlockStatement)
	return out


# =============================================================================
# Helpers
# =============================================================================


def _load_child(data: Mapping[str, Any], key: str, annotation: str, path: str) -> Any:
	if key not in data:
		raise TreeFormatError(f"{data['type']} is missing '{key}'", path=path)
	value = data[key]
	if not annotation.startswith("Sequence["):
		return _load_typed(value, annotation, path)

	if not isinstance(value, list):
		raise TreeFormatError(
			f"expected a list for '{key}', got {type(value).__name__}", path=path
		)
	element = annotation.removeprefix("Sequence[").removesuffix("]")
	holes = element.endswith(" | None")
	element = element.removesuffix(" | None")
	items: list[Node | None] = []
	for i, item in enumerate(value):  # pyright: ignore[reportUnknownVariableType, reportUnknownArgumentType]
		if item is None:
			if not holes:
				raise TreeFormatError(f"'{key}' cannot have holes", path=f"{path}[{i}]")
			items.append(None)
		else:
			items.append(_load_typed(item, element, f"{path}[{i}]"))
	return items


def _load_typed(value: Any, annotation: str, path: str) -> Node:
	node = from_estree(value, path)
	expected = NODE_TYPES.get(annotation)
	if expected is not None and not isinstance(node, expected):
		raise TreeFormatError(f"expected {annotation}, got {node.type}", path=path)
	return node


def _load_scalar(data: Mapping[str, Any], key: str, annotation: str, path: str) -> Any:
	value = data[key]
	expected = _SCALAR_TYPES.get(annotation)
	if expected is not None and not isinstance(value, expected):
		raise TreeFormatError(
			f"{data['type']}.{key} must be {annotation}, got {type(value).__name__}",
			path=path,
		)
	return value


def _dump_child(value: Any) -> Any:
	if isinstance(value, Node):
		return to_estree(value)
	return [None if item is None else to_estree(item) for item in value]


def _load_literal(data: Mapping[str, Any], path: str) -> Literal:
	raw = data.get("raw")
	if raw is not None and not isinstance(raw, str):
		raise TreeFormatError(
			f"Literal.raw must be str, got {type(raw).__name__}", path=f"{path}.raw"
		)
	regex = data.get("regex")
	if regex is not None:
		if (
			not isinstance(regex, Mapping)
			or not isinstance(regex.get("pattern"), str)
			or not isinstance(regex.get("flags", ""), str)
		):
			raise TreeFormatError("malformed regex literal", path=f"{path}.regex")
		return Literal(
			None,
			raw=raw,
			regex=(regex["pattern"], regex.get("flags", "")),
		)
	value = data.get("value")
	bigint = data.get("bigint")
	if bigint is not None and not isinstance(bigint, str):
		raise TreeFormatError(
			f"Literal.bigint must be str, got {type(bigint).__name__}",
			path=f"{path}.bigint",
		)
	if bigint is None and not isinstance(value, (str, bool, int, float, type(None))):
		raise TreeFormatError(
			f"unsupported literal value {type(value).__name__}", path=path
		)
	return Literal(
		None if bigint is not None else value,
		raw=raw,
		bigint=bigint,
	)


def _load_template_element(data: Mapping[str, Any], path: str) -> TemplateElement:
	value = data.get("value")
	if not isinstance(value, Mapping) or not isinstance(value.get("raw"), str):
		raise TreeFormatError("TemplateElement has no raw value", path=path)
	cooked = value.get("cooked")
	if cooked is not None and not isinstance(cooked, str):
		raise TreeFormatError(
			f"TemplateElement cooked value must be str, got {type(cooked).__name__}",
			path=f"{path}.value",
		)
	return TemplateElement(
		value["raw"],
		cooked=cooked,
		tail=bool(data.get("tail", False)),
	)


def _dump_literal(node: Literal) -> dict[str, Any]:
	out: dict[str, Any] = {"type": "Literal", "value": node.value}
	if node.raw is not None:
		out["raw"] = node.raw
	if node.regex is not None:
		out["regex"] = {"pattern": node.regex[0], "flags": node.regex[1]}
	if node.bigint is not None:
		out["bigint"] = node.bigint
	return out
