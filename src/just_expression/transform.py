"""
Certify an ESTree expression against the feature policy and resolve its free
identifiers.

One ``Certifier`` owns the scope for exactly one traversal. Every visit
returns the resulting node together with a ``changed`` flag, and a parent is
rebuilt only when one of its children changed. Untouched subtrees come back as
the very same objects.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import replace
from typing import Any

from just_expression.bindings import collect_bindings
from just_expression.errors import (
	ConfigurationError,
	PatternError,
	PolicyViolation,
	UnresolvedReferenceError,
)
from just_expression.estree import from_estree
from just_expression.identifiers import is_identifier
from just_expression.nodes import (
	ArrayPattern,
	ArrowFunctionExpression,
	AssignmentPattern,
	Identifier,
	Literal,
	MemberExpression,
	Node,
	ObjectPattern,
	PrivateIdentifier,
	Property,
	RestElement,
	Super,
	ThisExpression,
)
from just_expression.policy import Features, admit, require_expression_body

logger = logging.getLogger(__name__)

# Global binding name that maps free identifiers onto `this`
THIS_GLOBAL = "this"


def validate_params(params: Sequence[str], global_name: str | None) -> None:
	"""Check the top-level parameter list and global binding name."""
	for idx, param in enumerate(params):
		if not is_identifier(param):
			raise ConfigurationError(
				f"parameter name '{param}' is not a valid identifier", name=param
			)
		if param in params[idx + 1 :]:
			raise ConfigurationError(f"duplicate parameter name '{param}'", name=param)
	if (
		global_name is not None
		and global_name != THIS_GLOBAL
		and global_name not in params
	):
		raise ConfigurationError(
			f"global object name '{global_name}' is not in parameter list",
			name=global_name,
		)


def resolve_features(features: Features | Mapping[str, Any] | None) -> Features:
	if features is None:
		return Features()
	if isinstance(features, Features):
		return features
	return Features.from_mapping(features)


class Certifier:
	"""Walk an expression tree once, enforcing the policy and resolving names.

	``scope`` starts as the top-level parameters. Arrow functions push the
	names their patterns bind and truncate back on the way out. Membership is
	plain containment, so an inner binding and an outer one with the same name
	are not told apart.
	"""

	features: Features
	global_name: str | None
	scope: list[str]

	def __init__(
		self,
		params: Sequence[str] = (),
		global_name: str | None = None,
		features: Features | None = None,
	) -> None:
		params = list(params)
		validate_params(params, global_name)
		self.features = features if features is not None else Features()
		self.global_name = global_name
		self.scope = params

	# --- Entrypoint ---------------------------------------------------------

	def certify(self, node: Node) -> Node:
		logger.debug(
			"Certifying %s with params=%s global=%s features=%s",
			node.type,
			self.scope,
			self.global_name,
			self.features,
		)
		result, changed = self.visit(node)
		logger.debug("Certified %s (rewritten: %s)", node.type, changed)
		return result

	# --- Dispatch -------------------------------------------------------------

	def visit(self, node: Node) -> tuple[Node, bool]:
		"""Visit one node. Returns (result, changed)."""
		admit(node, self.features)

		if isinstance(node, Identifier):
			return self.resolve(node)
		if isinstance(node, ArrowFunctionExpression):
			return self._visit_arrow(node)
		if isinstance(node, MemberExpression):
			return self._visit_member(node)
		if isinstance(node, Property):
			return self._visit_property(node)
		return self._visit_children(node)

	def _visit_arrow(self, node: ArrowFunctionExpression) -> tuple[Node, bool]:
		require_expression_body(node)
		length = len(self.scope)
		for p in node.params:
			collect_bindings(p, self.scope)
		try:
			# Defaults and computed keys see every parameter of this arrow
			params, params_changed = self._visit_list(node.params, self._visit_pattern)
			body, body_changed = self.visit(node.body)
		finally:
			del self.scope[length:]
		if not (params_changed or body_changed):
			return node, False
		return replace(node, params=params, body=body), True

	def _visit_pattern(self, node: Node) -> tuple[Node, bool]:
		"""Walk a binding pattern.

		Binding names are left alone. Default values and computed keys are
		ordinary expressions and get the full policy and resolution.
		"""
		admit(node, self.features)

		if isinstance(node, Identifier):
			if not is_identifier(node.name):
				raise PatternError(
					f"'{node.name}' cannot be bound", node_type=node.type
				)
			return node, False
		if isinstance(node, AssignmentPattern):
			left, left_changed = self._visit_pattern(node.left)
			right, right_changed = self.visit(node.right)
			if not (left_changed or right_changed):
				return node, False
			return replace(node, left=left, right=right), True
		if isinstance(node, RestElement):
			argument, changed = self._visit_pattern(node.argument)
			if not changed:
				return node, False
			return replace(node, argument=argument), True
		if isinstance(node, ArrayPattern):
			elements, changed = self._visit_list(node.elements, self._visit_pattern)
			if not changed:
				return node, False
			return replace(node, elements=elements), True
		if isinstance(node, ObjectPattern):
			properties, changed = self._visit_list(
				node.properties, self._visit_pattern
			)
			if not changed:
				return node, False
			return replace(node, properties=properties), True
		if isinstance(node, Property):
			key, key_changed = self._visit_key(node)
			value, value_changed = self._visit_pattern(node.value)
			if not (key_changed or value_changed):
				return node, False
			return replace(node, key=key, value=value), True
		raise PatternError(f"unknown Pattern syntax {node.type}", node_type=node.type)

	def _visit_member(self, node: MemberExpression) -> tuple[Node, bool]:
		if isinstance(node.object, Super):
			raise PolicyViolation(
				"super is not allowed outside a class body",
				node_type=node.type,
				reason="super",
			)
		if isinstance(node.property, PrivateIdentifier):
			raise PolicyViolation(
				f"private name #{node.property.name} is not allowed outside a class body",
				node_type=node.type,
				reason="private",
			)

		obj, obj_changed = self.visit(node.object)
		if node.computed:
			prop, prop_changed = self.visit(node.property)
		else:
			self._check_static_key(node, node.property, (Identifier,))
			prop, prop_changed = node.property, False

		if not (obj_changed or prop_changed):
			return node, False
		return replace(node, object=obj, property=prop), True

	def _visit_property(self, node: Property) -> tuple[Node, bool]:
		key, key_changed = self._visit_key(node)
		value, value_changed = self.visit(node.value)

		if not (key_changed or value_changed):
			return node, False
		return replace(node, key=key, value=value), True

	def _visit_key(self, node: Property) -> tuple[Node, bool]:
		if isinstance(node.key, PrivateIdentifier):
			raise PolicyViolation(
				f"private name #{node.key.name} is not allowed outside a class body",
				node_type=node.type,
				reason="private",
			)
		if node.computed:
			return self.visit(node.key)
		self._check_static_key(node, node.key, (Identifier, Literal))
		return node.key, False

	def _check_static_key(
		self, parent: Node, key: Node, kinds: tuple[type[Node], ...]
	) -> None:
		"""A non-computed key is a name, never a reference, but it is still emitted."""
		if not isinstance(key, kinds):
			raise PolicyViolation(
				f"{parent.type} key must be {' or '.join(k.__name__ for k in kinds)}, got {key.type}",
				node_type=parent.type,
				reason="invalid",
			)
		admit(key, self.features)

	def _visit_children(self, node: Node) -> tuple[Node, bool]:
		changes: dict[str, Any] = {}
		for name in node.child_fields:
			value = getattr(node, name)
			if isinstance(value, Node):
				child, changed = self.visit(value)
			else:
				child, changed = self._visit_list(value)
			if changed:
				changes[name] = child
		if not changes:
			return node, False
		return replace(node, **changes), True  # pyright: ignore[reportArgumentType]

	def _visit_list(
		self,
		items: Sequence[Node | None],
		visit: Callable[[Node], tuple[Node, bool]] | None = None,
	) -> tuple[Sequence[Node | None], bool]:
		visit = visit or self.visit
		result: list[Node | None] = []
		any_changed = False
		for item in items:
			if item is None:
				result.append(None)
				continue
			child, changed = visit(item)
			result.append(child)
			any_changed = any_changed or changed
		if not any_changed:
			return items, False
		return result, True

	# --- Identifier resolution ----------------------------------------------

	def resolve(self, node: Identifier) -> tuple[Node, bool]:
		"""Leave bound names alone; route free ones through the global binding."""
		if node.name in self.scope:
			return node, False
		if self.global_name is None:
			raise UnresolvedReferenceError(node.name)
		logger.debug("Rewriting free identifier '%s' onto %s", node.name, self.global_name)
		obj: Node = (
			ThisExpression()
			if self.global_name == THIS_GLOBAL
			else Identifier(self.global_name)
		)
		return (
			MemberExpression(obj, Identifier(node.name), computed=False, optional=False),
			True,
		)


def transform(
	ast: Node | Mapping[str, Any],
	params: Sequence[str] = (),
	global_name: str | None = None,
	features: Features | Mapping[str, Any] | None = None,
) -> Node:
	"""Certify ``ast`` and rewrite its free identifiers.

	Args:
		ast: The expression, as a node or as ESTree JSON.
		params: Top-level names the expression may reference directly.
		global_name: Parameter (or "this") that absorbs every other name as a
			property access. None makes free identifiers an error.
		features: ``Features`` or an option bag with the same switch names.

	Returns the certified tree. Subtrees that needed no rewriting are returned
	as the same objects, so ``transform(x, ...) is x`` when nothing changed.
	"""
	resolved = resolve_features(features)
	certifier = Certifier(params, global_name, resolved)
	node = ast if isinstance(ast, Node) else from_estree(ast)
	return certifier.certify(node)
