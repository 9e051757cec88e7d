"""ESTree node model and JavaScript emission.

Every node kind the certifier understands is a slotted dataclass named after
its ESTree ``type``. Anything else is carried as an ``Opaque`` node so it can be
rejected with its original type name.

Child positions are listed in ``child_fields`` in natural source order. The
walker and the ESTree loader both rely on that order.
"""

from __future__ import annotations

import math
import sys
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, ClassVar, TypeAlias

if sys.version_info >= (3, 12):
	from typing import override
else:
	from typing_extensions import override

LiteralValue: TypeAlias = str | bool | int | float | None


# =============================================================================
# Base class
# =============================================================================


class Node(ABC):
	"""Base class for all ESTree nodes."""

	__slots__: tuple[str, ...] = ()

	child_fields: ClassVar[tuple[str, ...]] = ()

	@property
	def type(self) -> str:
		"""ESTree type tag."""
		return self.__class__.__name__

	def precedence(self) -> int:
		"""Operator precedence (higher = binds tighter). Default: primary (20)."""
		return 20

	@abstractmethod
	def emit(self, out: list[str]) -> None:
		"""Emit this node as JavaScript code into the output buffer."""


# =============================================================================
# Leaves
# =============================================================================


@dataclass(slots=True)
class Identifier(Node):
	"""JS identifier: x, foo, $el"""

	name: str

	@override
	def emit(self, out: list[str]) -> None:
		out.append(self.name)


@dataclass(slots=True)
class Literal(Node):
	"""JS literal: 42, "hello", true, null, /re/g, 10n

	``raw`` is the source text the parser saw. When present it is emitted
	verbatim.
	"""

	value: LiteralValue
	raw: str | None = None
	regex: tuple[str, str] | None = None  # (pattern, flags)
	bigint: str | None = None

	@override
	def precedence(self) -> int:
		# -1 and -Infinity print with a leading sign
		if (
			self.raw is None
			and isinstance(self.value, (int, float))
			and not isinstance(self.value, bool)
			and math.copysign(1, self.value) < 0
		):
			return _PRECEDENCE["unary"]
		return 20

	@override
	def emit(self, out: list[str]) -> None:
		if self.raw is not None:
			out.append(self.raw)
		elif self.regex is not None:
			out.append("/")
			out.append(self.regex[0])
			out.append("/")
			out.append(self.regex[1])
		elif self.bigint is not None:
			out.append(self.bigint)
			out.append("n")
		elif self.value is None:
			out.append("null")
		elif isinstance(self.value, bool):
			out.append("true" if self.value else "false")
		elif isinstance(self.value, str):
			out.append('"')
			out.append(_escape_string(self.value))
			out.append('"')
		elif isinstance(self.value, float) and not math.isfinite(self.value):
			if math.isnan(self.value):
				out.append("NaN")
			else:
				out.append("Infinity" if self.value > 0 else "-Infinity")
		else:
			out.append(str(self.value))


@dataclass(slots=True)
class ThisExpression(Node):
	"""JS this"""

	@override
	def emit(self, out: list[str]) -> None:
		out.append("this")


@dataclass(slots=True)
class Super(Node):
	"""JS super (only meaningful inside a class body)"""

	@override
	def emit(self, out: list[str]) -> None:
		out.append("super")


@dataclass(slots=True)
class PrivateIdentifier(Node):
	"""JS private name: #secret"""

	name: str

	@override
	def emit(self, out: list[str]) -> None:
		out.append("#")
		out.append(self.name)


@dataclass(slots=True)
class TemplateElement(Node):
	"""One quasi of a template literal. ``cooked`` is None for invalid escapes."""

	raw: str
	cooked: str | None = None
	tail: bool = False

	@override
	def emit(self, out: list[str]) -> None:
		out.append(self.raw)


# =============================================================================
# Expressions
# =============================================================================


@dataclass(slots=True)
class ArrayExpression(Node):
	"""JS array: [a, , ...b]. None entries are holes."""

	elements: Sequence[Node | None]

	child_fields: ClassVar[tuple[str, ...]] = ("elements",)

	@override
	def emit(self, out: list[str]) -> None:
		_emit_elements(self.elements, out)


@dataclass(slots=True)
class ObjectExpression(Node):
	"""JS object: { key: value, [k]: v, ...rest }"""

	properties: Sequence[Node]

	child_fields: ClassVar[tuple[str, ...]] = ("properties",)

	@override
	def emit(self, out: list[str]) -> None:
		_emit_properties(self.properties, out)


@dataclass(slots=True)
class Property(Node):
	"""Object entry, in both object literals and object patterns."""

	key: Node
	value: Node
	computed: bool = False
	shorthand: bool = False
	kind: str = "init"
	method: bool = False

	child_fields: ClassVar[tuple[str, ...]] = ("key", "value")

	@override
	def emit(self, out: list[str]) -> None:
		if self.shorthand and _is_shorthand_value(self.key, self.value):
			self.value.emit(out)
			return
		if self.computed:
			out.append("[")
			_emit_arg(self.key, out)
			out.append("]")
		else:
			self.key.emit(out)
		out.append(": ")
		_emit_arg(self.value, out)


@dataclass(slots=True)
class SpreadElement(Node):
	"""JS spread: ...expr"""

	argument: Node

	child_fields: ClassVar[tuple[str, ...]] = ("argument",)

	@override
	def emit(self, out: list[str]) -> None:
		out.append("...")
		_emit_arg(self.argument, out)


@dataclass(slots=True)
class MemberExpression(Node):
	"""JS member access: obj.prop, obj[key], obj?.prop"""

	object: Node
	property: Node
	computed: bool = False
	optional: bool = False

	child_fields: ClassVar[tuple[str, ...]] = ("object", "property")

	@override
	def precedence(self) -> int:
		return _PRECEDENCE["."]

	@override
	def emit(self, out: list[str]) -> None:
		_emit_callee(self.object, out, number_safe=True)
		if self.computed:
			out.append("?.[" if self.optional else "[")
			self.property.emit(out)
			out.append("]")
		else:
			out.append("?." if self.optional else ".")
			self.property.emit(out)


@dataclass(slots=True)
class ChainExpression(Node):
	"""Optional chain wrapper around a member/call chain containing ?."""

	expression: Node

	child_fields: ClassVar[tuple[str, ...]] = ("expression",)

	@override
	def precedence(self) -> int:
		return _PRECEDENCE["."]

	@override
	def emit(self, out: list[str]) -> None:
		self.expression.emit(out)


@dataclass(slots=True)
class LogicalExpression(Node):
	"""JS logical expression: a && b, a || b, a ?? b"""

	operator: str
	left: Node
	right: Node

	child_fields: ClassVar[tuple[str, ...]] = ("left", "right")

	@override
	def precedence(self) -> int:
		return _PRECEDENCE[self.operator]

	@override
	def emit(self, out: list[str]) -> None:
		_emit_binary(self, self.operator, self.left, self.right, out)


@dataclass(slots=True)
class BinaryExpression(Node):
	"""JS binary expression: x + y, a in b, a instanceof C"""

	operator: str
	left: Node
	right: Node

	child_fields: ClassVar[tuple[str, ...]] = ("left", "right")

	@override
	def precedence(self) -> int:
		return _PRECEDENCE.get(self.operator, 0)

	@override
	def emit(self, out: list[str]) -> None:
		_emit_binary(self, self.operator, self.left, self.right, out)


@dataclass(slots=True)
class UnaryExpression(Node):
	"""JS unary expression: -x, !x, typeof x, delete o.k"""

	operator: str
	argument: Node
	prefix: bool = True

	child_fields: ClassVar[tuple[str, ...]] = ("argument",)

	@override
	def precedence(self) -> int:
		return _PRECEDENCE["unary"]

	@override
	def emit(self, out: list[str]) -> None:
		out.append(self.operator)
		arg: list[str] = []
		_emit_wrapped(self.argument, _PRECEDENCE["unary"], arg)
		if self.operator.isalpha() or (arg and arg[0][:1] == self.operator[-1]):
			# typeof x, - -x, + +x
			out.append(" ")
		out.extend(arg)


@dataclass(slots=True)
class UpdateExpression(Node):
	"""JS update expression: ++x, x--"""

	operator: str
	argument: Node
	prefix: bool = False

	child_fields: ClassVar[tuple[str, ...]] = ("argument",)

	@override
	def precedence(self) -> int:
		return _PRECEDENCE["update"]

	@override
	def emit(self, out: list[str]) -> None:
		if self.prefix:
			out.append(self.operator)
		_emit_wrapped(self.argument, _PRECEDENCE["."], out)
		if not self.prefix:
			out.append(self.operator)


@dataclass(slots=True)
class AssignmentExpression(Node):
	"""JS assignment: x = y, o.k += 1, ({a} = obj)"""

	operator: str
	left: Node
	right: Node

	child_fields: ClassVar[tuple[str, ...]] = ("left", "right")

	@override
	def precedence(self) -> int:
		return _PRECEDENCE["="]

	@override
	def emit(self, out: list[str]) -> None:
		self.left.emit(out)
		out.append(" ")
		out.append(self.operator)
		out.append(" ")
		_emit_arg(self.right, out)


@dataclass(slots=True)
class ConditionalExpression(Node):
	"""JS ternary expression: cond ? a : b"""

	test: Node
	consequent: Node
	alternate: Node

	child_fields: ClassVar[tuple[str, ...]] = ("test", "consequent", "alternate")

	@override
	def precedence(self) -> int:
		return _PRECEDENCE["?:"]

	@override
	def emit(self, out: list[str]) -> None:
		_emit_wrapped(self.test, _PRECEDENCE["?:"] + 1, out)
		out.append(" ? ")
		_emit_arg(self.consequent, out)
		out.append(" : ")
		_emit_arg(self.alternate, out)


@dataclass(slots=True)
class SequenceExpression(Node):
	"""JS comma expression: a, b, c"""

	expressions: Sequence[Node]

	child_fields: ClassVar[tuple[str, ...]] = ("expressions",)

	@override
	def precedence(self) -> int:
		return _PRECEDENCE[","]

	@override
	def emit(self, out: list[str]) -> None:
		for i, e in enumerate(self.expressions):
			if i > 0:
				out.append(", ")
			_emit_arg(e, out)


@dataclass(slots=True)
class TemplateLiteral(Node):
	"""JS template literal: `hello ${name}`

	``quasis`` always has exactly one more entry than ``expressions``.
	"""

	quasis: Sequence[TemplateElement]
	expressions: Sequence[Node]

	child_fields: ClassVar[tuple[str, ...]] = ("quasis", "expressions")

	@override
	def emit(self, out: list[str]) -> None:
		out.append("`")
		for i, q in enumerate(self.quasis):
			q.emit(out)
			if i < len(self.expressions):
				out.append("${")
				self.expressions[i].emit(out)
				out.append("}")
		out.append("`")


@dataclass(slots=True)
class TaggedTemplateExpression(Node):
	"""JS tagged template: tag`text ${x}`"""

	tag: Node
	quasi: TemplateLiteral

	child_fields: ClassVar[tuple[str, ...]] = ("tag", "quasi")

	@override
	def precedence(self) -> int:
		return _PRECEDENCE["."]

	@override
	def emit(self, out: list[str]) -> None:
		_emit_callee(self.tag, out)
		self.quasi.emit(out)


@dataclass(slots=True)
class CallExpression(Node):
	"""JS function call: fn(args), fn?.(args)"""

	callee: Node
	arguments: Sequence[Node]
	optional: bool = False

	child_fields: ClassVar[tuple[str, ...]] = ("callee", "arguments")

	@override
	def precedence(self) -> int:
		return _PRECEDENCE["."]

	@override
	def emit(self, out: list[str]) -> None:
		_emit_callee(self.callee, out)
		if self.optional:
			out.append("?.")
		_emit_arguments(self.arguments, out)


@dataclass(slots=True)
class NewExpression(Node):
	"""JS new expression: new Ctor(args)"""

	callee: Node
	arguments: Sequence[Node]

	child_fields: ClassVar[tuple[str, ...]] = ("callee", "arguments")

	@override
	def precedence(self) -> int:
		return _PRECEDENCE["."]

	@override
	def emit(self, out: list[str]) -> None:
		out.append("new ")
		if _contains_call(self.callee):
			out.append("(")
			self.callee.emit(out)
			out.append(")")
		else:
			_emit_callee(self.callee, out)
		_emit_arguments(self.arguments, out)


@dataclass(slots=True)
class ArrowFunctionExpression(Node):
	"""JS arrow function: (a, {b}) => expr

	A ``BlockStatement`` body is representable so it can be rejected.
	"""

	params: Sequence[Node]
	body: Node
	is_async: bool = False

	child_fields: ClassVar[tuple[str, ...]] = ("params", "body")

	@override
	def precedence(self) -> int:
		return _PRECEDENCE["=>"]

	@override
	def emit(self, out: list[str]) -> None:
		if self.is_async:
			out.append("async ")
		if len(self.params) == 1 and isinstance(self.params[0], Identifier):
			self.params[0].emit(out)
		else:
			out.append("(")
			for i, p in enumerate(self.params):
				if i > 0:
					out.append(", ")
				p.emit(out)
			out.append(")")
		out.append(" => ")
		body: list[str] = []
		_emit_arg(self.body, body)
		if isinstance(self.body, BlockStatement) or not body[0].startswith("{"):
			out.extend(body)
		else:
			# Object literal body must not read as a block
			out.append("(")
			out.extend(body)
			out.append(")")


# =============================================================================
# Patterns
# =============================================================================


@dataclass(slots=True)
class ObjectPattern(Node):
	"""JS object destructuring: {a, b: c, ...rest}"""

	properties: Sequence[Node]

	child_fields: ClassVar[tuple[str, ...]] = ("properties",)

	@override
	def emit(self, out: list[str]) -> None:
		_emit_properties(self.properties, out)


@dataclass(slots=True)
class ArrayPattern(Node):
	"""JS array destructuring: [a, , b]. None entries are holes."""

	elements: Sequence[Node | None]

	child_fields: ClassVar[tuple[str, ...]] = ("elements",)

	@override
	def emit(self, out: list[str]) -> None:
		_emit_elements(self.elements, out)


@dataclass(slots=True)
class RestElement(Node):
	"""JS rest capture: ...rest"""

	argument: Node

	child_fields: ClassVar[tuple[str, ...]] = ("argument",)

	@override
	def emit(self, out: list[str]) -> None:
		out.append("...")
		self.argument.emit(out)


@dataclass(slots=True)
class AssignmentPattern(Node):
	"""JS default value in a pattern: a = 1"""

	left: Node
	right: Node

	child_fields: ClassVar[tuple[str, ...]] = ("left", "right")

	@override
	def emit(self, out: list[str]) -> None:
		self.left.emit(out)
		out.append(" = ")
		_emit_arg(self.right, out)


# =============================================================================
# Statement-level and unknown kinds
# =============================================================================


@dataclass(slots=True)
class BlockStatement(Node):
	"""JS block: { ... }. Statements inside are kept opaque."""

	body: Sequence[Node]

	child_fields: ClassVar[tuple[str, ...]] = ("body",)

	@override
	def emit(self, out: list[str]) -> None:
		out.append("{\n")
		for stmt in self.body:
			stmt.emit(out)
			out.append("\n")
		out.append("}")


@dataclass(slots=True)
class Opaque(Node):
	"""Any ESTree node outside the modelled set, kept as its raw mapping."""

	kind: str
	data: Mapping[str, Any] = field(default_factory=dict)

	@property
	@override
	def type(self) -> str:
		return self.kind

	@override
	def emit(self, out: list[str]) -> None:
		raise TypeError(f"Cannot emit {self.kind} as JavaScript")


NODE_TYPES: dict[str, type[Node]] = {
	cls.__name__: cls
	for cls in (
		Identifier,
		Literal,
		ThisExpression,
		Super,
		PrivateIdentifier,
		TemplateElement,
		ArrayExpression,
		ObjectExpression,
		Property,
		SpreadElement,
		MemberExpression,
		ChainExpression,
		LogicalExpression,
		BinaryExpression,
		UnaryExpression,
		UpdateExpression,
		AssignmentExpression,
		ConditionalExpression,
		SequenceExpression,
		TemplateLiteral,
		TaggedTemplateExpression,
		CallExpression,
		NewExpression,
		ArrowFunctionExpression,
		ObjectPattern,
		ArrayPattern,
		RestElement,
		AssignmentPattern,
		BlockStatement,
	)
}


# =============================================================================
# Emit logic
# =============================================================================


def emit(node: Node) -> str:
	"""Emit a node as JavaScript code."""
	out: list[str] = []
	node.emit(out)
	return "".join(out)


# Operator precedence table (higher = binds tighter)
_PRECEDENCE: dict[str, int] = {
	# Comma
	",": 1,
	# Assignment level
	"=>": 2,
	"=": 2,
	# Ternary
	"?:": 3,
	# Logical
	"??": 4,
	"||": 4,
	"&&": 5,
	# Bitwise
	"|": 6,
	"^": 7,
	"&": 8,
	# Equality
	"==": 9,
	"!=": 9,
	"===": 9,
	"!==": 9,
	# Relational
	"<": 10,
	"<=": 10,
	">": 10,
	">=": 10,
	"in": 10,
	"instanceof": 10,
	# Shift
	"<<": 11,
	">>": 11,
	">>>": 11,
	# Additive
	"+": 12,
	"-": 12,
	# Multiplicative
	"*": 13,
	"/": 13,
	"%": 13,
	# Exponentiation (right-assoc)
	"**": 14,
	"unary": 15,
	"update": 16,
	# Member, call, new with arguments
	".": 18,
}

_RIGHT_ASSOC = {"**"}

_NULLISH_MIX = {"||", "&&"}


def _escape_string(s: str) -> str:
	"""Escape for double-quoted JS string literals."""
	return (
		s.replace("\\", "\\\\")
		.replace('"', '\\"')
		.replace("\n", "\\n")
		.replace("\r", "\\r")
		.replace("\t", "\\t")
		.replace("\b", "\\b")
		.replace("\f", "\\f")
		.replace("\v", "\\v")
		.replace("\x00", "\\x00")
		.replace("\u2028", "\\u2028")
		.replace("\u2029", "\\u2029")
	)


def _emit_wrapped(node: Node, min_prec: int, out: list[str]) -> None:
	"""Emit with parens if the node binds looser than min_prec."""
	if node.precedence() < min_prec:
		out.append("(")
		node.emit(out)
		out.append(")")
	else:
		node.emit(out)


def _emit_arg(node: Node, out: list[str]) -> None:
	"""Emit in an assignment-expression position (array item, argument, ...)."""
	_emit_wrapped(node, _PRECEDENCE["="], out)


def _emit_binary(
	parent: Node, op: str, left: Node, right: Node, out: list[str]
) -> None:
	parent_prec = parent.precedence()
	_emit_operand(left, op, parent_prec, "left", out)
	out.append(" ")
	out.append(op)
	out.append(" ")
	_emit_operand(right, op, parent_prec, "right", out)


def _emit_operand(
	node: Node, parent_op: str, parent_prec: int, side: str, out: list[str]
) -> None:
	"""Emit child of a binary/logical node with parens if needed."""
	child_prec = node.precedence()
	needs_parens = child_prec < parent_prec
	if child_prec == parent_prec and isinstance(
		node, (BinaryExpression, LogicalExpression)
	):
		# Handle associativity
		if parent_op in _RIGHT_ASSOC:
			needs_parens = side == "left"
		else:
			needs_parens = side == "right"
	# Special: ** with a unary (or signed number) on the left needs parens
	if parent_op == "**" and side == "left" and child_prec == _PRECEDENCE["unary"]:
		needs_parens = True
	# ?? cannot mix with || or && without parens
	if isinstance(node, LogicalExpression) and (
		(parent_op == "??" and node.operator in _NULLISH_MIX)
		or (parent_op in _NULLISH_MIX and node.operator == "??")
	):
		needs_parens = True

	if needs_parens:
		out.append("(")
		node.emit(out)
		out.append(")")
	else:
		node.emit(out)


def _emit_callee(node: Node, out: list[str], number_safe: bool = False) -> None:
	"""Emit the object of a member access or the callee of a call."""
	buf: list[str] = []
	node.emit(buf)
	text = "".join(buf)
	needs_parens = (
		node.precedence() < _PRECEDENCE["."]
		# (a?.b).c short-circuits differently than a?.b.c
		or isinstance(node, ChainExpression)
		# 1.toString is a syntax error
		or (number_safe and isinstance(node, Literal) and text.isdigit())
	)
	if needs_parens:
		out.append("(")
		out.append(text)
		out.append(")")
	else:
		out.append(text)


def _contains_call(node: Node) -> bool:
	"""True if a new-expression callee would swallow a call: new (f())()."""
	while True:
		if isinstance(node, CallExpression):
			return True
		if isinstance(node, MemberExpression):
			node = node.object
		elif isinstance(node, TaggedTemplateExpression):
			node = node.tag
		else:
			return False


def _emit_arguments(args: Sequence[Node], out: list[str]) -> None:
	out.append("(")
	for i, a in enumerate(args):
		if i > 0:
			out.append(", ")
		_emit_arg(a, out)
	out.append(")")


def _emit_elements(elements: Sequence[Node | None], out: list[str]) -> None:
	out.append("[")
	for i, e in enumerate(elements):
		if i > 0:
			out.append(", ")
		if e is not None:
			_emit_arg(e, out)
	if elements and elements[-1] is None:
		# [a, ,] keeps a trailing hole
		out.append(",")
	out.append("]")


def _emit_properties(properties: Sequence[Node], out: list[str]) -> None:
	if not properties:
		out.append("{}")
		return
	out.append("{")
	for i, p in enumerate(properties):
		out.append(", " if i > 0 else " ")
		p.emit(out)
	out.append(" }")


def _is_shorthand_value(key: Node, value: Node) -> bool:
	if not isinstance(key, Identifier):
		return False
	if isinstance(value, AssignmentPattern):
		value = value.left
	return isinstance(value, Identifier) and value.name == key.name
