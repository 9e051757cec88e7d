from __future__ import annotations

from typing import ClassVar, Literal

ErrorKind = Literal[
	"config",
	"policy",
	"reference",
	"pattern",
	"tree",
]

PolicyReason = Literal[
	"disabled",
	"unsupported",
	"unknown",
	"block-body",
	"super",
	"private",
	"invalid",
]


class JustExpressionError(Exception):
	"""Base class for every error raised while certifying an expression."""

	kind: ClassVar[ErrorKind]


class ConfigurationError(JustExpressionError):
	"""Bad parameter list, global binding name, or feature switch."""

	kind: ClassVar[ErrorKind] = "config"

	name: str | None

	def __init__(self, message: str, *, name: str | None = None) -> None:
		super().__init__(message)
		self.name = name


class PolicyViolation(JustExpressionError):
	"""A node kind or operator the active features do not admit."""

	kind: ClassVar[ErrorKind] = "policy"

	node_type: str
	operator: str | None
	reason: PolicyReason

	def __init__(
		self,
		message: str,
		*,
		node_type: str,
		reason: PolicyReason,
		operator: str | None = None,
	) -> None:
		super().__init__(message)
		self.node_type = node_type
		self.operator = operator
		self.reason = reason


class UnresolvedReferenceError(JustExpressionError):
	"""A free identifier with no global binding to absorb it."""

	kind: ClassVar[ErrorKind] = "reference"

	name: str

	def __init__(self, name: str) -> None:
		super().__init__(f"variable '{name}' is not defined")
		self.name = name


class PatternError(JustExpressionError):
	"""A destructuring pattern with a shape that binds nothing sensible."""

	kind: ClassVar[ErrorKind] = "pattern"

	node_type: str

	def __init__(self, message: str, *, node_type: str) -> None:
		super().__init__(message)
		self.node_type = node_type


class TreeFormatError(JustExpressionError):
	"""ESTree input that does not have the shape of a syntax tree."""

	kind: ClassVar[ErrorKind] = "tree"

	path: str

	def __init__(self, message: str, *, path: str) -> None:
		super().__init__(f"{message} (at {path})")
		self.path = path
