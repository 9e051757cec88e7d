"""Compile a certified expression into a function with a fixed parameter list.

Code generation and the final "make callable" step are pluggable. The defaults
produce JavaScript source for a strict-mode function, the same shape as
``new Function(...params, "'use strict';return (" + code + ")")``.
"""

from __future__ import annotations

import sys
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, TypeVar

if sys.version_info >= (3, 12):
	from typing import override
else:
	from typing_extensions import override

from just_expression.nodes import Node, emit
from just_expression.policy import Features
from just_expression.transform import transform

T = TypeVar("T")

Codegen = Callable[[Node], str]


@dataclass(slots=True, frozen=True)
class JsFunction:
	"""Source of a strict-mode JS function wrapping one expression."""

	params: tuple[str, ...]
	body: str

	@property
	def source(self) -> str:
		return (
			f"function ({', '.join(self.params)}) "
			+ f"{{'use strict';return ({self.body})}}"
		)

	@override
	def __str__(self) -> str:
		return self.source


def js_function(params: Sequence[str], body: str) -> JsFunction:
	"""Default make-callable step."""
	return JsFunction(tuple(params), body)


def compile_expression(
	ast: Node | Mapping[str, Any],
	params: Sequence[str] = (),
	global_name: str | None = None,
	features: Features | Mapping[str, Any] | None = None,
	*,
	codegen: Codegen = emit,
	make_callable: Callable[[Sequence[str], str], T] = js_function,
) -> T:
	"""Certify ``ast``, generate its source and bind it to ``params``.

	``make_callable`` receives the parameter names and the generated expression
	source, and returns whatever the host calls a function.
	"""
	certified = transform(ast, params, global_name, features)
	return make_callable(list(params), codegen(certified))
