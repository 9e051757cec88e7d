"""
Tests for the certifying walker (transform.transform / transform.Certifier).

This module covers:
- Configuration checks on the parameter list and global binding
- Policy enforcement while walking
- Scope tracking through arrow functions and destructuring
- Free identifier rewriting onto the global binding
- Structural reuse of untouched subtrees
"""

import re
from dataclasses import replace

import pytest
from just_expression.errors import (
	ConfigurationError,
	PatternError,
	PolicyViolation,
	UnresolvedReferenceError,
)
from just_expression.nodes import (
	ArrayExpression,
	ArrayPattern,
	ArrowFunctionExpression,
	AssignmentExpression,
	AssignmentPattern,
	BinaryExpression,
	BlockStatement,
	CallExpression,
	ChainExpression,
	ConditionalExpression,
	Identifier,
	Literal,
	MemberExpression,
	Node,
	ObjectExpression,
	ObjectPattern,
	Opaque,
	PrivateIdentifier,
	Property,
	RestElement,
	SpreadElement,
	Super,
	TemplateElement,
	TemplateLiteral,
	ThisExpression,
	UnaryExpression,
	UpdateExpression,
	emit,
)
from just_expression.policy import Features
from just_expression.transform import Certifier, transform


def ident(name: str) -> Identifier:
	return Identifier(name)


def num(n: int) -> Literal:
	return Literal(n, raw=str(n))


def add(left: Node, right: Node) -> BinaryExpression:
	return BinaryExpression("+", left, right)


def member(obj: Node, prop: str) -> MemberExpression:
	return MemberExpression(obj, ident(prop))


def arrow(params: list[Node], body: Node) -> ArrowFunctionExpression:
	return ArrowFunctionExpression(params, body)


# =============================================================================
# Configuration
# =============================================================================


class TestConfiguration:
	def test_invalid_parameter_name(self):
		with pytest.raises(ConfigurationError, match="'1a' is not a valid identifier") as info:
			transform(num(1), ["1a"])
		assert info.value.name == "1a"
		assert info.value.kind == "config"

	def test_reserved_parameter_name(self):
		with pytest.raises(ConfigurationError, match="'this' is not a valid identifier"):
			transform(num(1), ["this"])

	def test_duplicate_parameter(self):
		with pytest.raises(ConfigurationError, match="duplicate parameter name 'a'"):
			transform(num(1), ["a", "b", "a"])

	def test_global_not_in_params(self):
		with pytest.raises(ConfigurationError, match="global object name 'g' is not in parameter list"):
			transform(ident("a"), [], "g")

	def test_this_global_needs_no_param(self):
		result = transform(ident("a"), [], "this", Features(this=True))
		assert emit(result) == "this.a"

	def test_features_as_mapping(self):
		with pytest.raises(PolicyViolation):
			transform(CallExpression(ident("f"), []), ["f"], None, {"call": False})

	def test_unknown_feature_name(self):
		with pytest.raises(ConfigurationError, match="unknown feature 'await'"):
			transform(num(1), [], None, {"await": True})

	def test_configuration_checked_before_walking(self):
		# The tree is also invalid, but the parameter list fails first
		with pytest.raises(ConfigurationError):
			transform(Opaque("FunctionExpression"), ["a", "a"])

	def test_accepts_estree_mapping(self):
		tree = {
			"type": "BinaryExpression",
			"operator": "+",
			"left": {"type": "Identifier", "name": "a"},
			"right": {"type": "Literal", "value": 1, "raw": "1"},
		}
		assert emit(transform(tree, ["a"])) == "a + 1"


# =============================================================================
# Scenarios
# =============================================================================


class TestScenarios:
	def test_bound_params_are_untouched(self):
		expr = add(ident("a"), ident("b"))
		assert transform(expr, ["a", "b"]) is expr

	def test_free_identifier_goes_through_global(self):
		result = transform(ident("a"), ["g"], "g")
		assert result == MemberExpression(ident("g"), ident("a"), computed=False, optional=False)
		assert emit(result) == "g.a"

	def test_free_identifier_without_global(self):
		with pytest.raises(UnresolvedReferenceError, match="variable 'a' is not defined") as info:
			transform(ident("a"))
		assert info.value.name == "a"
		assert info.value.kind == "reference"

	def test_update_is_disabled_by_default(self):
		with pytest.raises(PolicyViolation, match=re.escape("operator ++ is disabled")) as info:
			transform(UpdateExpression("++", ident("a")), ["a"])
		assert info.value.node_type == "UpdateExpression"
		assert info.value.operator == "++"

	@pytest.mark.parametrize(
		"features",
		[Features(), Features(this=True, call=True, arrow=True, update=True, inspect=True)],
	)
	def test_block_body_arrow_always_fails(self, features: Features):
		fn = arrow([ident("x")], BlockStatement([Opaque("ReturnStatement")]))
		with pytest.raises(PolicyViolation, match="arrow function with block statement") as info:
			transform(fn, features=features)
		assert info.value.reason == "block-body"

	def test_nested_destructuring_binds_before_body(self):
		# ({a: {a: [, a], ...c}, c: b = 2}) => a + b + c.d
		pattern = ObjectPattern(
			[
				Property(
					ident("a"),
					ObjectPattern(
						[
							Property(ident("a"), ArrayPattern([None, ident("a")])),
							RestElement(ident("c")),
						]
					),
				),
				Property(ident("c"), AssignmentPattern(ident("b"), num(2))),
			]
		)
		body = add(add(ident("a"), ident("b")), member(ident("c"), "d"))
		fn = arrow([pattern], body)
		assert transform(fn, ["a"]) is fn

	def test_in_operator_needs_inspect(self):
		expr = BinaryExpression("in", Literal("a", raw='"a"'), ObjectExpression([]))
		with pytest.raises(PolicyViolation, match="operator in is disabled"):
			transform(expr)
		assert transform(expr, features=Features(inspect=True)) is expr

	def test_compound_assignment_needs_update(self):
		expr = AssignmentExpression("+=", ident("a"), num(3))
		with pytest.raises(PolicyViolation, match=re.escape("operator += is disabled")):
			transform(expr, ["a"])
		assert transform(expr, ["a"], features=Features(update=True)) is expr


# =============================================================================
# Policy while walking
# =============================================================================


class TestWalkPolicy:
	def test_rejection_deep_in_tree(self):
		expr = add(num(1), ArrayExpression([num(2), UnaryExpression("typeof", ident("a"))]))
		with pytest.raises(PolicyViolation, match="operator typeof is disabled"):
			transform(expr, ["a"])

	def test_function_expression_not_supported(self):
		with pytest.raises(PolicyViolation, match="expression FunctionExpression is not supported"):
			transform(Opaque("FunctionExpression"))

	def test_calls_disabled(self):
		call = CallExpression(member(ident("Math"), "abs"), [UnaryExpression("-", num(4))])
		with pytest.raises(PolicyViolation, match="expression CallExpression is disabled"):
			transform(call, ["Math"], features=Features(call=False))
		assert transform(call, ["Math"]) is call

	def test_arrow_disabled(self):
		with pytest.raises(PolicyViolation, match="ArrowFunctionExpression is disabled"):
			transform(arrow([], num(7)), features=Features(arrow=False))

	def test_super_member(self):
		with pytest.raises(PolicyViolation, match="super") as info:
			transform(MemberExpression(Super(), ident("x")))
		assert info.value.reason == "super"

	def test_private_member(self):
		with pytest.raises(PolicyViolation, match="private name #secret") as info:
			transform(MemberExpression(ident("a"), PrivateIdentifier("secret")), ["a"])
		assert info.value.reason == "private"

	def test_private_key(self):
		obj = ObjectExpression([Property(PrivateIdentifier("k"), num(1))])
		with pytest.raises(PolicyViolation, match="private name #k"):
			transform(obj)

	def test_this_disabled(self):
		with pytest.raises(PolicyViolation, match="expression ThisExpression is disabled"):
			transform(member(ThisExpression(), "x"))

	def test_this_global_without_this_switch(self):
		assert emit(transform(ident("a"), [], "this")) == "this.a"

	def test_pattern_error_in_params(self):
		fn = arrow([member(ident("a"), "b")], num(1))
		with pytest.raises(PatternError, match="unknown Pattern syntax MemberExpression"):
			transform(fn)


# =============================================================================
# Scope tracking
# =============================================================================


class TestScope:
	def test_arrow_params_are_bound(self):
		fn = arrow([ident("a"), ident("b")], add(ident("a"), ident("b")))
		assert transform(fn, ["g"], "g") is fn

	def test_outer_params_visible_inside(self):
		fn = arrow([ident("b")], add(ident("a"), ident("b")))
		assert transform(fn, ["a"]) is fn

	def test_unbound_inside_arrow_uses_global(self):
		fn = arrow([ident("b")], add(ident("a"), ident("b")))
		assert emit(transform(fn, ["g"], "g")) == "b => g.a + b"

	def test_deep_curry(self):
		fn = arrow([ident("a")], arrow([ident("b")], add(add(ident("a"), ident("b")), ident("c"))))
		assert transform(fn, ["c"]) is fn

	def test_scope_popped_after_arrow(self):
		# (x => x)(x): the argument x is outside the arrow
		call = CallExpression(arrow([ident("x")], ident("x")), [ident("x")])
		with pytest.raises(UnresolvedReferenceError, match="'x'"):
			transform(call)
		assert emit(transform(call, ["g"], "g")) == "(x => x)(g.x)"

	def test_scope_length_restored(self):
		certifier = Certifier(["a"], "a")
		inner = arrow([ObjectPattern([RestElement(ident("r"))])], ident("r"))
		fn = arrow([ident("x"), ArrayPattern([ident("y"), None])], CallExpression(inner, [ident("x")]))
		certifier.certify(fn)
		assert certifier.scope == ["a"]

	def test_scope_restored_after_failure(self):
		certifier = Certifier(["a"])
		fn = arrow([ident("x")], ident("missing"))
		with pytest.raises(UnresolvedReferenceError):
			certifier.certify(fn)
		assert certifier.scope == ["a"]

	def test_rest_param(self):
		fn = arrow([ident("a"), RestElement(ident("b"))], add(ident("a"), member(ident("b"), "length")))
		assert transform(fn) is fn

	def test_default_value_is_resolved(self):
		fn = arrow([AssignmentPattern(ident("a"), ident("elsewhere"))], ident("a"))
		result = transform(fn, ["g"], "g")
		assert emit(result) == "(a = g.elsewhere) => a"
		assert isinstance(result, ArrowFunctionExpression)
		assert result.body is fn.body

	def test_default_value_free_name_without_global(self):
		fn = arrow([AssignmentPattern(ident("x"), ident("process"))], ident("x"))
		with pytest.raises(UnresolvedReferenceError, match="'process'"):
			transform(fn)

	def test_default_value_sees_sibling_params(self):
		fn = arrow([ident("a"), AssignmentPattern(ident("b"), ident("a"))], ident("b"))
		assert transform(fn) is fn

	def test_default_value_is_policed(self):
		this_default = arrow([AssignmentPattern(ident("x"), ThisExpression())], ident("x"))
		with pytest.raises(PolicyViolation, match="expression ThisExpression is disabled"):
			transform(this_default)

		call_default = arrow(
			[AssignmentPattern(ident("x"), CallExpression(ident("fetch"), []))], ident("x")
		)
		with pytest.raises(PolicyViolation, match="expression CallExpression is disabled"):
			transform(call_default, ["fetch"], features={"call": False})

	def test_nested_default_in_object_pattern(self):
		pattern = ObjectPattern([Property(ident("a"), AssignmentPattern(ident("a"), ident("d")))])
		fn = arrow([pattern], ident("a"))
		assert emit(transform(fn, ["g"], "g")) == "({ a: a = g.d }) => a"

	def test_computed_pattern_key_is_policed(self):
		key = CallExpression(ident("evil"), [])
		fn = arrow([ObjectPattern([Property(key, ident("v"), computed=True)])], ident("v"))
		with pytest.raises(PolicyViolation, match="expression CallExpression is disabled"):
			transform(fn, ["evil"], features=Features(call=False))

	def test_computed_pattern_key_is_resolved(self):
		fn = arrow([ObjectPattern([Property(ident("k"), ident("v"), computed=True)])], ident("v"))
		assert emit(transform(fn, ["g"], "g")) == "({ [g.k]: v }) => v"

	def test_binding_names_are_not_rewritten(self):
		pattern = ArrayPattern([ident("a"), RestElement(ident("rest"))])
		fn = arrow([pattern], ident("rest"))
		assert transform(fn, ["g"], "g") is fn

	def test_reserved_binding_name(self):
		fn = arrow([ident("eval")], ident("eval"))
		with pytest.raises(PatternError, match="'eval' cannot be bound"):
			transform(fn)

	def test_shadowing_is_membership(self):
		# The inner `a` and the outer parameter are the same binding for resolution
		fn = arrow([ident("a")], ident("a"))
		assert transform(fn, ["a"]) is fn


# =============================================================================
# Identifier rewriting
# =============================================================================


class TestRewrite:
	def test_non_computed_property_is_not_a_reference(self):
		expr = member(ident("obj"), "prop")
		assert emit(transform(expr, ["g"], "g")) == "g.obj.prop"

	def test_computed_property_is_a_reference(self):
		expr = MemberExpression(ident("obj"), ident("key"), computed=True)
		assert emit(transform(expr, ["obj", "g"], "g")) == "obj[g.key]"

	def test_object_keys(self):
		obj = ObjectExpression(
			[
				Property(ident("a"), ident("b")),
				Property(ident("k"), ident("v"), computed=True),
				SpreadElement(ident("s")),
			]
		)
		assert emit(transform(obj, ["g"], "g")) == "{ a: g.b, [g.k]: g.v, ...g.s }"

	def test_shorthand_property(self):
		obj = ObjectExpression([Property(ident("a"), ident("a"), shorthand=True)])
		assert emit(transform(obj, ["g"], "g")) == "{ a: g.a }"

	def test_this_global(self):
		expr = add(Literal("a is ", raw='"a is "'), ident("a"))
		result = transform(expr, [], "this")
		assert emit(result) == '"a is " + this.a'
		assert isinstance(result, BinaryExpression)
		assert isinstance(result.right, MemberExpression)
		assert isinstance(result.right.object, ThisExpression)

	def test_scoped_name_is_not_routed_through_global(self):
		expr = BinaryExpression("!==", ident("a"), member(ident("g"), "a"))
		assert transform(expr, ["a", "g"], "g") is expr

	def test_repeated_free_identifiers_are_distinct_nodes(self):
		expr = add(ident("x"), ident("x"))
		result = transform(expr, ["g"], "g")
		assert isinstance(result, BinaryExpression)
		assert result.left == result.right
		assert result.left is not result.right

	def test_template(self):
		tpl = TemplateLiteral(
			[TemplateElement("n="), TemplateElement("", tail=True)], [ident("n")]
		)
		assert emit(transform(tpl, ["g"], "g")) == "`n=${g.n}`"

	def test_optional_chain(self):
		chain = ChainExpression(MemberExpression(ident("a"), ident("b"), optional=True))
		assert emit(transform(chain, ["g"], "g")) == "g.a?.b"

	def test_holes_survive_rewrite(self):
		arr = ArrayExpression([None, ident("a"), None])
		result = transform(arr, ["g"], "g")
		assert isinstance(result, ArrayExpression)
		assert list(result.elements) == [None, member(ident("g"), "a"), None]


# =============================================================================
# Source text carried by the tree
# =============================================================================


class TestSourceText:
	def test_literal_raw_must_be_one_token(self):
		expr = Literal(1, raw="1, globalThis.process.exit()")
		with pytest.raises(PolicyViolation, match="invalid Literal text") as info:
			transform(expr, features=Features(call=False))
		assert info.value.reason == "invalid"

	def test_operator_must_be_known(self):
		op = "+ this.constructor.constructor('x')() +"
		with pytest.raises(PolicyViolation, match="is not supported") as info:
			transform(BinaryExpression(op, num(1), num(2)))
		assert info.value.reason == "unsupported"
		assert info.value.operator == op

	def test_identifier_name_must_be_one_token(self):
		with pytest.raises(PolicyViolation, match="invalid Identifier text"):
			transform(ident("a;process.exit()"), ["g"], "g")

	def test_static_member_property_is_checked(self):
		expr = MemberExpression(ident("a"), ident("b;evil()"))
		with pytest.raises(PolicyViolation, match="invalid Identifier text"):
			transform(expr, ["a"])

	def test_static_member_property_must_be_identifier(self):
		expr = MemberExpression(ident("a"), CallExpression(ident("f"), []))
		with pytest.raises(PolicyViolation, match="key must be Identifier") as info:
			transform(expr, ["a", "f"])
		assert info.value.reason == "invalid"

	def test_static_object_key_is_checked(self):
		obj = ObjectExpression([Property(Literal("k", raw='"k"]: 1, x: evil()'), num(1))])
		with pytest.raises(PolicyViolation, match="invalid Literal text"):
			transform(obj)

	def test_template_raw_cannot_close_template(self):
		tpl = TemplateLiteral([TemplateElement("`+evil()+`", tail=True)], [])
		with pytest.raises(PolicyViolation, match="invalid TemplateElement text"):
			transform(tpl)

	def test_template_raw_cannot_open_substitution(self):
		tpl = TemplateLiteral([TemplateElement("${evil()}", tail=True)], [])
		with pytest.raises(PolicyViolation, match="invalid TemplateElement text"):
			transform(tpl)

	def test_escaped_template_text_is_kept(self):
		tpl = TemplateLiteral([TemplateElement("\\` and \\${x}", tail=True)], [])
		assert transform(tpl) is tpl

	def test_valid_literal_tokens_pass(self):
		arr = ArrayExpression(
			[
				Literal(31, raw="0x1F"),
				Literal("it's", raw='"it\'s"'),
				Literal(None, raw="/a\\/b[/]/gi", regex=("a\\/b[/]", "gi")),
				Literal(None, raw="10n", bigint="10"),
				Literal(True, raw="true"),
			]
		)
		assert transform(arr) is arr


# =============================================================================
# Structural reuse
# =============================================================================


class TestStructuralReuse:
	def test_only_changed_path_is_rebuilt(self):
		untouched = CallExpression(member(ident("Math"), "max"), [ident("a"), num(1)])
		expr = ConditionalExpression(ident("free"), untouched, ArrayExpression([num(1)]))
		result = transform(expr, ["Math", "a", "g"], "g")

		assert isinstance(result, ConditionalExpression)
		assert result is not expr
		assert result.consequent is untouched
		assert result.alternate is expr.alternate
		assert emit(result.test) == "g.free"
		# The input is never mutated
		assert expr.test == ident("free")

	def test_unchanged_arrow_body_reuses_node(self):
		body = add(ident("x"), num(1))
		fn = arrow([ident("x")], body)
		assert transform(fn) is fn

	def test_changed_arrow_keeps_params(self):
		params: list[Node] = [ident("x")]
		fn = arrow(params, add(ident("x"), ident("y")))
		result = transform(fn, ["g"], "g")
		assert isinstance(result, ArrowFunctionExpression)
		assert result is not fn
		assert result.params is params
		assert result == replace(fn, body=add(ident("x"), member(ident("g"), "y")))

	def test_unchanged_list_reused(self):
		elements: list[Node | None] = [ident("a"), None]
		arr = ArrayExpression(elements)
		wrapper = add(arr, ident("free"))
		result = transform(wrapper, ["a", "g"], "g")
		assert isinstance(result, BinaryExpression)
		assert result.left is arr

	def test_idempotent_on_certified_tree(self):
		expr = add(ident("a"), CallExpression(ident("b"), [ident("c")]))
		once = transform(expr, ["g", "b"], "g")
		assert transform(once, ["g", "b"], "g") is once


# =============================================================================
# Policy monotonicity
# =============================================================================

_SWITCHES = ("this", "call", "arrow", "update", "inspect")

_SAMPLES: list[Node] = [
	member(ThisExpression(), "x"),
	CallExpression(ident("a"), []),
	arrow([ident("x")], ident("x")),
	UpdateExpression("++", ident("a")),
	UnaryExpression("typeof", ident("a")),
	UnaryExpression("delete", member(ident("a"), "b")),
	BinaryExpression("instanceof", ident("a"), ident("a")),
]


def _outcome(node: Node, features: Features) -> str | None:
	try:
		transform(node, ["a"], None, features)
	except PolicyViolation as exc:
		return exc.reason
	return None


@pytest.mark.parametrize("node", _SAMPLES, ids=lambda n: emit(n))
def test_every_sample_passes_with_all_switches_on(node: Node):
	assert _outcome(node, Features(**{s: True for s in _SWITCHES})) is None


@pytest.mark.parametrize("switch", _SWITCHES)
@pytest.mark.parametrize("node", _SAMPLES, ids=lambda n: emit(n))
def test_enabling_a_switch_never_adds_rejections(switch: str, node: Node):
	for base in (Features(**{s: False for s in _SWITCHES}), Features()):
		on = replace(base, **{switch: True})
		if _outcome(node, base) is None:
			assert _outcome(node, on) is None
