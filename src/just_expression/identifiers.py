"""JavaScript lexical checks.

Names and literal text coming from a parsed tree end up verbatim in generated
source, so each must be exactly one token of the expected kind.
"""

from __future__ import annotations

import re

# Keywords, strict-mode reserved words and the names strict code cannot bind.
RESERVED_IDENTIFIERS: frozenset[str] = frozenset(
	{
		"await",
		"break",
		"case",
		"catch",
		"class",
		"const",
		"continue",
		"debugger",
		"default",
		"delete",
		"do",
		"else",
		"enum",
		"export",
		"extends",
		"false",
		"finally",
		"for",
		"function",
		"if",
		"import",
		"in",
		"instanceof",
		"new",
		"null",
		"return",
		"super",
		"switch",
		"this",
		"throw",
		"true",
		"try",
		"typeof",
		"var",
		"void",
		"while",
		"with",
		"yield",
		"implements",
		"interface",
		"let",
		"package",
		"private",
		"protected",
		"public",
		"static",
		"arguments",
		"eval",
	}
)

_ZWNJ = "\u200c"
_ZWJ = "\u200d"


def _is_id_start(ch: str) -> bool:
	return ch == "$" or ch.isidentifier()


def _is_id_continue(ch: str) -> bool:
	# "_" + ch is an identifier iff ch is XID_Continue
	return ch in ("$", _ZWNJ, _ZWJ) or ("_" + ch).isidentifier()


def is_identifier_name(name: object) -> bool:
	"""True if ``name`` is one IdentifierName token (reserved words included)."""
	if not isinstance(name, str) or not name:
		return False
	if not _is_id_start(name[0]):
		return False
	return all(_is_id_continue(ch) for ch in name[1:])


def is_identifier(name: object) -> bool:
	"""True if ``name`` can be used as a strict-mode JS binding name."""
	return is_identifier_name(name) and name not in RESERVED_IDENTIFIERS


# =============================================================================
# Literal tokens
# =============================================================================

_LINE_TERMINATORS = frozenset("\n\r\u2028\u2029")

_STRING_TOKEN = re.compile(
	r"""(?:"(?:[^"\\\n\r]|\\[\s\S])*"|'(?:[^'\\\n\r]|\\[\s\S])*')"""
)

_INTEGER = (
	r"(?:0[xX][0-9a-fA-F](?:_?[0-9a-fA-F])*"
	r"|0[oO][0-7](?:_?[0-7])*"
	r"|0[bB][01](?:_?[01])*"
	r"|[0-9](?:_?[0-9])*)"
)
_DIGITS = r"[0-9](?:_?[0-9])*"

_NUMBER_TOKEN = re.compile(
	rf"(?:{_INTEGER}"
	rf"|(?:{_DIGITS}(?:\.(?:{_DIGITS})?)?|\.{_DIGITS})(?:[eE][+-]?{_DIGITS})?)",
	re.ASCII,
)
_BIGINT_TOKEN = re.compile(rf"{_INTEGER}n", re.ASCII)
_BIGINT_DIGITS = re.compile(r"[0-9]+", re.ASCII)
_REGEX_FLAGS = re.compile(r"[dgimsuyv]*", re.ASCII)

_KEYWORD_LITERALS = frozenset({"true", "false", "null"})


def is_literal_token(raw: object) -> bool:
	"""True if ``raw`` is a single string, number, bigint or keyword literal."""
	if not isinstance(raw, str):
		return False
	return (
		raw in _KEYWORD_LITERALS
		or _STRING_TOKEN.fullmatch(raw) is not None
		or _NUMBER_TOKEN.fullmatch(raw) is not None
		or _BIGINT_TOKEN.fullmatch(raw) is not None
	)


def is_bigint_digits(digits: object) -> bool:
	return isinstance(digits, str) and _BIGINT_DIGITS.fullmatch(digits) is not None


def is_regex_literal(pattern: object, flags: object) -> bool:
	"""True if ``/pattern/flags`` reads back as exactly one regex literal."""
	if not isinstance(pattern, str) or not isinstance(flags, str):
		return False
	if not pattern or pattern[0] == "*" or _REGEX_FLAGS.fullmatch(flags) is None:
		return False
	escaped = in_class = False
	for ch in pattern:
		if ch in _LINE_TERMINATORS:
			return False
		if escaped:
			escaped = False
		elif ch == "\\":
			escaped = True
		elif in_class:
			in_class = ch != "]"
		elif ch == "[":
			in_class = True
		elif ch == "/":
			return False
	return not (escaped or in_class)


def is_template_raw(raw: object) -> bool:
	"""True if ``raw`` cannot end its template or open a substitution."""
	if not isinstance(raw, str):
		return False
	escaped = False
	for i, ch in enumerate(raw):
		if escaped:
			escaped = False
		elif ch == "\\":
			escaped = True
		elif ch == "`" or (ch == "$" and raw[i + 1 : i + 2] == "{"):
			return False
	return not escaped
