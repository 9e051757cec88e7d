"""Certify JavaScript expression trees into a pure, scope-checked subset."""

# Binding scanner
from just_expression.bindings import bound_names as bound_names
from just_expression.bindings import collect_bindings as collect_bindings

# Errors
from just_expression.errors import ConfigurationError as ConfigurationError
from just_expression.errors import ErrorKind as ErrorKind
from just_expression.errors import JustExpressionError as JustExpressionError
from just_expression.errors import PatternError as PatternError
from just_expression.errors import PolicyViolation as PolicyViolation
from just_expression.errors import TreeFormatError as TreeFormatError
from just_expression.errors import (
	UnresolvedReferenceError as UnresolvedReferenceError,
)

# ESTree conversion
from just_expression.estree import from_estree as from_estree
from just_expression.estree import load_expression as load_expression
from just_expression.estree import to_estree as to_estree

# Function system
from just_expression.function import JsFunction as JsFunction
from just_expression.function import compile_expression as compile_expression
from just_expression.function import js_function as js_function

# Identifiers
from just_expression.identifiers import is_identifier as is_identifier

# Nodes
from just_expression.nodes import Node as Node
from just_expression.nodes import Opaque as Opaque

# Emit
from just_expression.nodes import emit as emit

# Policy
from just_expression.policy import Features as Features
from just_expression.policy import admit as admit

# Transform
from just_expression.transform import THIS_GLOBAL as THIS_GLOBAL
from just_expression.transform import Certifier as Certifier
from just_expression.transform import transform as transform
