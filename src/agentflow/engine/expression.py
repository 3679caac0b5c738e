"""Restricted expression evaluation for transform and condition steps.

Expressions are parsed into a Python AST and evaluated by a locked-down
simpleeval evaluator. The grammar covers:

- dotted paths into step data: ``plan.files``, ``context.plan.files``
- indexing: ``review.comments[0]``, ``context['step-with-dash']``
- ``.length`` on strings, lists and mappings
- comparisons, arithmetic, ``and``/``or``/``not`` and conditional expressions
- list, dict and tuple literals, list comprehensions for map/filter
- a fixed set of functions (``len``, ``sum``, ``min``, ``max``, ...)

JavaScript spellings (``&&``, ``||``, ``!``, ``===``, ``!==``, ``true``,
``false``, ``null``) are accepted and rewritten before parsing.

Method calls, attribute access on non-mapping objects beyond plain data
fields, and dunder names are rejected.
"""

from __future__ import annotations

import ast
import re
from collections.abc import Mapping
from typing import Any

from simpleeval import (
    AttributeDoesNotExist,
    EvalWithCompoundTypes,
    FeatureNotAvailable,
    InvalidExpression,
    NameNotDefined,
)

from agentflow.engine.context import ExecutionContext
from agentflow.exceptions import ExpressionError

# String literals are matched first so operators inside them are left alone.
_JS_TOKEN_PATTERN = re.compile(
    r"""(?P<string>"(?:\\.|[^"\\])*"|'(?:\\.|[^'\\])*')"""
    r"""|(?P<op>&&|\|\||===|!==|!(?!=))"""
)

_JS_OPERATORS = {
    "&&": " and ",
    "||": " or ",
    "===": "==",
    "!==": "!=",
    "!": " not ",
}

LITERAL_NAMES: dict[str, Any] = {
    "true": True,
    "false": False,
    "null": None,
    "None": None,
    "True": True,
    "False": False,
}


def _pluck(items: Any, key: str) -> list[Any]:
    """Extract one key from every mapping in a list."""
    return [item.get(key) if isinstance(item, Mapping) else None for item in items]


def _keys(value: Mapping[str, Any]) -> list[str]:
    return list(value.keys())


def _values(value: Mapping[str, Any]) -> list[Any]:
    return list(value.values())


ALLOWED_FUNCTIONS: dict[str, Any] = {
    "len": len,
    "sum": sum,
    "min": min,
    "max": max,
    "abs": abs,
    "round": round,
    "sorted": sorted,
    "any": any,
    "all": all,
    "str": str,
    "int": int,
    "float": float,
    "bool": bool,
    "list": list,
    "keys": _keys,
    "values": _values,
    "pluck": _pluck,
}


def normalize_expression(expression: str) -> str:
    """Rewrite JavaScript-style operators into Python syntax.

    Args:
        expression: The raw expression text.

    Returns:
        The expression with ``&&``, ``||``, ``!``, ``===`` and ``!==``
        replaced, leaving string literals untouched.
    """

    def replace(match: re.Match[str]) -> str:
        if match.group("string") is not None:
            return match.group("string")
        return _JS_OPERATORS[match.group("op")]

    return _JS_TOKEN_PATTERN.sub(replace, expression).strip()


class RestrictedEvaluator(EvalWithCompoundTypes):
    """simpleeval evaluator limited to data access.

    Attribute access resolves mapping keys (plus ``length``), and only the
    whitelisted functions may be called.
    """

    def _eval_attribute(self, node: ast.Attribute) -> Any:
        if node.attr.startswith("_"):
            raise FeatureNotAvailable(f"Access to private attribute '{node.attr}' is not allowed")

        value = self._eval(node.value)

        if isinstance(value, Mapping):
            if node.attr in value:
                return value[node.attr]
            if node.attr == "length":
                return len(value)
            raise AttributeDoesNotExist(node.attr, self.expr)

        if node.attr == "length" and isinstance(value, (str, list, tuple)):
            return len(value)

        # Plain data objects (dataclasses, pydantic models) expose their fields.
        if not isinstance(value, (str, list, tuple, int, float, bool)) and value is not None:
            attr = getattr(value, node.attr, None)
            if attr is not None and not callable(attr):
                return attr

        raise AttributeDoesNotExist(node.attr, self.expr)

    def _eval_call(self, node: ast.Call) -> Any:
        if not isinstance(node.func, ast.Name):
            raise FeatureNotAvailable("Only whitelisted functions may be called, not methods")
        return super()._eval_call(node)


class ExpressionEvaluator:
    """Evaluates restricted expressions against an execution context.

    The evaluation namespace holds ``input`` (the original workflow input),
    ``context`` (step id -> data for successful steps) and every successful
    step id that is a valid identifier.

    Example:
        >>> evaluator = ExpressionEvaluator()
        >>> evaluator.evaluate("1 + 2", {})
        3
        >>> evaluator.evaluate("check.count > 3 && check.ok", {"check": {"count": 5, "ok": True}})
        True
    """

    def __init__(self, functions: dict[str, Any] | None = None) -> None:
        """Initialize the evaluator.

        Args:
            functions: Extra functions to expose in addition to the defaults.
        """
        self.functions = {**ALLOWED_FUNCTIONS, **(functions or {})}

    @staticmethod
    def build_namespace(context: ExecutionContext) -> dict[str, Any]:
        """Build the read-only evaluation namespace for a context.

        Args:
            context: The current execution context.

        Returns:
            Mapping of names available to expressions.
        """
        step_data = context.step_data()
        names: dict[str, Any] = dict(LITERAL_NAMES)
        for step_id, data in step_data.items():
            if step_id.isidentifier():
                names[step_id] = data
        names["input"] = context.input
        names["context"] = step_data
        return names

    def evaluate(self, expression: str, names: dict[str, Any]) -> Any:
        """Evaluate an expression against a namespace.

        Args:
            expression: The expression text.
            names: Variables available to the expression.

        Returns:
            The evaluated value.

        Raises:
            ExpressionError: If the expression is malformed, references an
                unknown name or path, or uses a disallowed construct.
        """
        source = normalize_expression(expression)
        if not source:
            raise ExpressionError("Expression is empty", expression=expression)

        evaluator = RestrictedEvaluator(functions=self.functions, names=names)
        try:
            return evaluator.eval(source)
        except NameNotDefined as e:
            raise ExpressionError(
                f"Unknown name in expression '{expression}': {e}",
                suggestion=f"Available names: {', '.join(sorted(n for n in names if n not in LITERAL_NAMES))}",
                expression=expression,
            ) from e
        except AttributeDoesNotExist as e:
            raise ExpressionError(
                f"Unresolved path in expression '{expression}': {e}",
                suggestion="Check that the referenced step succeeded and produced that field",
                expression=expression,
            ) from e
        except FeatureNotAvailable as e:
            raise ExpressionError(
                f"Unsupported construct in expression '{expression}': {e}",
                suggestion="Expressions support paths, comparisons, arithmetic, "
                "and/or/not, comprehensions and whitelisted functions",
                expression=expression,
            ) from e
        except InvalidExpression as e:
            raise ExpressionError(
                f"Invalid expression '{expression}': {e}",
                expression=expression,
            ) from e
        except SyntaxError as e:
            raise ExpressionError(
                f"Syntax error in expression '{expression}': {e.msg}",
                suggestion="Use a single expression such as 'plan.files.length > 0'",
                expression=expression,
            ) from e
        except (KeyError, IndexError, TypeError, ValueError, ArithmeticError) as e:
            raise ExpressionError(
                f"Failed to evaluate expression '{expression}': {type(e).__name__}: {e}",
                expression=expression,
            ) from e

    def evaluate_in_context(self, expression: str, context: ExecutionContext) -> Any:
        """Evaluate an expression against an execution context."""
        return self.evaluate(expression, self.build_namespace(context))

    def evaluate_condition(self, expression: str, context: ExecutionContext) -> bool:
        """Evaluate an expression and coerce the value to a boolean."""
        return bool(self.evaluate_in_context(expression, context))
