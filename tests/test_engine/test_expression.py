"""Tests for the restricted expression evaluator.

Tests cover:
- Dotted paths, indexing and .length
- Comparisons and compound booleans (Python and JavaScript spellings)
- Whitelisted functions and comprehensions
- Rejection of method calls and private attributes
- Error wrapping in ExpressionError
"""

import pytest

from agentflow.engine.expression import ExpressionEvaluator, normalize_expression
from agentflow.exceptions import ExpressionError
from conftest import context_with


@pytest.fixture
def evaluator() -> ExpressionEvaluator:
    return ExpressionEvaluator()


class TestNormalizeExpression:
    """Tests for JavaScript operator rewriting."""

    def test_rewrites_operators(self) -> None:
        """Test &&, ||, ! and strict equality are rewritten."""
        assert normalize_expression("a && b || !c").split() == ["a", "and", "b", "or", "not", "c"]
        assert normalize_expression("a === 1") == "a == 1"
        assert normalize_expression("a !== 1") == "a != 1"

    def test_leaves_not_equal_alone(self) -> None:
        """Test != is not mistaken for negation."""
        assert normalize_expression("a != b") == "a != b"

    def test_string_literals_untouched(self) -> None:
        """Test operators inside strings are preserved."""
        assert normalize_expression("msg == 'a && b!'") == "msg == 'a && b!'"


class TestPaths:
    """Tests for data access."""

    def test_dotted_path(self, evaluator: ExpressionEvaluator) -> None:
        """Test step.field.subfield lookups."""
        ctx = context_with({"plan": {"meta": {"owner": "ana"}}})
        assert evaluator.evaluate_in_context("plan.meta.owner", ctx) == "ana"

    def test_context_prefix(self, evaluator: ExpressionEvaluator) -> None:
        """Test paths through the context mapping."""
        ctx = context_with({"plan": {"files": ["a", "b"]}})
        assert evaluator.evaluate_in_context("context.plan.files", ctx) == ["a", "b"]

    def test_length(self, evaluator: ExpressionEvaluator) -> None:
        """Test .length on lists, strings and mappings."""
        ctx = context_with({"plan": {"files": ["a", "b"], "name": "abc", "meta": {"x": 1}}})
        assert evaluator.evaluate_in_context("plan.files.length", ctx) == 2
        assert evaluator.evaluate_in_context("plan.name.length", ctx) == 3
        assert evaluator.evaluate_in_context("plan.meta.length", ctx) == 1

    def test_indexing(self, evaluator: ExpressionEvaluator) -> None:
        """Test subscript access, including ids that are not identifiers."""
        ctx = context_with({"plan": {"files": ["a", "b"]}, "step-two": 7})
        assert evaluator.evaluate_in_context("plan.files[1]", ctx) == "b"
        assert evaluator.evaluate_in_context("context['step-two']", ctx) == 7

    def test_input(self, evaluator: ExpressionEvaluator) -> None:
        """Test the original workflow input is available."""
        ctx = context_with({}, input_data={"goal": "ship"})
        assert evaluator.evaluate_in_context("input.goal", ctx) == "ship"

    def test_failed_step_not_visible(self, evaluator: ExpressionEvaluator) -> None:
        """Test failed results are not part of the namespace."""
        ctx = context_with({"check": {"count": 5}}, failed=("check",))
        with pytest.raises(ExpressionError):
            evaluator.evaluate_in_context("check.count > 3", ctx)


class TestOperators:
    """Tests for comparisons, arithmetic and booleans."""

    def test_comparison(self, evaluator: ExpressionEvaluator) -> None:
        """Test comparison against a literal."""
        assert evaluator.evaluate_condition("check.count > 3", context_with({"check": {"count": 5}}))
        assert not evaluator.evaluate_condition("check.count > 3", context_with({"check": {"count": 2}}))

    def test_compound_python(self, evaluator: ExpressionEvaluator) -> None:
        """Test and/or/not."""
        ctx = context_with({"check": {"count": 5, "ok": False}})
        assert evaluator.evaluate_in_context("check.count > 3 and not check.ok", ctx) is True

    def test_compound_javascript(self, evaluator: ExpressionEvaluator) -> None:
        """Test &&, || and ! spellings with JS literals."""
        ctx = context_with({"check": {"count": 5, "ok": False}})
        assert evaluator.evaluate_in_context("check.count > 3 && !check.ok", ctx) is True
        assert evaluator.evaluate_in_context("check.ok === true || check.count === 5", ctx) is True
        assert evaluator.evaluate_in_context("check.ok == null", ctx) is False

    def test_arithmetic(self, evaluator: ExpressionEvaluator) -> None:
        """Test arithmetic over prior results."""
        ctx = context_with({"a": {"n": 4}, "b": {"n": 6}})
        assert evaluator.evaluate_in_context("a.n + b.n * 2", ctx) == 16

    def test_literals(self, evaluator: ExpressionEvaluator) -> None:
        """Test list and dict literals."""
        ctx = context_with({"a": {"n": 1}})
        assert evaluator.evaluate_in_context("{'total': a.n, 'items': [1, 2]}", ctx) == {
            "total": 1,
            "items": [1, 2],
        }


class TestFunctions:
    """Tests for whitelisted functions and comprehensions."""

    def test_aggregates(self, evaluator: ExpressionEvaluator) -> None:
        """Test len, sum and max."""
        ctx = context_with({"scores": {"values": [3, 9, 4]}})
        assert evaluator.evaluate_in_context("len(scores.values)", ctx) == 3
        assert evaluator.evaluate_in_context("sum(scores.values)", ctx) == 16
        assert evaluator.evaluate_in_context("max(scores.values)", ctx) == 9

    def test_map_and_filter(self, evaluator: ExpressionEvaluator) -> None:
        """Test comprehensions as map and filter."""
        ctx = context_with({"review": {"items": [{"sev": 1}, {"sev": 3}, {"sev": 5}]}})
        assert evaluator.evaluate_in_context("[i['sev'] for i in review.items if i['sev'] > 2]", ctx) == [3, 5]

    def test_pluck(self, evaluator: ExpressionEvaluator) -> None:
        """Test pluck extracts one key from each mapping."""
        ctx = context_with({"review": {"items": [{"sev": 1}, {"sev": 3}]}})
        assert evaluator.evaluate_in_context("pluck(review.items, 'sev')", ctx) == [1, 3]


class TestRestrictions:
    """Tests for rejected constructs and error wrapping."""

    def test_method_call_rejected(self, evaluator: ExpressionEvaluator) -> None:
        """Test method calls are not allowed."""
        ctx = context_with({"plan": {"name": "abc"}})
        with pytest.raises(ExpressionError, match="Unsupported construct"):
            evaluator.evaluate_in_context("plan.name.upper()", ctx)

    def test_private_attribute_rejected(self, evaluator: ExpressionEvaluator) -> None:
        """Test dunder access is not allowed."""
        ctx = context_with({"plan": {"name": "abc"}})
        with pytest.raises(ExpressionError):
            evaluator.evaluate_in_context("plan.__class__", ctx)

    def test_unknown_name(self, evaluator: ExpressionEvaluator) -> None:
        """Test unknown names raise ExpressionError with a suggestion."""
        with pytest.raises(ExpressionError) as exc_info:
            evaluator.evaluate_in_context("missing.count > 3", context_with({"plan": {}}))
        assert exc_info.value.expression == "missing.count > 3"
        assert "plan" in exc_info.value.suggestion

    def test_unresolved_path(self, evaluator: ExpressionEvaluator) -> None:
        """Test missing keys raise ExpressionError."""
        with pytest.raises(ExpressionError, match="Unresolved path"):
            evaluator.evaluate_in_context("plan.nothing", context_with({"plan": {"files": []}}))

    def test_syntax_error(self, evaluator: ExpressionEvaluator) -> None:
        """Test malformed expressions raise ExpressionError."""
        with pytest.raises(ExpressionError):
            evaluator.evaluate_in_context("plan.files >", context_with({"plan": {"files": []}}))

    def test_empty_expression(self, evaluator: ExpressionEvaluator) -> None:
        """Test empty expressions are rejected."""
        with pytest.raises(ExpressionError, match="empty"):
            evaluator.evaluate("   ", {})

    @pytest.mark.parametrize("expression", ["2.0 ** 5000", "input.n / 0", "input.n % 0"])
    def test_arithmetic_errors(self, evaluator: ExpressionEvaluator, expression: str) -> None:
        """Test overflow and division by zero raise ExpressionError."""
        with pytest.raises(ExpressionError, match="Failed to evaluate"):
            evaluator.evaluate_in_context(expression, context_with({}, input_data={"n": 4}))
