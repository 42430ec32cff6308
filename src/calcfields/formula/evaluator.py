"""Formula evaluator for CalcFields.

Evaluates parsed formula ASTs against an evaluation context.

Evaluation is total. Arithmetic never yields null: field operands that
are missing or unparseable count as 0 and division by zero yields 0.
Malformed formulas and unknown functions evaluate to None and are
reported through the injected logger.
"""

import logging
import math
from typing import Any

from calcfields.core.exceptions import FormulaError
from calcfields.formula.context import EvaluationContext
from calcfields.formula.functions import (
    RAW_ARGUMENT_FUNCTIONS,
    call_function,
    strict_number,
    to_number,
)
from calcfields.formula.parser import (
    DEFAULT_MAX_DEPTH,
    BinaryOpNode,
    FieldRefNode,
    FormulaParser,
    FunctionCallNode,
    NullNode,
    NumberNode,
    StringNode,
    UnaryOpNode,
)
from calcfields.formula.tokenizer import AGGREGATE_FUNCTIONS, Token

ARITHMETIC_OPERATORS = frozenset({"+", "-", "*", "/", "%"})


class FormulaEvaluator:
    """
    Evaluates formulas against record data.

    Holds no per-call state, so one instance can serve concurrent callers.
    """

    def __init__(
        self,
        logger: logging.Logger | None = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ):
        """
        Initialize evaluator.

        Args:
            logger: Diagnostics logger; defaults to this module's logger
            max_depth: Maximum nesting depth accepted by the parser
        """
        self._logger = logger or logging.getLogger(__name__)
        self._parser = FormulaParser(max_depth=max_depth)

    @property
    def parser(self) -> FormulaParser:
        return self._parser

    def evaluate_formula(self, formula: str, context: EvaluationContext) -> Any:
        """
        Parse and evaluate a formula string.

        Args:
            formula: Formula source text
            context: Evaluation context

        Returns:
            number, string, boolean, or None
        """
        try:
            ast = self._parser.parse(formula)
        except FormulaError as e:
            self._logger.warning(
                "Formula could not be parsed: %s",
                e.message,
                extra={"formula": formula},
            )
            return None
        return self.evaluate(ast, context)

    def evaluate_tokens(self, tokens: list[Token], context: EvaluationContext, formula: str = "") -> Any:
        """Evaluate an already tokenized formula."""
        try:
            ast = self._parser.parse_tokens(tokens, formula)
        except FormulaError as e:
            self._logger.warning(
                "Formula could not be parsed: %s",
                e.message,
                extra={"formula": formula},
            )
            return None
        return self.evaluate(ast, context)

    def evaluate(self, ast: Any, context: EvaluationContext) -> Any:
        """
        Evaluate an AST.

        Args:
            ast: AST root node (None for an empty formula)
            context: Evaluation context

        Returns:
            Evaluation result, or None if evaluation failed
        """
        if ast is None:
            return None
        try:
            return self._eval(ast, context)
        except RecursionError:
            self._logger.warning("Formula is too deeply nested to evaluate")
            return None
        except Exception:
            self._logger.exception("Formula evaluation failed")
            return None

    def _eval(self, node: Any, context: EvaluationContext) -> Any:
        """Recursively evaluate an AST node."""
        if isinstance(node, NumberNode):
            return node.value

        if isinstance(node, StringNode):
            return node.value

        if isinstance(node, NullNode):
            return None

        if isinstance(node, FieldRefNode):
            return to_number(context.get(node.field_name))

        if isinstance(node, FunctionCallNode):
            return self._eval_function(node, context)

        if isinstance(node, BinaryOpNode):
            return self._eval_binary(node, context)

        if isinstance(node, UnaryOpNode):
            return -to_number(self._eval(node.operand, context))

        raise FormulaError("", f"Unknown node type: {type(node).__name__}")

    def _eval_function(self, node: FunctionCallNode, context: EvaluationContext) -> Any:
        """Evaluate every argument, then dispatch the call."""
        args = [self._eval_argument(node.name, arg, context) for arg in node.arguments]
        return call_function(node.name, args, context, self._logger)

    def _eval_argument(self, function: str, arg: Any, context: EvaluationContext) -> Any:
        """
        Evaluate one function argument.

        A bare field reference names the column for an aggregate and is
        passed raw to date functions and COALESCE.
        """
        if isinstance(arg, FieldRefNode):
            if function in AGGREGATE_FUNCTIONS:
                return arg.field_name
            if function in RAW_ARGUMENT_FUNCTIONS:
                return context.get(arg.field_name)
        return self._eval(arg, context)

    def _eval_binary(self, node: BinaryOpNode, context: EvaluationContext) -> Any:
        """
        Evaluate a left-associative operator chain.

        ``a + b + c`` parses as ``(a + b) + c``; the left spine is walked
        with a loop so a long flat formula does not recurse per term.
        """
        chain = []
        while isinstance(node, BinaryOpNode):
            chain.append(node)
            node = node.left

        value = self._operand(node, context)
        for link in reversed(chain):
            right = self._operand(link.right, context)
            if link.operator in ARITHMETIC_OPERATORS:
                value = arithmetic(link.operator, to_number(value), to_number(right))
            else:
                value = compare(link.operator, value, right)
        return value

    def _operand(self, node: Any, context: EvaluationContext) -> Any:
        """Operands see raw field values; arithmetic coerces them afterwards."""
        if isinstance(node, FieldRefNode):
            return context.get(node.field_name)
        return self._eval(node, context)


def arithmetic(op: str, left: float, right: float) -> float:
    """Apply + - * / % to two numbers. Division or remainder by zero is 0."""
    if op == "+":
        return left + right
    if op == "-":
        return left - right
    if op == "*":
        return left * right
    if op == "/":
        return left / right if right != 0 else 0.0
    if op == "%":
        if right == 0 or math.isinf(left):
            return 0.0
        # Remainder takes the sign of the dividend
        return math.fmod(left, right)
    raise FormulaError("", f"Unknown operator: {op}")


def compare(op: str, left: Any, right: Any) -> bool:
    """
    Compare two values.

    Numeric when both sides are numeric (a missing side counts as 0
    against a number), otherwise textual. Missing against text is
    unequal and unordered.
    """
    left_num = strict_number(left)
    right_num = strict_number(right)
    if left is None and right_num is not None:
        left_num = 0.0
    if right is None and left_num is not None:
        right_num = 0.0

    if left_num is not None and right_num is not None:
        a: Any = left_num
        b: Any = right_num
    elif left is None or right is None:
        if op == "=":
            return left is None and right is None
        if op == "!=":
            return not (left is None and right is None)
        return False
    else:
        a = str(left)
        b = str(right)

    if op == "=":
        return a == b
    if op == "!=":
        return a != b
    if op == "<":
        return a < b
    if op == ">":
        return a > b
    if op == "<=":
        return a <= b
    if op == ">=":
        return a >= b
    raise FormulaError("", f"Unknown operator: {op}")


def evaluate_formula(
    formula: str,
    context: EvaluationContext,
    logger: logging.Logger | None = None,
) -> Any:
    """
    Convenience function to evaluate a formula.

    Args:
        formula: Formula source text
        context: Evaluation context
        logger: Diagnostics logger

    Returns:
        Evaluation result
    """
    return FormulaEvaluator(logger=logger).evaluate_formula(formula, context)
