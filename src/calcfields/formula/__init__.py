"""Formula engine for CalcFields.

This module provides the calculated-field formula system:
- Tokenizer for lenient end-user formula text
- Recursive-descent parser producing an AST
- Evaluator with arithmetic (+, -, *, /, %) and comparisons
- Math functions (ABS, ROUND, FLOOR, CEIL)
- Conditional functions (IF, CASE, COALESCE)
- Date functions (DAYS_SINCE, DAYS_BETWEEN, MONTHS_SINCE, HOURS_SINCE)
- Aggregate functions (SUM, AVG, COUNT, MIN, MAX)
- Time-scope filtering, dependency tracking and validation
"""

from calcfields.formula.context import EvaluationContext
from calcfields.formula.dependencies import FormulaDependencyGraph, detect_circular_dependency
from calcfields.formula.evaluator import FormulaEvaluator, evaluate_formula
from calcfields.formula.functions import FORMULA_FUNCTIONS, call_function, register_function
from calcfields.formula.parser import FormulaParser
from calcfields.formula.time_scope import filter_records_by_time_scope, time_scope_start
from calcfields.formula.tokenizer import Token, TokenType, tokenize
from calcfields.formula.validator import validate_formula

__all__ = [
    "EvaluationContext",
    "FORMULA_FUNCTIONS",
    "FormulaDependencyGraph",
    "FormulaEvaluator",
    "FormulaParser",
    "Token",
    "TokenType",
    "call_function",
    "detect_circular_dependency",
    "evaluate_formula",
    "filter_records_by_time_scope",
    "register_function",
    "time_scope_start",
    "tokenize",
    "validate_formula",
]
