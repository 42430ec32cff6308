"""Formula validation for CalcFields.

Validation is strict and runs before a formula is saved. It never
executes the formula: a formula can validate and still reference an
unknown field, which evaluates to 0.
"""

from collections.abc import Sequence

from calcfields.core.exceptions import FormulaSyntaxError, NestingDepthError
from calcfields.formula.dependencies import detect_circular_dependency
from calcfields.formula.parser import DEFAULT_MAX_DEPTH, FormulaParser
from calcfields.formula.tokenizer import (
    AGGREGATE_FUNCTIONS,
    DATE_FUNCTIONS,
    TokenType,
    tokenize,
)
from calcfields.schemas.calculated_field import (
    CalculatedField,
    FormulaType,
    ValidationResult,
)

EMPTY_FORMULA = "Formula is empty"
UNBALANCED_PARENTHESES = "Unbalanced parentheses"
MISSING_AGGREGATE = "Aggregation formula must include SUM, AVG, COUNT, MIN, or MAX"
MISSING_DATE_FUNCTION = (
    "Date formula must include a date function (DAYS_SINCE, DAYS_BETWEEN, MONTHS_SINCE, HOURS_SINCE)"
)


def validate_formula(
    formula: str,
    formula_type: FormulaType | str,
    existing_fields: Sequence[CalculatedField] | None = None,
    current_slug: str | None = None,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> ValidationResult:
    """
    Validate a formula before it is saved.

    Checks, in order: the formula is not empty, parentheses balance,
    the formula parses within max_depth, the formula contains a function
    its type requires, and (when existing fields and the current slug are
    given) saving it would not create a circular dependency.

    Args:
        formula: Formula source text
        formula_type: Declared formula type of the field
        existing_fields: Saved calculated fields of the dataset
        current_slug: Slug of the field being created or edited
        max_depth: Maximum accepted nesting depth

    Returns:
        ValidationResult with an error message when invalid
    """
    tokens = tokenize(formula or "")
    if not tokens:
        return ValidationResult.fail(EMPTY_FORMULA)

    depth = 0
    for token in tokens:
        if token.type == TokenType.LPAREN:
            depth += 1
        elif token.type == TokenType.RPAREN:
            depth -= 1
            if depth < 0:
                return ValidationResult.fail(UNBALANCED_PARENTHESES)
    if depth != 0:
        return ValidationResult.fail(UNBALANCED_PARENTHESES)

    try:
        FormulaParser(max_depth=max_depth).parse_tokens(tokens, formula)
    except NestingDepthError as e:
        return ValidationResult.fail(e.message)
    except FormulaSyntaxError as e:
        return ValidationResult.fail(f"Invalid formula syntax: {e.message}")

    functions = {str(t.value) for t in tokens if t.type == TokenType.FUNCTION}
    try:
        known_type = FormulaType(formula_type)
    except ValueError:
        # Types this engine does not know have no required functions
        known_type = None

    if known_type == FormulaType.AGGREGATION and not functions & AGGREGATE_FUNCTIONS:
        return ValidationResult.fail(MISSING_AGGREGATE)

    if known_type == FormulaType.DATE_DIFF and not functions & DATE_FUNCTIONS:
        return ValidationResult.fail(MISSING_DATE_FUNCTION)

    if existing_fields is not None and current_slug:
        others = [f for f in existing_fields if f.field_slug != current_slug]
        proposed = CalculatedField(field_slug=current_slug, formula=formula)
        check = detect_circular_dependency(others, proposed)
        if check.has_circular:
            cycle = check.cycle or []
            path = " → ".join([*cycle, cycle[0]]) if cycle else "unknown"
            return ValidationResult.fail(f"Circular dependency detected: {path}")

    return ValidationResult.ok()
