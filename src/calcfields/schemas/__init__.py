"""Pydantic schemas for calculated-field definitions and engine results."""

from calcfields.schemas.calculated_field import (
    FORMULA_EXAMPLES,
    FORMULA_TYPE_OPTIONS,
    REFRESH_MODE_OPTIONS,
    TIME_SCOPE_OPTIONS,
    CalculatedField,
    CircularCheckResult,
    ComparisonPeriod,
    FormulaExample,
    FormulaType,
    RefreshMode,
    TimeScope,
    ValidationResult,
)

__all__ = [
    "FORMULA_EXAMPLES",
    "FORMULA_TYPE_OPTIONS",
    "REFRESH_MODE_OPTIONS",
    "TIME_SCOPE_OPTIONS",
    "CalculatedField",
    "CircularCheckResult",
    "ComparisonPeriod",
    "FormulaExample",
    "FormulaType",
    "RefreshMode",
    "TimeScope",
    "ValidationResult",
]
