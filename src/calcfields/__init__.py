"""
CalcFields - calculated-field engine for business records.

Lets operators define computed and aggregated metrics over calls, leads
and deals with a text formula. The engine tokenizes and parses formulas,
evaluates them per record or over a time-scoped record set, and validates
field definitions (syntax, formula type, circular references) before they
are saved.
"""

__version__ = "0.1.0"
__author__ = "CalcFields Team"
__license__ = "MIT"

from calcfields.formula import (
    EvaluationContext,
    FormulaEvaluator,
    FormulaParser,
    detect_circular_dependency,
    filter_records_by_time_scope,
    tokenize,
    validate_formula,
)
from calcfields.schemas.calculated_field import (
    CalculatedField,
    CircularCheckResult,
    FormulaType,
    TimeScope,
    ValidationResult,
)
from calcfields.services.calculation import CalculationService

__all__ = [
    "__version__",
    "CalculatedField",
    "CalculationService",
    "CircularCheckResult",
    "EvaluationContext",
    "FormulaEvaluator",
    "FormulaParser",
    "FormulaType",
    "TimeScope",
    "ValidationResult",
    "detect_circular_dependency",
    "filter_records_by_time_scope",
    "tokenize",
    "validate_formula",
]
