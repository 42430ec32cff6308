"""
Custom exceptions for CalcFields.

The evaluation path never lets these reach its caller: the parser raises
them, and the evaluator and orchestrator turn them into null values plus
a diagnostic. The validator turns them into structured results.
"""

from typing import Any


class CalcFieldsException(Exception):
    """
    Base exception for all CalcFields errors.

    All custom exceptions should inherit from this class.
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize exception.

        Args:
            message: Human-readable error message
            code: Machine-readable error code
            details: Additional error details
        """
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a dictionary for the authoring UI."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            }
        }


class FormulaError(CalcFieldsException):
    """Formula parsing or execution error."""

    def __init__(self, formula: str, error: str, code: str = "FORMULA_ERROR") -> None:
        self.formula = formula
        self.error = error
        super().__init__(
            message=error,
            code=code,
            details={"formula": formula, "error": error},
        )


class FormulaSyntaxError(FormulaError):
    """Formula text could not be parsed (unbalanced parentheses, missing operand)."""

    def __init__(self, formula: str, error: str) -> None:
        super().__init__(formula, error, code="FORMULA_SYNTAX_ERROR")


class NestingDepthError(FormulaSyntaxError):
    """Formula nests groups or function calls deeper than allowed."""

    def __init__(self, formula: str, max_depth: int) -> None:
        self.max_depth = max_depth
        super().__init__(formula, f"Formula nests too deeply (max {max_depth} levels)")
        self.code = "FORMULA_NESTING_TOO_DEEP"
        self.details["max_depth"] = max_depth
