"""Service layer for CalcFields."""

from calcfields.services.calculation import CalculationService

__all__ = ["CalculationService"]
