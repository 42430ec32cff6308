"""
Pytest configuration and fixtures for CalcFields tests.
"""

from datetime import datetime, timedelta
from typing import Any

import pytest

from calcfields.formula.context import EvaluationContext
from calcfields.schemas.calculated_field import CalculatedField, FormulaType, TimeScope

# Wednesday afternoon; the week started Monday 2026-10-12
FIXED_NOW = datetime(2026, 10, 14, 15, 30, 0)


@pytest.fixture
def now() -> datetime:
    """Fixed evaluation instant."""
    return FIXED_NOW


@pytest.fixture
def deal_records(now: datetime) -> list[dict[str, Any]]:
    """Deals spread over today, this week, this quarter and last year."""
    return [
        {"id": "d1", "amount": 100, "status": "paid", "created_at": (now - timedelta(hours=2)).isoformat()},
        {"id": "d2", "amount": "250.5", "status": "open", "created_at": (now - timedelta(days=2)).isoformat()},
        {"id": "d3", "amount": 40, "status": "paid", "created_at": (now - timedelta(days=10)).isoformat()},
        {"id": "d4", "amount": None, "status": "lost", "created_at": (now - timedelta(days=40)).isoformat()},
        {"id": "d5", "amount": 75, "status": "paid", "created_at": "2025-12-31T23:00:00"},
        {"id": "d6", "amount": 10, "status": "open", "created_at": "not a date"},
    ]


@pytest.fixture
def make_field():
    """Factory for calculated fields with sensible defaults."""

    def _make(
        slug: str,
        formula: str,
        formula_type: FormulaType = FormulaType.EXPRESSION,
        time_scope: TimeScope = TimeScope.ALL,
        is_active: bool = True,
    ) -> CalculatedField:
        return CalculatedField(
            id=f"id-{slug}",
            dataset_id="dataset-1",
            field_slug=slug,
            formula=formula,
            formula_type=formula_type,
            time_scope=time_scope,
            is_active=is_active,
        )

    return _make


@pytest.fixture
def context_for(now: datetime):
    """Build an evaluation context at the fixed instant."""

    def _context(record: dict[str, Any] | None = None, records: list[dict[str, Any]] | None = None):
        return EvaluationContext(record=record or {}, records=records, now=now)

    return _context
