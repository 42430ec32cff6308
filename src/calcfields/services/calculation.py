"""Calculated field evaluation service.

Coordinates tokenizing, evaluating and time-scope filtering to compute
one or all calculated fields for one record or for a whole dataset.
A failure in one field is logged and recorded as None; it never aborts
the rest of a batch.
"""

import logging
from collections import ChainMap
from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Any

from calcfields.core.config import settings
from calcfields.formula.context import EvaluationContext, Record
from calcfields.formula.dependencies import FormulaDependencyGraph
from calcfields.formula.evaluator import FormulaEvaluator
from calcfields.formula.time_scope import filter_records_by_time_scope
from calcfields.formula.tokenizer import tokenize
from calcfields.schemas.calculated_field import CalculatedField, FormulaType


class CalculationService:
    """Service for computing calculated field values."""

    def __init__(
        self,
        logger: logging.Logger | None = None,
        clock: Callable[[], datetime] | None = None,
        date_field: str | None = None,
        max_depth: int | None = None,
    ):
        """
        Initialize the service.

        Args:
            logger: Diagnostics logger; defaults to this module's logger
            clock: Source of "now"; defaults to the system clock
            date_field: Record attribute used for time-scope filtering
            max_depth: Maximum formula nesting depth
        """
        self._logger = logger or logging.getLogger(__name__)
        self._clock = clock or datetime.now
        self.date_field = date_field or settings.default_date_field
        self._evaluator = FormulaEvaluator(
            logger=self._logger,
            max_depth=max_depth or settings.max_nesting_depth,
        )

    # ==========================================================================
    # Single field
    # ==========================================================================

    def calculate_field_value(
        self,
        field: CalculatedField,
        record: Record,
        records: Sequence[Record] | None = None,
        now: datetime | None = None,
    ) -> Any:
        """
        Calculate a field for one record.

        Args:
            field: Calculated field (expression, conditional or date_diff)
            record: Current record
            records: Full unfiltered record set for inline aggregates
            now: Evaluation instant

        Returns:
            Computed value, or None if evaluation failed
        """
        context = EvaluationContext(record=record, records=records, now=now or self._clock())
        return self._evaluate(field, context)

    def calculate_aggregation(
        self,
        field: CalculatedField,
        records: Sequence[Record],
        date_field: str | None = None,
        now: datetime | None = None,
    ) -> Any:
        """
        Calculate an aggregation field over a dataset.

        The field's own time scope filters the records first.

        Args:
            field: Aggregation field
            records: All records of the dataset
            date_field: Attribute holding each record's timestamp
            now: Evaluation instant

        Returns:
            Aggregated value, or None if evaluation failed
        """
        return self._aggregate(field, records, date_field or self.date_field, now or self._clock(), {})

    # ==========================================================================
    # Batches
    # ==========================================================================

    def calculate_all_fields(
        self,
        fields: Sequence[CalculatedField],
        record: Record,
        records: Sequence[Record] | None = None,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """
        Calculate every active field for a record via the per-record path.

        Returns:
            Mapping of field slug to value
        """
        now = now or self._clock()
        active = [f for f in fields if f.is_active]
        computed: dict[str, Any] = {}

        for field in self._in_dependency_order(active):
            context = EvaluationContext(
                record=ChainMap(computed, record),
                records=records,
                now=now,
            )
            computed[field.field_slug] = self._evaluate(field, context)

        return {f.field_slug: computed[f.field_slug] for f in active}

    def calculate_aggregations(
        self,
        fields: Sequence[CalculatedField],
        records: Sequence[Record],
        date_field: str | None = None,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """
        Calculate every active aggregation field for a dataset.

        Returns:
            Mapping of field slug to aggregated value
        """
        now = now or self._clock()
        date_field = date_field or self.date_field
        aggregations = [
            f for f in fields if f.is_active and f.formula_type == FormulaType.AGGREGATION
        ]

        computed: dict[str, Any] = {}
        for field in self._in_dependency_order(aggregations):
            computed[field.field_slug] = self._aggregate(field, records, date_field, now, computed)

        return {f.field_slug: computed[f.field_slug] for f in aggregations}

    def calculate_all_fields_with_aggregations(
        self,
        fields: Sequence[CalculatedField],
        record: Record,
        records: Sequence[Record],
        date_field: str | None = None,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """
        Calculate every active field for a record, aggregations included.

        Aggregation fields are computed over their time-scoped record set;
        the others are computed for the record, seeing the aggregation
        results as field values.

        Returns:
            Mapping of field slug to value, in field order
        """
        now = now or self._clock()
        active = [f for f in fields if f.is_active]

        computed = self.calculate_aggregations(active, records, date_field, now)
        per_record = [f for f in active if f.formula_type != FormulaType.AGGREGATION]

        for field in self._in_dependency_order(per_record):
            context = EvaluationContext(
                record=ChainMap(computed, record),
                records=records,
                now=now,
            )
            computed[field.field_slug] = self._evaluate(field, context)

        return {f.field_slug: computed[f.field_slug] for f in active}

    # ==========================================================================
    # Internals
    # ==========================================================================

    def _aggregate(
        self,
        field: CalculatedField,
        records: Sequence[Record],
        date_field: str,
        now: datetime,
        computed: dict[str, Any],
    ) -> Any:
        try:
            scoped = filter_records_by_time_scope(records, field.time_scope, date_field, now)
        except Exception:
            self._logger.exception(
                "Error filtering records for field %s",
                field.field_slug,
                extra={"field_slug": field.field_slug},
            )
            return None

        context = EvaluationContext(record=dict(computed), records=scoped, now=now)
        return self._evaluate(field, context)

    def _evaluate(self, field: CalculatedField, context: EvaluationContext) -> Any:
        try:
            tokens = tokenize(field.formula)
            return self._evaluator.evaluate_tokens(tokens, context, field.formula)
        except Exception:
            self._logger.exception(
                "Error calculating field %s",
                field.field_slug,
                extra={"field_slug": field.field_slug, "formula": field.formula},
            )
            return None

    def _in_dependency_order(self, fields: list[CalculatedField]) -> list[CalculatedField]:
        """Order fields so each comes after the fields it references."""
        by_slug = {f.field_slug: f for f in fields}
        graph = FormulaDependencyGraph.from_fields(fields)
        order = graph.get_evaluation_order(f.field_slug for f in fields)
        if not order:
            if fields:
                self._logger.warning(
                    "Circular dependency between calculated fields; using declaration order",
                    extra={"fields": list(by_slug)},
                )
            return fields
        return [by_slug[slug] for slug in order]
