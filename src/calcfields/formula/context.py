"""Evaluation context for a single formula evaluation."""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

Record = Mapping[str, Any]


@dataclass(frozen=True)
class EvaluationContext:
    """
    Inputs for one evaluation call.

    Attributes:
        record: The current record; empty for dataset-level aggregations
        records: Candidate record set for aggregate functions. None means
            no record set is available and aggregates fall back to scalars.
        now: The evaluation instant used by date functions
    """

    record: Record = field(default_factory=dict)
    records: Sequence[Record] | None = None
    now: datetime = field(default_factory=datetime.now)

    def get(self, field_name: str) -> Any:
        """Raw value of an attribute of the current record, None if absent."""
        return self.record.get(field_name)
