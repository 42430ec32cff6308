"""Calculated field schemas.

The configuration store owns and mutates calculated fields; the engine
only reads them. Results handed back to the authoring UI are modelled
here too.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class FormulaType(str, Enum):
    """Classification constraining which functions a formula must contain."""

    EXPRESSION = "expression"
    AGGREGATION = "aggregation"
    CONDITIONAL = "conditional"
    DATE_DIFF = "date_diff"


class TimeScope(str, Enum):
    """Calendar or rolling window applied before an aggregation."""

    ALL = "all"
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"
    MTD = "mtd"
    YTD = "ytd"
    ROLLING_7D = "rolling_7d"
    ROLLING_30D = "rolling_30d"
    # Stored by the host for user-picked ranges; the engine does not filter it
    CUSTOM = "custom"


class RefreshMode(str, Enum):
    """When the host application recomputes a field."""

    REALTIME = "realtime"
    ON_INSERT = "on_insert"
    MANUAL = "manual"


class ComparisonPeriod(str, Enum):
    """Period a dashboard compares an aggregate against."""

    PREVIOUS_PERIOD = "previous_period"
    PREVIOUS_YEAR = "previous_year"
    NONE = "none"


class CalculatedField(BaseModel):
    """A user-defined formula producing a value per record or per dataset."""

    id: str = Field(default="", description="Field ID")
    dataset_id: str = Field(default="", description="Owning dataset ID")
    organization_id: Optional[str] = Field(None, description="Owning organization ID")
    field_slug: str = Field(..., min_length=1, description="Slug, usable as a reference in formulas")
    display_name: Optional[str] = Field(None, description="Label shown in the UI")
    formula: str = Field(default="", description="Formula source text")
    formula_type: FormulaType = Field(default=FormulaType.EXPRESSION)
    time_scope: TimeScope = Field(default=TimeScope.ALL)
    comparison_period: Optional[ComparisonPeriod] = Field(None)
    refresh_mode: RefreshMode = Field(default=RefreshMode.REALTIME)
    is_active: bool = Field(default=True, description="Inactive fields are never computed")

    model_config = {"from_attributes": True, "frozen": True}


class ValidationResult(BaseModel):
    """Outcome of validating a formula before it is saved."""

    valid: bool
    error: Optional[str] = None

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(valid=True)

    @classmethod
    def fail(cls, error: str) -> "ValidationResult":
        return cls(valid=False, error=error)


class CircularCheckResult(BaseModel):
    """Outcome of circular-dependency detection."""

    has_circular: bool
    cycle: Optional[list[str]] = None


class FormulaExample(BaseModel):
    """A template formula offered by the authoring UI."""

    label: str
    formula: str
    description: str


# Formula templates per type, shown in the field builder
FORMULA_EXAMPLES: dict[FormulaType, list[FormulaExample]] = {
    FormulaType.EXPRESSION: [
        FormulaExample(label="Percentage", formula="(field_a / field_b) * 100", description="Calculate percentage"),
        FormulaExample(label="Commission", formula="amount * 0.1", description="10% of amount"),
        FormulaExample(label="Markup", formula="cost * 1.25", description="25% markup on cost"),
        FormulaExample(label="Difference", formula="revenue - expenses", description="Net calculation"),
    ],
    FormulaType.AGGREGATION: [
        FormulaExample(label="Total", formula="SUM(amount)", description="Sum of all amounts"),
        FormulaExample(label="Average", formula="AVG(amount)", description="Average amount"),
        FormulaExample(label="Count", formula='COUNT("*")', description="Count all records"),
        FormulaExample(label="Largest", formula="MAX(amount)", description="Largest amount"),
    ],
    FormulaType.DATE_DIFF: [
        FormulaExample(label="Days Since", formula="DAYS_SINCE(created_at)", description="Days from date to now"),
        FormulaExample(
            label="Days Between",
            formula="DAYS_BETWEEN(start_date, end_date)",
            description="Days between two dates",
        ),
        FormulaExample(label="Age in Months", formula="MONTHS_SINCE(birth_date)", description="Age in months"),
        FormulaExample(label="Hours Elapsed", formula="HOURS_SINCE(last_activity)", description="Hours since activity"),
    ],
    FormulaType.CONDITIONAL: [
        FormulaExample(label="Status Label", formula='IF(amount > 1000, "High", "Low")', description="Conditional value"),
        FormulaExample(
            label="Tier",
            formula='CASE(amount >= 500, "Gold", amount >= 100, "Silver", "Bronze")',
            description="First matching condition wins",
        ),
    ],
}

FORMULA_TYPE_OPTIONS: list[dict[str, str]] = [
    {"value": "expression", "label": "Math Expression", "description": "Arithmetic on fields (e.g., revenue * 0.1)"},
    {"value": "aggregation", "label": "Aggregation", "description": "SUM, COUNT, AVG across records"},
    {"value": "date_diff", "label": "Date Calculation", "description": "Days between, age, time since"},
    {"value": "conditional", "label": "Conditional", "description": "IF/CASE logic"},
]

TIME_SCOPE_OPTIONS: list[dict[str, str]] = [
    {"value": "all", "label": "All Time"},
    {"value": "today", "label": "Today"},
    {"value": "week", "label": "This Week"},
    {"value": "month", "label": "This Month"},
    {"value": "mtd", "label": "Month to Date"},
    {"value": "quarter", "label": "This Quarter"},
    {"value": "year", "label": "This Year"},
    {"value": "ytd", "label": "Year to Date"},
    {"value": "rolling_7d", "label": "Rolling 7 Days"},
    {"value": "rolling_30d", "label": "Rolling 30 Days"},
]

REFRESH_MODE_OPTIONS: list[dict[str, str]] = [
    {"value": "realtime", "label": "Real-time", "description": "Calculate on every view"},
    {"value": "on_insert", "label": "On Insert", "description": "Calculate when new records arrive"},
    {"value": "manual", "label": "Manual", "description": "Only update on demand"},
]
