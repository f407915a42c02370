"""
Enumerations and display constants.

All enums subclass ``str`` so that values serialize to JSON unchanged.
"""

from __future__ import annotations

from enum import Enum


class FundingType(str, Enum):
    EQUITY = "Equity"
    DEBT = "Debt"
    GRANT = "Grant"


class CompoundingFrequency(str, Enum):
    NONE = "None"
    MONTHLY = "Monthly"
    QUARTERLY = "Quarterly"
    ANNUALLY = "Annually"


class ExpenseType(str, Enum):
    OPERATING = "Operating"
    VARIABLE = "Variable"
    CAPITAL = "Capital"


class Recurrence(str, Enum):
    MONTHLY = "Monthly"
    QUARTERLY = "Quarterly"
    YEARLY = "Yearly"


class VATMode(str, Enum):
    VAT = "VAT"
    NON_VAT = "Non-VAT"


class BusinessModelType(str, Enum):
    PRODUCT = "Product"
    SERVICE = "Service"
    SUBSCRIPTION = "Subscription"
    HYBRID = "Hybrid"


class RevenueKind(str, Enum):
    PRODUCT = "Product"
    SERVICE = "Service"
    SUBSCRIPTION = "Subscription"


class CapacityResizeMode(str, Enum):
    DEFAULT = "default"
    DISTRIBUTE = "distribute"


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    WARNING = "warning"
    CRITICAL = "critical"


# Severity order for the health classifier (higher wins).
HEALTH_RANK = {
    HealthStatus.HEALTHY: 0,
    HealthStatus.WARNING: 1,
    HealthStatus.CRITICAL: 2,
}

# Months between billing / occurrence dates.
RECURRENCE_STEP = {
    Recurrence.MONTHLY: 1,
    Recurrence.QUARTERLY: 3,
    Recurrence.YEARLY: 12,
}

FUNDING_COLORS = {
    FundingType.EQUITY: "#4CAF50",
    FundingType.DEBT: "#F44336",
    FundingType.GRANT: "#2196F3",
}

EXPENSE_COLORS = {
    ExpenseType.OPERATING: "#FF9800",
    ExpenseType.VARIABLE: "#9C27B0",
    ExpenseType.CAPITAL: "#607D8B",
}

CASHFLOW_COLORS = {
    "cash_in": "#4CAF50",
    "cash_out": "#F44336",
    "taxes": "#FFC107",
    "ending_cash": "#2196F3",
}
