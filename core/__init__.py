"""
Core package — money, months, enumerations, configuration and errors.
No business logic lives here.
"""

from .config import DEFAULT_CONFIG, RunwayConfig, TaxConfig
from .errors import CurrencyMismatchError, NotFoundError, RunwayError, ValidationError
from .money import MoneyValue
from .period import Period
from .schema import (
    BusinessModelType,
    CapacityResizeMode,
    CompoundingFrequency,
    ExpenseType,
    FundingType,
    HealthStatus,
    Recurrence,
    RevenueKind,
    VATMode,
)
from .validators import ValidationResult, validate_model

__all__ = [
    "DEFAULT_CONFIG",
    "RunwayConfig",
    "TaxConfig",
    "RunwayError",
    "ValidationError",
    "NotFoundError",
    "CurrencyMismatchError",
    "MoneyValue",
    "Period",
    "BusinessModelType",
    "CapacityResizeMode",
    "CompoundingFrequency",
    "ExpenseType",
    "FundingType",
    "HealthStatus",
    "Recurrence",
    "RevenueKind",
    "VATMode",
    "ValidationResult",
    "validate_model",
]
