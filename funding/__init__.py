"""
Funding — equity, grants and debt events plus the manager that aggregates them.
"""

from .events import AmortizationEntry, DebtMetadata, FundingEvent, compute_monthly_payment
from .manager import FundingManager, FundingSnapshot

__all__ = [
    "AmortizationEntry",
    "DebtMetadata",
    "FundingEvent",
    "compute_monthly_payment",
    "FundingManager",
    "FundingSnapshot",
]
