"""
Expenses — recurring, one-time and capital records and their breakdown.
"""

from .breakdown import ExpenseBreakdown, ExpenseBreakdownSnapshot
from .expense import ExpenseRecord

__all__ = ["ExpenseBreakdown", "ExpenseBreakdownSnapshot", "ExpenseRecord"]
