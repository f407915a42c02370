"""
Inclusive month window shared by the collection managers.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import List, Optional

from .errors import ValidationError
from .utils import current_month, month_range, months_in_period, offset_month, require_month


@dataclass(frozen=True)
class Period:
    start_month: str
    end_month: str

    def __post_init__(self):
        require_month(self.start_month, "start month")
        require_month(self.end_month, "end month")
        if self.start_month > self.end_month:
            raise ValidationError(
                f"Period start {self.start_month} must not be after end {self.end_month}"
            )

    @classmethod
    def default(cls, horizon_months: int = 24, today: Optional[date] = None) -> "Period":
        """Current month through ``horizon_months - 1`` months ahead."""
        if horizon_months <= 0:
            raise ValidationError(f"Horizon must be positive, got {horizon_months}")
        start = current_month(today)
        return cls(start, offset_month(start, horizon_months - 1))

    @classmethod
    def from_start(cls, start_month: str, months: int) -> "Period":
        if months <= 0:
            raise ValidationError(f"Period length must be positive, got {months}")
        return cls(start_month, offset_month(start_month, months - 1))

    @property
    def month_count(self) -> int:
        return months_in_period(self.start_month, self.end_month)

    def months(self) -> List[str]:
        return month_range(self.start_month, self.end_month)

    def contains(self, month: str) -> bool:
        return self.start_month <= month <= self.end_month

    def with_bounds(self, start_month: Optional[str] = None, end_month: Optional[str] = None) -> "Period":
        return Period(start_month or self.start_month, end_month or self.end_month)

    def to_json(self) -> dict:
        return {"start_month": self.start_month, "end_month": self.end_month}

    @classmethod
    def from_json(cls, data: dict) -> "Period":
        return cls(data["start_month"], data["end_month"])
