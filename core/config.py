"""
Engine configuration.

RunwayConfig carries defaults and health-classifier thresholds.
TaxConfig is validated with pydantic because it arrives from user input and
persisted JSON.
"""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field

from .schema import VATMode


@dataclass(frozen=True)
class RunwayConfig:
    default_currency: str = "PHP"
    default_horizon_months: int = 24

    # debt schedules used by projections
    fully_amortized_debt: bool = True
    compound_interest: bool = True

    # health classifier thresholds (months / ratios)
    critical_runway_months: int = 3
    warning_runway_months: int = 6
    min_burn_efficiency: float = 0.5

    # funding alerts
    max_debt_ratio: float = 0.5
    low_funding_threshold: float = 1000.0


DEFAULT_CONFIG = RunwayConfig()


class TaxConfig(BaseModel):
    """Tax regime. Rates are fractions, e.g. 0.12 for 12%."""

    model_config = ConfigDict(frozen=True, use_enum_values=False)

    vat_mode: VATMode = VATMode.NON_VAT
    vat_rate: float = Field(default=0.12, ge=0.0, le=1.0)
    percentage_tax_rate: float = Field(default=0.03, ge=0.0, le=1.0)
    income_tax_rate: float = Field(default=0.25, ge=0.0, le=1.0)
    enabled: bool = False

    @property
    def is_vat(self) -> bool:
        return self.vat_mode == VATMode.VAT

    @property
    def is_enabled(self) -> bool:
        return self.enabled

    def to_json(self) -> dict:
        return self.model_dump(mode="json")

    @classmethod
    def from_json(cls, data: dict) -> "TaxConfig":
        return cls.model_validate(data)
