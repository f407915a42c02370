import json
import math

import pytest

from core.errors import CurrencyMismatchError, NotFoundError, ValidationError
from core.money import MoneyValue
from core.period import Period
from core.schema import FundingType
from funding.manager import FundingManager


@pytest.fixture
def manager(year_2025, php):
    fm = FundingManager("PHP", period=year_2025)
    fm.add_equity("Seed", php(100000), "2025-01", id="seed")
    fm.add_grant("Innovation grant", php(50000), "2025-03", id="grant")
    fm.add_debt("Friends loan", php(12000), "2025-01", "2025-04", id="loan")
    return fm


def test_totals_by_type(manager, php):
    assert manager.total_funding() == php(162000)
    assert manager.total_non_repayable() == php(150000)
    assert manager.total_debt() == php(12000)
    breakdown = manager.funding_breakdown()
    assert breakdown[FundingType.GRANT] == php(50000)
    assert manager.debt_ratio() == pytest.approx(12000 / 162000)
    assert manager.check_debt_limit(0.5)
    assert manager.equity_percentage() == pytest.approx(100000 / 162000 * 100)


def test_monthly_cash_in_and_debt_service(manager, php):
    assert manager.get_monthly_cash_in("2025-01") == php(112000)
    assert manager.get_monthly_cash_in("2025-02").is_zero()
    service = manager.get_monthly_debt_service("2025-02")
    assert service.principal == php(4000)
    assert service.interest.is_zero()
    assert manager.get_monthly_debt_service("2025-06").total.is_zero()


def test_outstanding_debt(manager, php):
    assert manager.get_outstanding_debt_up_to("2024-12").is_zero()
    assert manager.get_outstanding_debt_up_to("2025-02") == php(4000)
    assert manager.get_total_outstanding_debt_across_period().is_zero()
    assert manager.get_total_debt_paid_across_period() == php(12000)


def test_runway_estimates(manager, php):
    assert manager.estimate_runway(php(10000)) == pytest.approx(15.0)
    assert math.isinf(manager.estimate_runway(MoneyValue.zero("PHP")))
    assert FundingManager("PHP").estimate_runway(php(10000)) == 0.0


def test_net_runway_subtracts_debt_service(year_2025, php):
    fm = FundingManager("PHP", period=year_2025)
    fm.add_equity("Seed", php(100000), "2025-01")
    fm.add_debt("Friends loan", php(12000), "2025-01", "2025-04")
    assert fm.estimate_net_runway(php(10000)) == pytest.approx(8.8)


def test_crud_errors(manager, php):
    with pytest.raises(ValidationError):
        manager.add_equity("Seed again", php(1), "2025-01", id="seed")
    with pytest.raises(NotFoundError):
        manager.remove("missing")
    with pytest.raises(NotFoundError):
        manager.get_schedule("seed")
    assert len(manager.remove("grant")) == 2


def test_currency_mismatch_leaves_manager_unchanged(manager):
    before = manager.total_funding()
    with pytest.raises(CurrencyMismatchError):
        manager.add_equity("Dollar round", MoneyValue.from_major(1000, "USD"), "2025-02")
    assert len(manager) == 3
    assert manager.total_funding() == before


def test_filters_and_sorting(manager):
    assert [e.id for e in manager.get_for_month("2025-01")] == ["seed", "loan"]
    assert [e.id for e in manager.get_funding_between("2025-02", "2025-12")] == ["grant"]
    assert [e.id for e in manager.get_top_funding(2)] == ["seed", "grant"]
    assert manager.sort("name")[0].name == "Friends loan"
    with pytest.raises(ValidationError):
        manager.sort("color")
    assert len(manager.get_funding_for_year(2025)) == 3


def test_cumulative_series(manager, php):
    cumulative = manager.cumulative_funding()
    assert cumulative["2025-01"] == php(112000)
    assert cumulative["2025-12"] == php(162000)
    net = manager.monthly_net_cashflow()
    assert net["2025-02"] == php(-4000)
    growth = manager.monthly_growth_rate()
    assert growth["2025-01"] is None
    assert growth["2025-03"] == pytest.approx(50000 / 112000)


def test_set_period_archives_and_restores(manager, php):
    manager.set_period(Period("2025-02", "2025-12"))
    assert {e.id for e in manager.archived} == {"seed", "loan"}
    assert manager.total_funding() == php(50000)

    manager.set_period(Period("2025-01", "2025-12"))
    assert manager.archived == []
    assert manager.total_funding() == php(162000)


def test_alerts(manager, php):
    assert any("matured" in a for a in manager.funding_alerts("2025-06"))
    heavy = FundingManager("PHP", period=Period("2025-01", "2025-12"))
    heavy.add_debt("Big loan", php(90000), "2025-01", "2026-01")
    heavy.add_equity("Angel", php(10000), "2025-01")
    alerts = heavy.funding_alerts("2025-02")
    assert any("Debt ratio" in a for a in alerts)


def test_merge_by_name_and_type(year_2025, php):
    fm = FundingManager("PHP", period=year_2025)
    fm.add_equity("Seed", php(1000), "2025-02")
    fm.add_equity("Seed", php(500), "2025-01")
    fm.merge_by_name_and_type()
    assert len(fm) == 1
    merged = fm.get_all()[0]
    assert merged.amount == php(1500)
    assert merged.month == "2025-01"


def test_clone_is_independent(manager, php):
    copy = manager.clone()
    copy.add_grant("Extra", php(1), "2025-05")
    assert len(manager) == 3
    assert len(copy) == 4


def test_dataframe_and_json(manager):
    frame = manager.to_dataframe()
    assert list(frame["id"]) == ["seed", "loan", "grant"]
    restored = FundingManager.from_json(manager.to_json())
    assert restored.total_funding() == manager.total_funding()
    assert restored.get_schedule("loan") == manager.get_schedule("loan")


def test_add_then_remove_restores_aggregates(manager, php):
    before = manager.summary
    schedules = manager.debt_amortization_schedules()
    manager.add_debt("Bridge", php(30000), "2025-02", "2025-08", interest_rate=0.1, id="bridge")
    assert manager.summary != before
    manager.remove("bridge")
    assert manager.summary == before
    assert manager.debt_amortization_schedules() == schedules


def test_json_is_stable_across_round_trips(manager):
    manager.set_period(Period("2025-02", "2025-12"))
    payload = manager.to_json()
    assert FundingManager.from_json(json.dumps(payload)).to_json() == payload
