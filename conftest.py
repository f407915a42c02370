import pytest

from core import MoneyValue, Period


@pytest.fixture
def php():
    def make(amount) -> MoneyValue:
        return MoneyValue.from_major(amount, "PHP")
    return make


@pytest.fixture
def year_2025() -> Period:
    return Period("2025-01", "2025-12")


@pytest.fixture
def two_years() -> Period:
    return Period("2025-01", "2026-12")


@pytest.fixture
def burning_model(two_years):
    """50,000 opening cash, 5,000 monthly rent, no revenue."""
    from engine.model import BusinessModel

    model = BusinessModel.create("PHP", MoneyValue.from_major(50000, "PHP"), two_years, id="burning")
    model.expenses.add_recurring("Rent", MoneyValue.from_major(5000, "PHP"), id="rent")
    return model


@pytest.fixture
def profitable_model(year_2025):
    """10,000 monthly revenue against 5,000 rent and a 12,000 laptop depreciated over a year."""
    from engine.model import BusinessModel
    from revenue.items import Product

    model = BusinessModel.create("PHP", MoneyValue.from_major(20000, "PHP"), year_2025, id="profitable")
    model.revenues.add_product(
        Product.constant("Widget", MoneyValue.from_major(100, "PHP"), 100, year_2025, id="widget")
    )
    model.expenses.add_recurring("Rent", MoneyValue.from_major(5000, "PHP"), id="rent")
    model.expenses.add_capital("Laptop", MoneyValue.from_major(12000, "PHP"), "2025-01", 12, id="laptop")
    return model
