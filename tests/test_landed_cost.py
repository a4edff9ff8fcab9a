import pytest
import requests

from errors import InvalidInput, RateUnavailable
from landed_cost import (
    LandedCostCalculator,
    compute_fees,
    convert_to_cad,
    landed_cost,
    parse_usd_list,
    summarize_cart,
)


class FakeResponse:
    def __init__(self, payload=None, status_code=200, raise_json=False):
        self.payload = payload
        self.status_code = status_code
        self.raise_json = raise_json

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        if self.raise_json:
            raise ValueError("not json")
        return self.payload


class FakeSession:
    def __init__(self, response=None, exc=None):
        self.headers = {}
        self.response = response
        self.exc = exc
        self.calls = []

    def get(self, url, timeout=None):
        self.calls.append(url)
        if self.exc:
            raise self.exc
        return self.response


def test_parse_usd_list_sums_tokens() -> None:
    assert parse_usd_list("10, 20.5, 30") == pytest.approx(60.5)
    assert parse_usd_list("10, 20.50") == pytest.approx(30.5)


def test_parse_usd_list_drops_empty_tokens() -> None:
    assert parse_usd_list(" 10 ,, 5 ,") == pytest.approx(15)


@pytest.mark.parametrize("raw", [
    "", "   ", ",,", "10,abc", "10,,abc", "-5", "0", "10, 0", "nan", "inf", None,
    "1_000", "١٠", "10, ٢٠", "1e999",
])
def test_parse_usd_list_rejects_bad_input(raw) -> None:
    assert parse_usd_list(raw) is None


def test_fees_under_free_shipping_threshold() -> None:
    fees = compute_fees(100)
    assert fees.shipping_usd == 20
    assert fees.duty_usd == pytest.approx(15)
    assert fees.total_usd == pytest.approx(135)
    assert fees.total_cad is None
    assert fees.conversion_rate is None


def test_threshold_is_strict() -> None:
    fees = compute_fees(250)
    assert fees.shipping_usd == 20
    assert fees.duty_usd == pytest.approx(37.5)
    assert fees.total_usd == pytest.approx(307.5)


def test_free_shipping_above_threshold() -> None:
    fees = compute_fees(300)
    assert fees.shipping_usd == 0
    assert fees.free_shipping is True
    assert fees.duty_usd == pytest.approx(45)
    assert fees.total_usd == pytest.approx(345)


@pytest.mark.parametrize("subtotal", [0.01, 19.99, 100, 250, 250.01, 1234.56])
def test_total_is_sum_of_parts(subtotal) -> None:
    fees = compute_fees(subtotal)
    assert fees.total_usd == subtotal + fees.shipping_usd + fees.duty_usd


def test_conversion_is_plain_multiplication() -> None:
    assert convert_to_cad(100, 1.35) == pytest.approx(135)
    fees = landed_cost(100, 1.35)
    assert fees.total_cad == fees.total_usd * 1.35
    assert fees.conversion_rate == 1.35


def test_to_dict_rounds_for_display_only() -> None:
    fees = landed_cost(10.005, 1.3333333)
    shown = fees.to_dict()
    assert shown['conversion_rate'] == 1.3333
    assert shown['subtotal_usd'] == round(10.005, 2)
    assert fees.subtotal_usd == 10.005


def test_cart_totals_for_droplist_prices() -> None:
    summary = summarize_cart([49, 150, 60], 1.35)
    cart = summary.cart
    assert summary.count == 3
    assert cart.subtotal_usd == 259
    assert cart.shipping_usd == 0
    assert cart.duty_usd == pytest.approx(38.85)
    assert cart.total_usd == pytest.approx(297.85)
    assert cart.total_cad == pytest.approx(402.0975)
    # each item alone is under the threshold
    assert all(item.shipping_usd == 20 for item in summary.items)


def test_get_conversion_rate_reads_cad() -> None:
    session = FakeSession(FakeResponse({'rates': {'CAD': 1.37, 'EUR': 0.9}}))
    calculator = LandedCostCalculator(session=session, rate_api="https://rates.test/USD")
    assert calculator.get_conversion_rate() == 1.37
    assert session.calls == ["https://rates.test/USD"]


@pytest.mark.parametrize("response", [
    FakeResponse({'rates': {'EUR': 0.9}}),
    FakeResponse({'rates': {'CAD': None}}),
    FakeResponse({'rates': {'CAD': "1.3"}}),
    FakeResponse({'rates': {'CAD': 0}}),
    FakeResponse({'result': 'error'}),
    FakeResponse(status_code=500),
    FakeResponse(raise_json=True),
])
def test_get_conversion_rate_failures(response) -> None:
    calculator = LandedCostCalculator(session=FakeSession(response))
    with pytest.raises(RateUnavailable):
        calculator.get_conversion_rate()


def test_get_conversion_rate_network_error() -> None:
    session = FakeSession(exc=requests.ConnectionError("offline"))
    with pytest.raises(RateUnavailable):
        LandedCostCalculator(session=session).get_conversion_rate()


def test_calculate_validates_before_fetching_rate() -> None:
    session = FakeSession(FakeResponse({'rates': {'CAD': 1.35}}))
    calculator = LandedCostCalculator(session=session)
    with pytest.raises(InvalidInput):
        calculator.calculate("10,abc")
    assert session.calls == []


def test_calculate_end_to_end() -> None:
    session = FakeSession(FakeResponse({'rates': {'CAD': 1.35}}))
    breakdown = LandedCostCalculator(session=session).calculate("49, 150, 60")
    assert breakdown.shipping_usd == 0
    assert breakdown.total_cad == pytest.approx(402.0975)


@pytest.mark.parametrize("raw,expected", [("+5", 5), (".5", 0.5), ("5.", 5), ("1e2", 100)])
def test_parse_usd_list_accepts_plain_decimals(raw, expected) -> None:
    assert parse_usd_list(raw) == expected
