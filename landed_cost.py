#!/usr/bin/env python3
"""
Droplist Landed Cost Calculator
Turns USD item prices into an estimated landed cost in CAD
(flat-rate shipping, duty, live USD -> CAD rate).
"""

import logging
import math
import re
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Sequence

import requests

import config
from errors import InvalidInput, LandedCostError, RateUnavailable

logger = logging.getLogger(__name__)

# Fee rules
DUTY_RATE = 0.15  # 15% on the item subtotal
SHIPPING_COST = 20.0  # flat, USD
FREE_SHIPPING_THRESHOLD = 250.0  # subtotal must be strictly above this

# Plain decimal only: no digit separators, no non-ASCII digits, no nan/inf
_USD_TOKEN_RE = re.compile(r"[+-]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")


@dataclass(frozen=True)
class FeeBreakdown:
    """Complete fee breakdown for one subtotal"""
    subtotal_usd: float
    shipping_usd: float
    duty_usd: float
    total_usd: float
    total_cad: Optional[float] = None
    conversion_rate: Optional[float] = None

    @property
    def free_shipping(self) -> bool:
        return self.shipping_usd == 0

    def with_conversion(self, conversion_rate: float) -> "FeeBreakdown":
        return replace(
            self,
            conversion_rate=conversion_rate,
            total_cad=convert_to_cad(self.total_usd, conversion_rate),
        )

    def to_dict(self) -> Dict[str, Optional[float]]:
        """Rounded for display; the dataclass itself keeps full precision"""
        return {
            'subtotal_usd': round(self.subtotal_usd, 2),
            'shipping_usd': round(self.shipping_usd, 2),
            'duty_usd': round(self.duty_usd, 2),
            'total_usd': round(self.total_usd, 2),
            'total_cad': round(self.total_cad, 2) if self.total_cad is not None else None,
            'conversion_rate': round(self.conversion_rate, 4) if self.conversion_rate is not None else None,
            'free_shipping': self.free_shipping,
        }


@dataclass
class CartSummary:
    """Per-item breakdowns plus the fees recomputed on the cart subtotal"""
    items: List[FeeBreakdown]
    cart: FeeBreakdown

    @property
    def count(self) -> int:
        return len(self.items)


def parse_usd_list(raw: Optional[str]) -> Optional[float]:
    """
    Sum a comma-separated list of USD prices.
    Returns None if nothing usable was entered, or if any token is
    not a finite positive number.
    """
    if not isinstance(raw, str):
        return None

    tokens = [token.strip() for token in raw.split(',')]
    tokens = [token for token in tokens if token]
    if not tokens:
        return None

    values = []
    for token in tokens:
        if not _USD_TOKEN_RE.fullmatch(token):
            return None
        try:
            value = float(token)
        except ValueError:
            return None
        if not math.isfinite(value) or value <= 0:
            return None
        values.append(value)

    return sum(values)


def compute_fees(subtotal_usd: float) -> FeeBreakdown:
    """
    Shipping and duty for a USD subtotal (no currency conversion).
    Caller is responsible for passing a finite positive subtotal.
    """
    shipping = 0.0 if subtotal_usd > FREE_SHIPPING_THRESHOLD else SHIPPING_COST
    duty = subtotal_usd * DUTY_RATE
    total_usd = subtotal_usd + shipping + duty
    return FeeBreakdown(
        subtotal_usd=subtotal_usd,
        shipping_usd=shipping,
        duty_usd=duty,
        total_usd=total_usd,
    )


def convert_to_cad(total_usd: float, conversion_rate: float) -> float:
    return total_usd * conversion_rate


def landed_cost(subtotal_usd: float, conversion_rate: float) -> FeeBreakdown:
    """Fees plus the CAD total in one step"""
    return compute_fees(subtotal_usd).with_conversion(conversion_rate)


def summarize_cart(prices_usd: Sequence[float], conversion_rate: float) -> CartSummary:
    """
    Each price gets its own breakdown (as if bought alone), and the cart
    total is computed on the summed subtotal so free shipping can kick in.
    """
    items = [landed_cost(price, conversion_rate) for price in prices_usd]
    cart = landed_cost(sum(prices_usd), conversion_rate)
    return CartSummary(items=items, cart=cart)


class LandedCostCalculator:
    """Fetches the live USD -> CAD rate and applies the fee rules"""

    def __init__(self, session: Optional[requests.Session] = None,
                 rate_api: str = config.EXCHANGE_RATE_API,
                 timeout: float = config.REQUEST_TIMEOUT):
        self.rate_api = rate_api
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            'User-Agent': config.USER_AGENT
        })

    def get_conversion_rate(self) -> float:
        """Get current USD to CAD exchange rate. No fallback rate: failures raise."""
        try:
            response = self.session.get(self.rate_api, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning("Could not fetch exchange rate from %s: %s", self.rate_api, e)
            raise RateUnavailable() from e

        rates = data.get('rates') if isinstance(data, dict) else None
        rate = rates.get('CAD') if isinstance(rates, dict) else None
        # bool is an int subclass; a JSON true is not a rate
        if isinstance(rate, bool) or not isinstance(rate, (int, float)):
            logger.warning("CAD rate missing from exchange rate response")
            raise RateUnavailable("CAD rate unavailable. Please try again.")
        if not math.isfinite(rate) or rate <= 0:
            logger.warning("Exchange rate response had an unusable CAD rate: %r", rate)
            raise RateUnavailable("CAD rate unavailable. Please try again.")

        return float(rate)

    def calculate(self, raw_prices: str) -> FeeBreakdown:
        """
        Calculate landed cost in CAD for a comma-separated list of USD prices.

        Args:
            raw_prices: e.g. "10, 20.50"

        Raises:
            InvalidInput: if the list is empty or has a bad token
            RateUnavailable: if the live rate can't be fetched
        """
        subtotal = parse_usd_list(raw_prices)
        if subtotal is None:
            raise InvalidInput()

        conversion_rate = self.get_conversion_rate()
        logger.debug("USD -> CAD rate: %.4f", conversion_rate)
        return landed_cost(subtotal, conversion_rate)


def format_shipping(breakdown: FeeBreakdown) -> str:
    return "Free" if breakdown.free_shipping else f"${breakdown.shipping_usd:,.2f}"


def print_fee_breakdown(breakdown: FeeBreakdown):
    """Print formatted landed cost breakdown"""
    print("\n" + "="*60)
    print("LANDED COST BREAKDOWN")
    print("="*60)
    print(f"\n  Subtotal from items:     ${breakdown.subtotal_usd:,.2f} USD")
    print(f"  Shipping:                {format_shipping(breakdown)}")
    print(f"  Duty ({DUTY_RATE:.0%}):              ${breakdown.duty_usd:,.2f} USD")
    print(f"  Total:                   ${breakdown.total_usd:,.2f} USD")
    if breakdown.conversion_rate is not None:
        print(f"  USD -> CAD rate:         {breakdown.conversion_rate:.4f}")
        print(f"\n{'─'*60}")
        print(f"  TOTAL LANDED COST:       ${breakdown.total_cad:,.2f} CAD")
    print("="*60 + "\n")


def main():
    """Main function for command-line usage"""
    import sys

    logging.basicConfig(level=config.LOG_LEVEL, format=config.LOG_FORMAT)

    if len(sys.argv) < 2:
        print("Usage: python landed_cost.py <usd_prices>")
        print("\nExamples:")
        print('  python landed_cost.py "49"')
        print('  python landed_cost.py "10, 20.50, 150"')
        sys.exit(1)

    calculator = LandedCostCalculator()

    try:
        breakdown = calculator.calculate(" ".join(sys.argv[1:]))
    except LandedCostError as e:
        print(f"\nError: {e.message}")
        sys.exit(1)

    print_fee_breakdown(breakdown)


if __name__ == "__main__":
    main()
