"""
fireflow/services/calculations.py

Pure calculation helpers used by the form controller, the submission
orchestrator and the /api/calculations router. Nothing here touches the
database.

It includes functions to:
  - Annualize a sub-annual interest payment and project it back.
  - Compute the weighted average cost of a holding from its buy records.
  - Compute realized profit/loss on a sale.
  - Split a gross dividend into withholding tax and net amount.
  - Convert metal weights and prices between units (always via grams).
  - Compute an amortized monthly debt payment.
  - Compute the next occurrence of a recurring schedule.

All money math is Decimal. Callers quantize for display.
"""

import calendar
from collections import namedtuple
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional, Tuple

from fireflow.constants import (
    PERIODS_PER_YEAR,
    GRAMS_PER_UNIT,
    PRICE_QUOTE_GRAMS,
    METAL_LABELS,
    METAL_UNIT_SHORT_LABELS,
    MARKET_SG,
    DEFAULT_US_DIVIDEND_WITHHOLDING_RATE,
    DEFAULT_SG_DIVIDEND_WITHHOLDING_RATE,
)

ONE = Decimal(1)
CENT = Decimal("0.01")

DividendBreakdown = namedtuple("DividendBreakdown", ["gross", "rate", "withheld", "net"])


def _dec(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


# --------------------------------------------------------------------------
# Interest
# --------------------------------------------------------------------------

def periods_per_year(period: str) -> Decimal:
    """
    Number of payment periods in a year for the given payment period.
    Unknown periods count as monthly.
    """
    return PERIODS_PER_YEAR.get(period, PERIODS_PER_YEAR["monthly"])


def annualize_interest(period_amount, principal, period: str) -> Tuple[Decimal, Decimal]:
    """
    Given the interest paid for one period and the balance it was paid on,
    return (period_rate, annualized_rate):

        period_rate = amount / principal
        annual_rate = (1 + period_rate) ^ periods_per_year - 1
    """
    principal = _dec(principal)
    if principal <= 0:
        raise ValueError("principal must be positive to annualize interest")
    period_rate = _dec(period_amount) / principal
    annual_rate = (ONE + period_rate) ** periods_per_year(period) - ONE
    return period_rate, annual_rate


def period_rate_from_annual(annual_rate, period: str) -> Decimal:
    """
    Inverse of the annualizer: period_rate = (1 + annual_rate) ^ (1 / ppy) - 1
    """
    return (ONE + _dec(annual_rate)) ** (ONE / periods_per_year(period)) - ONE


def project_period_amount(annual_rate, principal, period: str) -> Decimal:
    """
    Interest one period pays on 'principal' at a saved annualized rate.
    Unrounded; the form side-fill quantizes to cents.
    """
    return _dec(principal) * period_rate_from_annual(annual_rate, period)


# --------------------------------------------------------------------------
# Cost basis / P&L
# --------------------------------------------------------------------------

def weighted_average_cost(acquisitions: Iterable[Tuple[Decimal, Decimal]]) -> Optional[Decimal]:
    """
    Weighted average cost per unit over (amount, shares) pairs of prior
    buy records. Returns None (not zero) when cumulative shares <= 0.
    """
    total_amount = Decimal("0")
    total_shares = Decimal("0")
    for amount, shares in acquisitions:
        total_amount += _dec(amount or 0)
        total_shares += _dec(shares or 0)
    if total_shares <= 0:
        return None
    return total_amount / total_shares


def realized_pl(sale_price_per_unit, avg_cost_per_unit, units_sold) -> Decimal:
    """(sale price - average cost) x units sold."""
    return (_dec(sale_price_per_unit) - _dec(avg_cost_per_unit)) * _dec(units_sold)


# --------------------------------------------------------------------------
# Dividends
# --------------------------------------------------------------------------

def withholding_rate(market: Optional[str], us_rate=None, sg_rate=None) -> Decimal:
    """
    SG-listed holdings use the SG rate; every other market uses the default
    (US) rate.
    """
    if us_rate is None:
        us_rate = DEFAULT_US_DIVIDEND_WITHHOLDING_RATE
    if sg_rate is None:
        sg_rate = DEFAULT_SG_DIVIDEND_WITHHOLDING_RATE
    if market and market.upper() == MARKET_SG:
        return _dec(sg_rate)
    return _dec(us_rate)


def dividend_withholding(gross, market: Optional[str], us_rate=None, sg_rate=None) -> DividendBreakdown:
    """
    withheld = gross x rate, net = gross - withheld. The net amount is what
    gets persisted as the record amount.
    """
    gross = _dec(gross)
    rate = withholding_rate(market, us_rate, sg_rate)
    withheld = gross * rate
    return DividendBreakdown(gross=gross, rate=rate, withheld=withheld, net=gross - withheld)


# --------------------------------------------------------------------------
# Metals
# --------------------------------------------------------------------------

def _grams_per(unit: str) -> Decimal:
    if unit in GRAMS_PER_UNIT:
        return GRAMS_PER_UNIT[unit]
    if unit in PRICE_QUOTE_GRAMS:
        return PRICE_QUOTE_GRAMS[unit]
    raise ValueError(f"Unknown metal unit: {unit}")


def to_grams(value, unit: str) -> Decimal:
    return _dec(value) * _grams_per(unit)


def from_grams(grams, unit: str) -> Decimal:
    return _dec(grams) / _grams_per(unit)


def convert_metal_weight(value, from_unit: str, to_unit: str) -> Decimal:
    """Convert a weight between units by way of grams."""
    if from_unit == to_unit:
        return _dec(value)
    return from_grams(to_grams(value, from_unit), to_unit)


def price_per_gram(price, quote_unit: str) -> Decimal:
    return _dec(price) / _grams_per(quote_unit)


def convert_metal_price(price, quote_unit: str, to_unit: str) -> Decimal:
    """
    Convert a price quoted per 'quote_unit' (e.g. troy_oz from a price feed)
    into a price per 'to_unit', by way of price per gram.
    """
    return price_per_gram(price, quote_unit) * _grams_per(to_unit)


def metal_asset_name(metal_type: str, unit: str) -> str:
    """'gold', 'gram' -> 'Gold (g)'"""
    label = METAL_LABELS.get(metal_type, metal_type.title())
    short = METAL_UNIT_SHORT_LABELS.get(unit, unit)
    return f"{label} ({short})"


# --------------------------------------------------------------------------
# Debts
# --------------------------------------------------------------------------

def amortized_payment(principal, annual_rate, term_months) -> Optional[Decimal]:
    """
    Fixed monthly payment of a fully amortizing loan, rounded to cents:

        P * r(1+r)^n / ((1+r)^n - 1),  r = annual_rate / 12

    Returns None unless principal, rate and term are all positive.
    """
    if principal is None or annual_rate is None or not term_months:
        return None
    principal = _dec(principal)
    annual_rate = _dec(annual_rate)
    if principal <= 0 or annual_rate <= 0 or term_months <= 0:
        return None
    r = annual_rate / Decimal(12)
    growth = (ONE + r) ** int(term_months)
    payment = principal * (r * growth) / (growth - ONE)
    return payment.quantize(CENT, rounding=ROUND_HALF_UP)


# --------------------------------------------------------------------------
# Recurring schedules
# --------------------------------------------------------------------------

def add_months(d: date, months: int) -> date:
    """Add calendar months, clamping the day to the target month's end."""
    month_index = d.month - 1 + months
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def next_occurrence(start: date, frequency: str) -> date:
    """The first run date after 'start' for the given frequency."""
    if frequency == "weekly":
        return start + timedelta(days=7)
    if frequency == "biweekly":
        return start + timedelta(days=14)
    if frequency == "monthly":
        return add_months(start, 1)
    if frequency == "quarterly":
        return add_months(start, 3)
    if frequency == "yearly":
        return add_months(start, 12)
    raise ValueError(f"Unknown recurring frequency: {frequency}")
