"""Premium and benefit formulas of the FUV product.

Amounts are computed in Decimal and returned as floats with two decimals,
except the monthly income and pension which are plain twelfths. Missing or
non-positive input yields 0.
"""

import re
from decimal import ROUND_CEILING, ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

from config import Config, get_config
from engines.base import VariantFigures
from knowledge.codes import DEFERRAL_DISCOUNTS

CENT = Decimal("0.01")

# Thousands separators and blanks as typed by users: "120'000", " 1 000 "
_NUMBER_NOISE = re.compile(r"['’\s]")


def to_number(value: Any) -> float:
    """Parse user input leniently; 0 when it is not a number."""
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float, Decimal)):
        return float(value)
    if not value:
        return 0.0
    cleaned = _NUMBER_NOISE.sub("", str(value))
    try:
        return float(Decimal(cleaned))
    except (InvalidOperation, ValueError):
        return 0.0


def _dec(value: Any) -> Decimal:
    return Decimal(str(value))


def _money(value: Decimal) -> float:
    return float(value.quantize(CENT, rounding=ROUND_HALF_UP))


def round_to_step(value: Any, step: float = 0.05, rounding: str = ROUND_HALF_UP) -> float:
    """Round to the nearest multiple of step (half-up unless told otherwise)."""
    step_dec = _dec(step)
    units = (_dec(value) / step_dec).quantize(Decimal("1"), rounding=rounding)
    return _money(units * step_dec)


def _step(config: Optional[Config]) -> float:
    return (config or get_config()).rounding_step


def monthly_income(annual_income: Any) -> float:
    annual = to_number(annual_income)
    if annual <= 0:
        return 0.0
    return annual / 12


def annual_benefit(annual_income: Any, config: Optional[Config] = None) -> float:
    """Daily benefit per year (Taggeld pro Jahr)."""
    config = config or get_config()
    annual = to_number(annual_income)
    if annual <= 0:
        return 0.0
    return _money(_dec(annual) * _dec(config.daily_benefit_factor))


def monthly_benefit(annual_benefit_amount: Any, config: Optional[Config] = None) -> float:
    """Daily benefit per month, rounded up to the next 0.05."""
    annual = to_number(annual_benefit_amount)
    if annual <= 0:
        return 0.0
    return round_to_step(_dec(annual) / 12, _step(config), rounding=ROUND_CEILING)


def annual_pension(annual_income: Any, config: Optional[Config] = None) -> float:
    """Disability pension per year (IV-Rente pro Jahr)."""
    config = config or get_config()
    annual = to_number(annual_income)
    if annual <= 0:
        return 0.0
    return _money(_dec(annual) * _dec(config.disability_pension_factor))


def monthly_pension(annual_pension_amount: Any) -> float:
    annual = to_number(annual_pension_amount)
    if annual <= 0:
        return 0.0
    return annual / 12


def gross_premium_rate(base_rate: Any, agency_competence: Any) -> float:
    """Apply the agency competence (percent) to the net premium rate."""
    rate = to_number(base_rate)
    if rate <= 0:
        return 0.0
    competence = _dec(to_number(agency_competence))
    return float(_dec(rate) * (1 + competence / 100))


def level(base_level: Any, agency_competence: Any) -> int:
    """Displayed level (Stufe): base level shifted by the agency competence."""
    return int(to_number(base_level) + to_number(agency_competence))


def gross_annual_premium(
    annual_income: Any, premium_rate: Any, config: Optional[Config] = None
) -> float:
    """Gross annual premium; the rate is per 100 of insured income."""
    annual = to_number(annual_income)
    rate = to_number(premium_rate)
    if annual <= 0 or rate <= 0:
        return 0.0
    return round_to_step(_dec(annual) / 100 * _dec(rate), _step(config))


def deferral_discount(deferral_code: Optional[str]) -> int:
    """Discount percent granted for a deferral period (Taggeldaufschub)."""
    if not deferral_code:
        return 0
    return DEFERRAL_DISCOUNTS.get(str(deferral_code).strip(), 0)


def discount_amount(
    gross_premium: Any, discount_percent: Any, config: Optional[Config] = None
) -> float:
    gross = to_number(gross_premium)
    percent = to_number(discount_percent)
    if gross <= 0 or percent <= 0:
        return 0.0
    return round_to_step(_dec(gross) / 100 * _dec(percent), _step(config))


def net_annual_premium(gross_premium: Any, discount: Any) -> float:
    return _money(_dec(to_number(gross_premium)) - _dec(to_number(discount)))


def net_monthly_premium(net_annual: Any, config: Optional[Config] = None) -> float:
    annual = to_number(net_annual)
    if annual <= 0:
        return 0.0
    return round_to_step(_dec(annual) / 12, _step(config))


def admin_cost_premium(
    net_monthly: Any,
    discount: Any,
    admin_cost_rate: Any,
    config: Optional[Config] = None,
) -> float:
    """Administration cost share (Verwaltungskostenprämie) of the monthly premium.

    The discount is a yearly amount while the net premium is monthly.
    """
    basis = max(_dec(to_number(net_monthly)) - _dec(to_number(discount)) / 12, Decimal("0"))
    rate = _dec(to_number(admin_cost_rate))
    return round_to_step(basis * rate / 100, _step(config))


def compute_variant_figures(
    annual_income: Any,
    deferral_code: Optional[str],
    premium_rate: Any,
    config: Optional[Config] = None,
) -> VariantFigures:
    """Compute every derived figure of a variant in one pass."""
    config = config or get_config()
    benefit = annual_benefit(annual_income, config)
    pension = annual_pension(annual_income, config)
    percent = deferral_discount(deferral_code)
    gross = gross_annual_premium(annual_income, premium_rate, config)
    discount = discount_amount(gross, percent, config)
    net = net_annual_premium(gross, discount)

    return VariantFigures(
        monthly_income=monthly_income(annual_income),
        deferral_discount=percent,
        annual_benefit=benefit,
        monthly_benefit=monthly_benefit(benefit, config),
        annual_pension=pension,
        monthly_pension=monthly_pension(pension),
        gross_premium=gross,
        discount_amount=discount,
        net_annual_premium=net,
        net_monthly_premium=net_monthly_premium(net, config),
    )
