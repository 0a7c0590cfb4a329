"""
Returnly Tax Engine — slab tax, surcharge with marginal relief, cess, regime comparison.
Pure Python, deterministic. Same input → same output.

Slab tables and year constants come from the SlabTable Provider (tax_tables.py);
nothing year-specific is hard-coded here.

Rounding: amounts keep full Decimal precision through every step and only
total_tax_with_cess is rounded to the whole rupee (half away from zero).
"""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Sequence

from returnly.engine.money import (
    HUNDRED,
    ZERO,
    D,
    Number,
    format_inr,
    percent_of,
    round_percent,
    round_rupees,
)
from returnly.engine.schemas import (
    RegimeComparisonResult,
    SurchargeTier,
    TaxCalculationResult,
    TaxRegime,
    TaxSlab,
    TaxSlabCalculation,
)
from returnly.engine.tax_tables import get_slabs, get_tax_configuration

logger = logging.getLogger(__name__)

DEFAULT_AGE = 30


# ===========================================================================
# INTERNAL HELPERS (pure functions, no I/O)
# ===========================================================================

def _slab_breakdown(income: Decimal, slabs: Sequence[TaxSlab]) -> list[TaxSlabCalculation]:
    """
    One row per slab, including slabs the income never reaches (0 in, 0 tax).
    income_in_slab = clamp(income, min, max) − min, so the rows sum to income.
    """
    rows: list[TaxSlabCalculation] = []
    for slab in slabs:
        if income <= slab.min_income:
            in_slab = ZERO
        elif slab.max_income is None:
            in_slab = income - slab.min_income
        else:
            in_slab = min(income, slab.max_income) - slab.min_income
        rows.append(TaxSlabCalculation(
            label=slab.label,
            min_income=slab.min_income,
            max_income=slab.max_income,
            rate=slab.rate,
            income_in_slab=in_slab,
            tax_amount=percent_of(in_slab, slab.rate),
        ))
    return rows


def _slab_tax(income: Decimal, slabs: Sequence[TaxSlab]) -> Decimal:
    return sum((row.tax_amount for row in _slab_breakdown(income, slabs)), ZERO)


def _surcharge(
    income: Decimal,
    total_tax: Decimal,
    slabs: Sequence[TaxSlab],
    tiers: Sequence[SurchargeTier],
) -> tuple[Decimal, Decimal, Decimal]:
    """
    Returns (rate, surcharge before relief, marginal relief).

    The tier is the highest one whose threshold income strictly exceeds.
    Marginal relief caps tax + surcharge at
        (tax + surcharge at the threshold) + (income − threshold)
    where the amount at the threshold uses the tier below, computed recursively.
    """
    applicable = [tier for tier in tiers if income > tier.threshold]
    if not applicable:
        return ZERO, ZERO, ZERO

    tier = applicable[-1]
    gross = percent_of(total_tax, tier.rate)
    ceiling = _tax_with_surcharge(tier.threshold, slabs, tiers) + (income - tier.threshold)
    relief = max(ZERO, total_tax + gross - ceiling)
    return tier.rate, gross, relief


def _tax_with_surcharge(
    income: Decimal,
    slabs: Sequence[TaxSlab],
    tiers: Sequence[SurchargeTier],
) -> Decimal:
    total_tax = _slab_tax(income, slabs)
    _, gross, relief = _surcharge(income, total_tax, slabs, tiers)
    return total_tax + gross - relief


# ===========================================================================
# TAX CALCULATOR
# ===========================================================================

def calculate_tax(
    taxable_income: Number,
    financial_year: str,
    regime: TaxRegime = TaxRegime.new,
    age: int = DEFAULT_AGE,
) -> TaxCalculationResult:
    """
    Progressive slab tax + surcharge (with marginal relief) + cess.

    Negative taxable income is clamped to zero rather than rejected.

    Raises:
        ConfigurationNotFound: financial_year has no tax tables.
    """
    regime = TaxRegime(regime)
    income = max(ZERO, D(taxable_income))
    config = get_tax_configuration(financial_year)
    slabs = get_slabs(financial_year, regime, age)
    tiers = config.surcharge[regime]

    breakdown = _slab_breakdown(income, slabs)
    total_tax = sum((row.tax_amount for row in breakdown), ZERO)

    surcharge_rate, gross_surcharge, relief = _surcharge(income, total_tax, slabs, tiers)
    surcharge = gross_surcharge - relief
    with_surcharge = total_tax + surcharge

    cess = percent_of(with_surcharge, config.cess_rate)
    total_with_cess = round_rupees(with_surcharge + cess)
    effective_rate = round_percent(total_with_cess / income * HUNDRED) if income > 0 else ZERO

    logger.debug(
        "FY %s %s regime (age %d): slab tax %s, surcharge %s%% (relief %s), cess %s, total %s",
        financial_year, regime.value, age, total_tax, surcharge_rate, relief, cess, total_with_cess,
    )

    return TaxCalculationResult(
        taxable_income=income,
        financial_year=financial_year,
        regime=regime,
        age=age,
        breakdown=tuple(breakdown),
        total_tax=total_tax,
        surcharge_rate=surcharge_rate,
        marginal_relief=relief,
        surcharge=surcharge,
        total_tax_with_surcharge=with_surcharge,
        cess_rate=config.cess_rate,
        cess=cess,
        total_tax_with_cess=total_with_cess,
        effective_rate=effective_rate,
    )


# ===========================================================================
# REGIME COMPARATOR
# ===========================================================================

def recommend_regime(
    first: TaxCalculationResult,
    second: TaxCalculationResult,
) -> tuple[TaxRegime, Decimal, Decimal]:
    """
    Pick the cheaper of two computations: (recommended regime, savings, savings %).

    Argument order does not matter. Equal totals recommend the new regime.
    """
    cheaper, dearer = sorted(
        (first, second),
        key=lambda r: (r.total_tax_with_cess, r.regime != TaxRegime.new),
    )
    savings = dearer.total_tax_with_cess - cheaper.total_tax_with_cess
    if dearer.total_tax_with_cess > 0:
        pct = round_percent(savings / dearer.total_tax_with_cess * HUNDRED)
    else:
        pct = ZERO
    return cheaper.regime, savings, pct


def _rationale(
    old: TaxCalculationResult,
    new: TaxCalculationResult,
    recommended: TaxRegime,
    savings: Decimal,
    deductions: Decimal,
) -> str:
    old_total = format_inr(old.total_tax_with_cess)
    new_total = format_inr(new.total_tax_with_cess)
    if savings == 0:
        return (
            f"Both regimes result in the same tax ({new_total}). "
            "New Regime recommended as the simpler option with no investment-linked deductions."
        )
    if recommended == TaxRegime.old:
        return (
            f"Old Regime saves {format_inr(savings)} over the New Regime. "
            f"Old Regime tax: {old_total} vs New Regime tax: {new_total}, "
            f"driven by {format_inr(deductions)} of deductions."
        )
    return (
        f"New Regime saves {format_inr(savings)} over the Old Regime. "
        f"New Regime tax: {new_total} vs Old Regime tax: {old_total}."
    )


def compare_regimes(
    taxable_income_before_deductions: Number,
    old_regime_deductions: Number,
    financial_year: str,
    age: int = DEFAULT_AGE,
) -> RegimeComparisonResult:
    """
    Old regime is computed on income − deductions (floored at 0), new regime
    on the full income. Recommends the lower total_tax_with_cess; ties go to
    the New Regime.
    """
    income = D(taxable_income_before_deductions)
    deductions = max(ZERO, D(old_regime_deductions))

    old = calculate_tax(max(ZERO, income - deductions), financial_year, TaxRegime.old, age)
    new = calculate_tax(income, financial_year, TaxRegime.new, age)
    recommended, savings, pct = recommend_regime(old, new)

    logger.info(
        "FY %s regime comparison: recommended=%s savings=%s (%s%%)",
        financial_year, recommended.value, savings, pct,
    )

    return RegimeComparisonResult(
        old_regime=old,
        new_regime=new,
        old_regime_deductions=deductions,
        recommended_regime=recommended,
        tax_savings=savings,
        savings_percentage=pct,
        rationale=_rationale(old, new, recommended, savings, deductions),
    )


def standard_deduction(financial_year: str, regime: TaxRegime) -> Decimal:
    """Standard deduction on salary for the year and regime."""
    return get_tax_configuration(financial_year).standard_deduction[TaxRegime(regime)]


__all__ = [
    "calculate_tax",
    "compare_regimes",
    "recommend_regime",
    "standard_deduction",
]
