"""
schemas.py — Tax engine Pydantic v2 data contracts.

Defines:
  - TaxRegime, AgeCategory enums
  - TaxSlab, SurchargeTier, TaxConfiguration, TaxYearTables  (per-year tables)
  - TaxSlabCalculation, TaxCalculationResult               (Tax Calculator output)
  - RegimeComparisonResult                                 (Regime Comparator output)
  - AdvanceTaxDueDates, PenaltyDetail, AdvanceTaxPenalty   (234A/234B/234C)
  - RefundOrDemand, TaxPayments, TaxSettlement             (refund/demand resolution)

All money fields are Decimal INR. Results are frozen: a computation is never
edited after the fact, only recomputed.

TABLE INVARIANTS (enforced when TaxYearTables is validated):
  - first slab starts at 0, each slab starts where the previous one ends,
    last slab is open-ended (max_income = None)
  - surcharge tiers ascend strictly by threshold
  - each old-regime age band's nil slab ends at that band's exemption limit
"""
from __future__ import annotations

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class TaxRegime(str, Enum):
    old = "old"
    new = "new"


class AgeCategory(str, Enum):
    individual = "individual"                      # below 60
    senior_citizen = "senior_citizen"              # 60–79
    super_senior_citizen = "super_senior_citizen"  # 80 and above

    @classmethod
    def from_age(cls, age: int) -> "AgeCategory":
        if age >= 80:
            return cls.super_senior_citizen
        if age >= 60:
            return cls.senior_citizen
        return cls.individual


# ---------------------------------------------------------------------------
# Per-year tables
# ---------------------------------------------------------------------------

class TaxSlab(BaseModel):
    """One progressive bracket. rate is a percentage (5 means 5%)."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    min_income: Decimal = Field(..., ge=0)
    max_income: Optional[Decimal] = None   # None → open-ended top slab
    rate: Decimal = Field(..., ge=0, le=100)
    label: str

    @model_validator(mode="after")
    def _ceiling_above_floor(self) -> "TaxSlab":
        if self.max_income is not None and self.max_income <= self.min_income:
            raise ValueError(
                f"Slab {self.label!r}: max_income {self.max_income} must exceed min_income {self.min_income}"
            )
        return self


class SurchargeTier(BaseModel):
    """Applies when taxable income is strictly above threshold."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    threshold: Decimal = Field(..., gt=0)
    rate: Decimal = Field(..., gt=0, le=100)


class TaxConfiguration(BaseModel):
    """
    Year-specific constants that are not slab brackets.

    standard_deduction and surcharge are keyed by regime because both differ
    between regimes from FY 2023-24 onwards (₹75K vs ₹50K; 25% cap vs 37%).
    """
    model_config = ConfigDict(extra="forbid", frozen=True)

    financial_year: str = Field(..., pattern=r"^\d{4}-\d{2}$")
    assessment_year: str = Field(..., pattern=r"^\d{4}-\d{2}$")
    standard_deduction: Dict[TaxRegime, Decimal]
    professional_tax_limit: Decimal = Field(..., ge=0)
    basic_exemption_limit: Decimal = Field(..., ge=0)
    senior_citizen_exemption_limit: Decimal = Field(..., ge=0)
    super_senior_citizen_exemption_limit: Decimal = Field(..., ge=0)
    surcharge: Dict[TaxRegime, Tuple[SurchargeTier, ...]]
    cess_rate: Decimal = Field(..., ge=0, le=100)
    itr1_income_limit: Decimal = Field(default=Decimal("5000000"), gt=0)

    @model_validator(mode="after")
    def _check_regime_keys_and_tiers(self) -> "TaxConfiguration":
        for name in ("standard_deduction", "surcharge"):
            missing = set(TaxRegime) - set(getattr(self, name))
            if missing:
                raise ValueError(f"{name} is missing regime(s): {sorted(r.value for r in missing)}")
        for regime, tiers in self.surcharge.items():
            thresholds = [tier.threshold for tier in tiers]
            if thresholds != sorted(set(thresholds)):
                raise ValueError(f"{regime.value} surcharge thresholds must ascend strictly")
        return self

    def exemption_limit(self, age_category: AgeCategory) -> Decimal:
        return {
            AgeCategory.individual: self.basic_exemption_limit,
            AgeCategory.senior_citizen: self.senior_citizen_exemption_limit,
            AgeCategory.super_senior_citizen: self.super_senior_citizen_exemption_limit,
        }[age_category]


def _check_slab_table(slabs: Tuple[TaxSlab, ...], name: str) -> None:
    if not slabs:
        raise ValueError(f"{name}: slab table is empty")
    if slabs[0].min_income != 0:
        raise ValueError(f"{name}: first slab must start at 0")
    for lower, upper in zip(slabs, slabs[1:]):
        if lower.max_income is None or upper.min_income != lower.max_income:
            raise ValueError(f"{name}: slab {upper.label!r} does not start where {lower.label!r} ends")
    if slabs[-1].max_income is not None:
        raise ValueError(f"{name}: last slab must be open-ended")


class TaxYearTables(BaseModel):
    """Everything the engine needs for one financial year (one YAML file)."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    configuration: TaxConfiguration
    new_regime_slabs: Tuple[TaxSlab, ...]
    old_regime_slabs: Dict[AgeCategory, Tuple[TaxSlab, ...]]

    @model_validator(mode="after")
    def _check_tables(self) -> "TaxYearTables":
        fy = self.configuration.financial_year
        _check_slab_table(self.new_regime_slabs, f"FY {fy} new regime")
        for age_category in AgeCategory:
            slabs = self.old_regime_slabs.get(age_category)
            if slabs is None:
                raise ValueError(f"FY {fy} old regime: no slabs for {age_category.value}")
            _check_slab_table(slabs, f"FY {fy} old regime {age_category.value}")
            expected = self.configuration.exemption_limit(age_category)
            if slabs[0].rate != 0 or slabs[0].max_income != expected:
                raise ValueError(
                    f"FY {fy} old regime {age_category.value}: nil slab must end at the "
                    f"exemption limit {expected}"
                )
        return self

    def slabs_for(self, regime: TaxRegime, age_category: AgeCategory) -> Tuple[TaxSlab, ...]:
        if regime == TaxRegime.new:
            return self.new_regime_slabs
        return self.old_regime_slabs[age_category]


# ---------------------------------------------------------------------------
# Tax Calculator output
# ---------------------------------------------------------------------------

class TaxSlabCalculation(BaseModel):
    """Tax attributable to one slab. Kept at full precision."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    label: str
    min_income: Decimal
    max_income: Optional[Decimal] = None
    rate: Decimal
    income_in_slab: Decimal
    tax_amount: Decimal


class TaxCalculationResult(BaseModel):
    """
    Complete computation for one regime and one taxable income.

    Computation sequence:
      1. taxable_income = max(0, input)
      2. total_tax = Σ slab tax over every slab in breakdown
      3. surcharge = total_tax × tier rate − marginal_relief
      4. cess = (total_tax + surcharge) × cess_rate
      5. total_tax_with_cess = round(total_tax + surcharge + cess), the only rounded figure
    """
    model_config = ConfigDict(extra="forbid", frozen=True)

    taxable_income: Decimal
    financial_year: str
    regime: TaxRegime
    age: int
    breakdown: Tuple[TaxSlabCalculation, ...]
    total_tax: Decimal
    surcharge_rate: Decimal = Decimal("0")
    marginal_relief: Decimal = Decimal("0")
    surcharge: Decimal = Decimal("0")
    total_tax_with_surcharge: Decimal
    cess_rate: Decimal
    cess: Decimal
    total_tax_with_cess: Decimal
    effective_rate: Decimal        # % of taxable income, 2 dp


class RegimeComparisonResult(BaseModel):
    """Old vs new regime for the same person and year. Ties recommend new."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    old_regime: TaxCalculationResult
    new_regime: TaxCalculationResult
    old_regime_deductions: Decimal
    recommended_regime: TaxRegime
    tax_savings: Decimal = Field(..., ge=0)
    savings_percentage: Decimal = Field(..., ge=0)
    rationale: str


# ---------------------------------------------------------------------------
# Advance tax interest
# ---------------------------------------------------------------------------

class AdvanceTaxDueDates(BaseModel):
    """Statutory dates for one financial year."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    financial_year: str
    installment_due_dates: Tuple[dt.date, dt.date, dt.date, dt.date]  # 15 Jun, 15 Sep, 15 Dec, 15 Mar
    assessment_year_start: dt.date                                     # 1 Apr after FY end
    return_due_date: dt.date                                           # 31 Jul of assessment year


class PenaltyDetail(BaseModel):
    """One interest charge line (a 234C quarter, or the single 234A/234B charge)."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    section: str                  # "234A" | "234B" | "234C"
    period: str                   # e.g. "Installment 2 (due 2023-09-15)"
    required_amount: Decimal
    paid_amount: Decimal
    shortfall: Decimal
    rate: Decimal                 # % per month
    months: int
    interest: Decimal
    description: str = ""


class AdvanceTaxPenalty(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    net_liability: Decimal
    advance_tax_paid: Decimal
    section_234a_interest: Decimal = Decimal("0")
    section_234b_interest: Decimal = Decimal("0")
    section_234c_interest: Decimal = Decimal("0")
    total_advance_tax_penalties: Decimal = Decimal("0")
    details: Tuple[PenaltyDetail, ...] = ()


# ---------------------------------------------------------------------------
# Refund / demand
# ---------------------------------------------------------------------------

class RefundOrDemand(BaseModel):
    """At most one of refund_amount / additional_due is non-zero."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    total_liability: Decimal
    amount_paid: Decimal
    refund_amount: Decimal = Field(..., ge=0)
    additional_due: Decimal = Field(..., ge=0)
    is_refund: bool


class TaxPayments(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    tds: Decimal = Decimal("0")
    advance_tax: Tuple[Decimal, Decimal, Decimal, Decimal] = (
        Decimal("0"), Decimal("0"), Decimal("0"), Decimal("0"),
    )
    self_assessment_tax: Decimal = Decimal("0")
    tcs: Decimal = Decimal("0")

    @property
    def total_advance_tax(self) -> Decimal:
        return sum(self.advance_tax, Decimal("0"))

    @property
    def total(self) -> Decimal:
        return self.tds + self.tcs + self.total_advance_tax + self.self_assessment_tax


class TaxSettlement(BaseModel):
    """Tax computation → advance-tax interest → refund/demand, in one record."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    tax: TaxCalculationResult
    penalties: Optional[AdvanceTaxPenalty] = None
    payments: TaxPayments
    position: RefundOrDemand


__all__: List[str] = [
    "TaxRegime",
    "AgeCategory",
    "TaxSlab",
    "SurchargeTier",
    "TaxConfiguration",
    "TaxYearTables",
    "TaxSlabCalculation",
    "TaxCalculationResult",
    "RegimeComparisonResult",
    "AdvanceTaxDueDates",
    "PenaltyDetail",
    "AdvanceTaxPenalty",
    "RefundOrDemand",
    "TaxPayments",
    "TaxSettlement",
]
