"""
ITR Eligibility Selector — ITR-1 vs ITR-2 vs NotSupported.

Eligibility is a declarative, ordered list of (reason, predicate) rules per
form. Every rule is evaluated and every triggered reason is recorded; the
first triggered ITR-1 exclusion is the primary reason whenever ITR-1 is out.

Rule order: income limit → structural (income heads, properties, foreign,
directorship, unlisted shares) → category and residency. The income limit is
the financial year's itr1_income_limit from the tax tables.
"""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Callable, List, NamedTuple, Optional, Sequence

from returnly.config import settings
from returnly.engine.money import format_inr, percent_of
from returnly.engine.tax_tables import get_tax_configuration
from returnly.itr.schemas import (
    IncomeFacts,
    ITRSelectionReason,
    ITRSelectionResult,
    ITRType,
    ResidencyStatus,
    TaxpayerCategory,
)

logger = logging.getLogger(__name__)

NEAR_LIMIT_PERCENT = Decimal("90")     # of the ITR-1 income limit

_ITR2_CATEGORIES = (TaxpayerCategory.individual, TaxpayerCategory.huf)

R = ITRSelectionReason


class EligibilityRule(NamedTuple):
    reason: ITRSelectionReason
    excludes: Callable[[IncomeFacts, Decimal], bool]   # (facts, ITR-1 income limit)


# ===========================================================================
# RULE TABLES (evaluated top to bottom)
# ===========================================================================

ITR1_EXCLUSIONS: tuple[EligibilityRule, ...] = (
    EligibilityRule(R.rejected_itr1_income_above_50_lakh, lambda f, limit: f.total_income > limit),
    EligibilityRule(R.rejected_itr1_has_capital_gains, lambda f, _: f.capital_gains > 0),
    EligibilityRule(R.rejected_itr1_has_business_income, lambda f, _: f.business_income > 0),
    EligibilityRule(R.rejected_itr1_has_multiple_house_properties, lambda f, _: f.house_property_count > 1),
    EligibilityRule(
        R.rejected_itr1_has_foreign_income,
        lambda f, _: f.has_foreign_income or f.has_foreign_assets or f.foreign_income > 0,
    ),
    EligibilityRule(R.rejected_itr1_director_of_company, lambda f, _: f.is_director_of_company),
    EligibilityRule(R.rejected_itr1_has_unlisted_shares, lambda f, _: f.has_unlisted_shares),
    EligibilityRule(R.rejected_itr1_not_individual, lambda f, _: f.taxpayer_category != TaxpayerCategory.individual),
    EligibilityRule(R.rejected_itr1_not_resident, lambda f, _: f.residency_status != ResidencyStatus.resident),
)

ITR2_EXCLUSIONS: tuple[EligibilityRule, ...] = (
    EligibilityRule(R.rejected_itr2_not_individual_or_huf, lambda f, _: f.taxpayer_category not in _ITR2_CATEGORIES),
    EligibilityRule(R.rejected_itr2_has_business_income, lambda f, _: f.business_income > 0),
)


def _triggered(
    rules: Sequence[EligibilityRule], facts: IncomeFacts, limit: Decimal,
) -> List[ITRSelectionReason]:
    return [rule.reason for rule in rules if rule.excludes(facts, limit)]


# ===========================================================================
# ELIGIBILITY REASONS
# ===========================================================================

def _itr1_eligibility_reasons(facts: IncomeFacts) -> List[ITRSelectionReason]:
    reasons = [R.eligible_itr1_within_income_limit, R.eligible_itr1_simple_income_structure]
    if facts.salary_income > 0:
        reasons.append(R.eligible_itr1_basic_salary_income)
    return reasons


def _itr2_eligibility_reasons(facts: IncomeFacts) -> List[ITRSelectionReason]:
    reasons = [R.eligible_itr2_individual_or_huf, R.eligible_itr2_no_business_income]
    if facts.capital_gains > 0:
        reasons.append(R.eligible_itr2_has_capital_gains)
    if facts.interest_income > 0 or facts.dividend_income > 0 or facts.house_property_income > 0:
        reasons.append(R.eligible_itr2_has_multiple_income_sources)
    return reasons


# ===========================================================================
# EXPLANATIONS
# ===========================================================================

def _itr1_explanation(facts: IncomeFacts, limit: Decimal) -> str:
    return (
        "ITR-1 (Sahaj) is recommended for your income profile. "
        f"Your total income of {format_inr(facts.total_income)} is within the {format_inr(limit)} limit, "
        "and you have a simple income structure consisting primarily of salary and other sources "
        "without any business income or capital gains."
    )


_ITR2_REJECTION_NOTES = {
    R.rejected_itr1_has_capital_gains: "You have capital gains income which requires ITR-2.",
    R.rejected_itr1_has_multiple_house_properties: "You have multiple house properties which requires ITR-2.",
    R.rejected_itr1_has_foreign_income: "You have foreign income or assets which must be reported in ITR-2.",
    R.rejected_itr1_director_of_company: "Company directors must file ITR-2.",
    R.rejected_itr1_has_unlisted_shares: "Holding unlisted equity shares requires ITR-2.",
    R.rejected_itr1_not_individual: "A Hindu Undivided Family files ITR-2.",
    R.rejected_itr1_not_resident: "Non-residents and not-ordinarily-residents file ITR-2.",
}


def _itr2_explanation(
    facts: IncomeFacts, itr1_rejections: Sequence[ITRSelectionReason], limit: Decimal,
) -> str:
    parts = ["ITR-2 is recommended for your income profile."]
    if R.rejected_itr1_income_above_50_lakh in itr1_rejections:
        parts.append(
            f"Your total income of {format_inr(facts.total_income)} exceeds the ITR-1 limit of {format_inr(limit)}."
        )
    parts.extend(_ITR2_REJECTION_NOTES[r] for r in itr1_rejections if r in _ITR2_REJECTION_NOTES)
    parts.append("ITR-2 supports your income structure without business income.")
    return " ".join(parts)


def _not_supported_explanation(facts: IncomeFacts) -> str:
    parts = ["Your income profile requires ITR-3 or higher forms."]
    if facts.business_income > 0:
        parts.append("Business income requires ITR-3.")
    if facts.taxpayer_category not in _ITR2_CATEGORIES:
        parts.append(f"{facts.taxpayer_category.value} category requires specialized ITR forms.")
    parts.append("These forms are not currently supported.")
    return " ".join(parts)


def _profile_warnings(facts: IncomeFacts, recommended: ITRType, limit: Decimal) -> List[str]:
    warnings: List[str] = []
    if facts.has_foreign_assets and recommended == ITRType.itr2:
        warnings.append("You have foreign assets. Ensure you disclose them properly in Schedule FA of ITR-2.")
    if facts.has_losses_from_previous_year:
        warnings.append("You have losses from previous years. Ensure proper carry forward in your ITR.")
    if percent_of(limit, NEAR_LIMIT_PERCENT) < facts.total_income <= limit:
        warnings.append("Your income is close to the ITR-1 limit. Double-check all income sources for accuracy.")
    return warnings


# ===========================================================================
# PUBLIC API
# ===========================================================================

def select_itr_type(facts: IncomeFacts, financial_year: Optional[str] = None) -> ITRSelectionResult:
    """
    Pick the simplest form the taxpayer may file. Deterministic for a given
    set of tax tables.

    financial_year defaults to settings.default_financial_year and decides the
    ITR-1 income limit. NotSupported is returned, not raised, with
    requires_confirmation=True.

    Raises:
        ConfigurationNotFound: the financial year has no tax tables.
    """
    limit = get_tax_configuration(financial_year or settings.default_financial_year).itr1_income_limit
    itr1_rejections = _triggered(ITR1_EXCLUSIONS, facts, limit)
    itr2_rejections = _triggered(ITR2_EXCLUSIONS, facts, limit)
    warnings: List[str] = []
    alternatives: List[ITRType] = []
    requires_confirmation = False

    if not itr1_rejections:
        recommended = ITRType.itr1
        reasons = _itr1_eligibility_reasons(facts)
        primary = R.eligible_itr1_within_income_limit
        explanation = _itr1_explanation(facts, limit)
        if not itr2_rejections:
            alternatives.append(ITRType.itr2)
    elif not itr2_rejections:
        recommended = ITRType.itr2
        reasons = itr1_rejections + _itr2_eligibility_reasons(facts)
        primary = itr1_rejections[0]
        explanation = _itr2_explanation(facts, itr1_rejections, limit)
    else:
        recommended = ITRType.not_supported
        reasons = itr1_rejections + itr2_rejections + [R.requires_higher_itr]
        primary = itr1_rejections[0]
        explanation = _not_supported_explanation(facts)
        requires_confirmation = True
        warnings.append("Your income profile requires ITR-3 or higher, which is not currently supported.")

    warnings.extend(_profile_warnings(facts, recommended, limit))

    logger.info(
        "ITR selection: recommended=%s primary=%s (%d reason(s), %d warning(s))",
        recommended.value, primary.value, len(reasons), len(warnings),
    )

    return ITRSelectionResult(
        recommended_type=recommended,
        alternative_types=alternatives,
        primary_reason=primary,
        all_reasons=reasons,
        explanation=explanation,
        warnings=warnings,
        requires_confirmation=requires_confirmation,
        total_income=facts.total_income,
        income_breakdown=facts.income_breakdown(),
    )


__all__ = [
    "ITR1_EXCLUSIONS",
    "ITR2_EXCLUSIONS",
    "EligibilityRule",
    "select_itr_type",
]
