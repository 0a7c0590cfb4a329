"""
ITR Eligibility Selector tests.

Groups:
  1. ITR-1 eligible profiles
  2. Each ITR-1 exclusion on its own
  3. Multiple exclusions and rule order
  4. NotSupported profiles
  5. Warnings and income breakdown
  6. Income limit read from the tax tables
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Any

import pytest
import yaml

from returnly.config import PACKAGED_TAX_TABLES_DIR, settings
from returnly.errors import ConfigurationNotFound
from returnly.itr.schemas import (
    IncomeFacts,
    ITRSelectionReason as R,
    ITRType,
    ResidencyStatus,
    TaxpayerCategory,
)
from returnly.itr.selector import select_itr_type


# ===========================================================================
# TEST GROUP 1: ITR-1
# ===========================================================================

def test_salaried_taxpayer_gets_itr1_with_itr2_alternative() -> None:
    result = select_itr_type(IncomeFacts(salary_income=1_200_000, interest_income=20_000))
    assert result.recommended_type == ITRType.itr1
    assert result.primary_reason == R.eligible_itr1_within_income_limit
    assert result.alternative_types == [ITRType.itr2]
    assert R.eligible_itr1_basic_salary_income in result.all_reasons
    assert result.requires_confirmation is False
    assert result.total_income == 1_220_000
    assert "₹1,220,000" in result.explanation
    assert "within the ₹5,000,000 limit" in result.explanation


def test_income_exactly_at_limit_is_itr1() -> None:
    result = select_itr_type(IncomeFacts(salary_income=5_000_000))
    assert result.recommended_type == ITRType.itr1


def test_one_house_property_is_itr1() -> None:
    result = select_itr_type(IncomeFacts(
        salary_income=800_000, house_property_income=-150_000, house_property_count=1,
    ))
    assert result.recommended_type == ITRType.itr1


def test_no_income_is_itr1() -> None:
    result = select_itr_type(IncomeFacts())
    assert result.recommended_type == ITRType.itr1
    assert R.eligible_itr1_basic_salary_income not in result.all_reasons
    assert result.income_breakdown == {}


# ===========================================================================
# TEST GROUP 2: Single ITR-1 exclusions
# ===========================================================================

@dataclass
class ExclusionCase:
    label: str
    facts: dict[str, Any]
    primary: R
    extra_reasons: list[R] = field(default_factory=list)


EXCLUSION_CASES = [
    ExclusionCase("above_50_lakh", dict(salary_income=5_000_001), R.rejected_itr1_income_above_50_lakh),
    ExclusionCase("capital_gains", dict(salary_income=700_000, capital_gains=1), R.rejected_itr1_has_capital_gains,
                  [R.eligible_itr2_has_capital_gains]),
    ExclusionCase("two_properties", dict(house_property_income=300_000, house_property_count=2),
                  R.rejected_itr1_has_multiple_house_properties, [R.eligible_itr2_has_multiple_income_sources]),
    ExclusionCase("foreign_income_flag", dict(salary_income=900_000, has_foreign_income=True),
                  R.rejected_itr1_has_foreign_income),
    ExclusionCase("foreign_assets_flag", dict(salary_income=900_000, has_foreign_assets=True),
                  R.rejected_itr1_has_foreign_income),
    ExclusionCase("foreign_income_amount", dict(foreign_income=10_000), R.rejected_itr1_has_foreign_income),
    ExclusionCase("director", dict(salary_income=900_000, is_director_of_company=True),
                  R.rejected_itr1_director_of_company),
    ExclusionCase("unlisted_shares", dict(salary_income=900_000, has_unlisted_shares=True),
                  R.rejected_itr1_has_unlisted_shares),
    ExclusionCase("huf", dict(taxpayer_category=TaxpayerCategory.huf, interest_income=400_000),
                  R.rejected_itr1_not_individual, [R.eligible_itr2_has_multiple_income_sources]),
    ExclusionCase("non_resident", dict(residency_status=ResidencyStatus.non_resident, salary_income=900_000),
                  R.rejected_itr1_not_resident),
    ExclusionCase("rnor", dict(residency_status=ResidencyStatus.resident_not_ordinarily_resident),
                  R.rejected_itr1_not_resident),
]


@pytest.mark.parametrize("case", EXCLUSION_CASES, ids=[c.label for c in EXCLUSION_CASES])
def test_single_exclusion_selects_itr2(case: ExclusionCase) -> None:
    result = select_itr_type(IncomeFacts(**case.facts))
    assert result.recommended_type == ITRType.itr2
    assert result.primary_reason == case.primary
    assert result.all_reasons[0] == case.primary
    assert R.eligible_itr2_individual_or_huf in result.all_reasons
    assert R.eligible_itr2_no_business_income in result.all_reasons
    for reason in case.extra_reasons:
        assert reason in result.all_reasons
    assert result.alternative_types == []
    assert result.requires_confirmation is False


def test_itr2_explanation_names_the_limit() -> None:
    result = select_itr_type(IncomeFacts(salary_income=6_000_000))
    assert "exceeds the ITR-1 limit of ₹5,000,000" in result.explanation


def test_itr2_explanation_names_capital_gains() -> None:
    result = select_itr_type(IncomeFacts(salary_income=700_000, capital_gains=100_000))
    assert "capital gains" in result.explanation


# ===========================================================================
# TEST GROUP 3: Multiple exclusions
# ===========================================================================

def test_income_limit_is_primary_over_structural_rules() -> None:
    result = select_itr_type(IncomeFacts(
        salary_income=5_500_000, capital_gains=200_000, has_foreign_assets=True,
    ))
    assert result.recommended_type == ITRType.itr2
    assert result.primary_reason == R.rejected_itr1_income_above_50_lakh
    assert result.all_reasons[:3] == [
        R.rejected_itr1_income_above_50_lakh,
        R.rejected_itr1_has_capital_gains,
        R.rejected_itr1_has_foreign_income,
    ]


def test_structural_rules_come_before_category() -> None:
    result = select_itr_type(IncomeFacts(
        taxpayer_category=TaxpayerCategory.huf, capital_gains=50_000,
    ))
    assert result.primary_reason == R.rejected_itr1_has_capital_gains
    assert R.rejected_itr1_not_individual in result.all_reasons


# ===========================================================================
# TEST GROUP 4: NotSupported
# ===========================================================================

def test_business_income_is_not_supported() -> None:
    result = select_itr_type(IncomeFacts(salary_income=600_000, business_income=400_000))
    assert result.recommended_type == ITRType.not_supported
    assert result.primary_reason == R.rejected_itr1_has_business_income
    assert R.rejected_itr2_has_business_income in result.all_reasons
    assert result.all_reasons[-1] == R.requires_higher_itr
    assert result.requires_confirmation is True
    assert any("ITR-3 or higher" in w for w in result.warnings)
    assert "Business income requires ITR-3." in result.explanation


@pytest.mark.parametrize("category", [
    TaxpayerCategory.company,
    TaxpayerCategory.partnership,
    TaxpayerCategory.llp,
    TaxpayerCategory.aop,
    TaxpayerCategory.boi,
])
def test_non_individual_non_huf_is_not_supported(category: TaxpayerCategory) -> None:
    result = select_itr_type(IncomeFacts(taxpayer_category=category, interest_income=100_000))
    assert result.recommended_type == ITRType.not_supported
    assert result.primary_reason == R.rejected_itr1_not_individual
    assert R.rejected_itr2_not_individual_or_huf in result.all_reasons
    assert f"{category.value} category requires specialized ITR forms." in result.explanation


def test_business_loss_does_not_trigger_business_rules() -> None:
    result = select_itr_type(IncomeFacts(salary_income=600_000, business_income=-10_000))
    assert result.recommended_type == ITRType.itr1


# ===========================================================================
# TEST GROUP 5: Warnings and breakdown
# ===========================================================================

def test_near_limit_warning() -> None:
    result = select_itr_type(IncomeFacts(salary_income=4_800_000))
    assert result.recommended_type == ITRType.itr1
    assert any("close to the ITR-1 limit" in w for w in result.warnings)


def test_no_near_limit_warning_at_45_lakh() -> None:
    result = select_itr_type(IncomeFacts(salary_income=4_500_000))
    assert result.warnings == []


def test_foreign_assets_warning_on_itr2() -> None:
    result = select_itr_type(IncomeFacts(salary_income=900_000, has_foreign_assets=True))
    assert any("Schedule FA" in w for w in result.warnings)


def test_carry_forward_losses_warning() -> None:
    result = select_itr_type(IncomeFacts(salary_income=900_000, has_losses_from_previous_year=True))
    assert any("carry forward" in w for w in result.warnings)


def test_income_breakdown_lists_non_zero_heads() -> None:
    result = select_itr_type(IncomeFacts(
        salary_income=700_000, capital_gains=100_000, house_property_income=-20_000,
    ))
    assert result.income_breakdown == {
        "Salary Income": Decimal("700000"),
        "Capital Gains": Decimal("100000"),
        "House Property Income": Decimal("-20000"),
    }


def test_selection_is_deterministic() -> None:
    facts = IncomeFacts(salary_income=5_500_000, capital_gains=10, is_director_of_company=True)
    assert select_itr_type(facts) == select_itr_type(facts)


def test_none_amounts_are_treated_as_zero() -> None:
    facts = IncomeFacts(salary_income=None, capital_gains=None)
    assert facts.total_income == 0
    assert select_itr_type(facts).recommended_type == ITRType.itr1


# ===========================================================================
# TEST GROUP 6: Income limit from the tax tables
# ===========================================================================

@pytest.fixture
def lower_limit_tables(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """FY 2024-25 tables with the ITR-1 limit lowered to ₹40 lakh."""
    with open(PACKAGED_TAX_TABLES_DIR / "fy2024_25.yaml", "r", encoding="utf-8") as f:
        table = yaml.safe_load(f)
    table["configuration"]["itr1_income_limit"] = 4_000_000
    with open(tmp_path / "fy2024_25.yaml", "w", encoding="utf-8") as f:
        yaml.safe_dump(table, f, allow_unicode=True)
    monkeypatch.setattr(settings, "tax_tables_dir", tmp_path)
    return tmp_path


def test_configured_limit_rejects_itr1(lower_limit_tables: Path) -> None:
    result = select_itr_type(IncomeFacts(salary_income=4_500_000), "2024-25")
    assert result.recommended_type == ITRType.itr2
    assert result.primary_reason == R.rejected_itr1_income_above_50_lakh
    assert "exceeds the ITR-1 limit of ₹4,000,000" in result.explanation
    assert result.warnings == []


def test_configured_limit_drives_explanation_and_warning(lower_limit_tables: Path) -> None:
    # 90% of ₹40 lakh = ₹36 lakh
    result = select_itr_type(IncomeFacts(salary_income=3_800_000), "2024-25")
    assert result.recommended_type == ITRType.itr1
    assert "within the ₹4,000,000 limit" in result.explanation
    assert any("close to the ITR-1 limit" in w for w in result.warnings)


def test_default_financial_year_comes_from_settings(
    lower_limit_tables: Path, monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr(settings, "default_financial_year", "2024-25")
    assert select_itr_type(IncomeFacts(salary_income=4_500_000)).recommended_type == ITRType.itr2


def test_year_without_tables_raises(lower_limit_tables: Path) -> None:
    with pytest.raises(ConfigurationNotFound):
        select_itr_type(IncomeFacts(salary_income=900_000), "2023-24")
