"""
ITR Data Builder and validator tests.

Uses the Meera (ITR-1) and Arjun (ITR-2) profiles from sample_profiles.py.
"""
from __future__ import annotations

import datetime as dt
import logging
from decimal import Decimal

import pytest

from returnly.engine.schemas import TaxRegime
from returnly.errors import ConfigurationNotFound, MissingIdentityError, UnsupportedITRType
from returnly.itr.builder import build_itr_data
from returnly.itr.schemas import (
    CapitalGainDetails,
    EmployerDetails,
    HousePropertyDetails,
    IncomeFacts,
    ITR1Payload,
    ITR2Payload,
    ITRType,
    SalaryDetails,
    TaxpayerCategory,
    TDSEntry,
)
from returnly.itr.validator import validate_itr_data, with_validation_errors
from returnly.tests.sample_profiles import (
    ARJUN_EXPECTED,
    ARJUN_FACTS,
    MEERA_EXPECTED,
    MEERA_FACTS,
    arjun,
    arjun_info,
    meera,
    meera_info,
)


def _fields(report) -> list[str]:
    return [e.field for e in report.errors]


# ===========================================================================
# TEST GROUP 1: ITR-1 build
# ===========================================================================

def test_meera_itr1_computation() -> None:
    facts, info = meera()
    data = build_itr_data(facts, info, ITRType.itr1)

    assert data.form_type == ITRType.itr1
    assert data.assessment_year == "2025-26"
    assert data.financial_year == "2024-25"
    assert data.computation.total_income == 1_220_000
    assert data.computation.total_deductions == 75_000
    assert data.computation.taxable_income == MEERA_EXPECTED["taxable_income"]
    assert data.computation.tax.total_tax == MEERA_EXPECTED["total_tax"]
    assert data.computation.tax.cess == MEERA_EXPECTED["cess"]
    assert data.computation.tax_liability == MEERA_EXPECTED["total_tax_with_cess"]
    assert data.computation.position.refund_amount == MEERA_EXPECTED["refund"]
    assert data.computation.position.is_refund is True


def test_meera_itr1_payload() -> None:
    facts, info = meera()
    payload = build_itr_data(facts, info, ITRType.itr1).payload
    assert isinstance(payload, ITR1Payload)
    assert payload.employer.tan == "BLRA12345B"
    assert payload.gross_salary == 1_200_000
    assert payload.standard_deduction == 75_000
    # new regime: no professional tax, no exempt allowances
    assert payload.professional_tax == 0
    assert payload.net_salary == 1_125_000
    assert payload.interest_from_savings == 8_000
    assert payload.interest_from_deposits == 12_000
    assert payload.quarterly_tds == (20_000, 20_000, 20_000, 20_000)


def test_old_regime_applies_capped_professional_tax_and_deductions() -> None:
    # 50,000 standard + 2,500 (capped from 3,000) + 1,50,000 Chapter VI-A = 2,02,500
    # taxable 10,17,500 → 12,500 + 1,00,000 + 5,250 = 1,17,750; cess 4,710
    info = meera_info(regime="old", professional_tax=3_000, old_regime_deductions=150_000)
    data = build_itr_data(IncomeFacts(**MEERA_FACTS), info, ITRType.itr1)
    assert data.regime == TaxRegime.old
    assert data.computation.total_deductions == 202_500
    assert data.computation.taxable_income == 1_017_500
    assert data.computation.tax.total_tax == 117_750
    assert data.computation.tax_liability == 122_460
    assert data.payload.professional_tax == 2_500
    # 80,000 paid → 42,460 still due
    assert data.computation.position.additional_due == 42_460


def test_new_regime_ignores_allowances_and_chapter_via() -> None:
    info = meera_info(allowances_exempt=100_000, old_regime_deductions=150_000, professional_tax=2_400)
    data = build_itr_data(IncomeFacts(**MEERA_FACTS), info, ITRType.itr1)
    assert data.computation.total_deductions == 75_000
    assert data.payload.allowances_exempt == 0


def test_standard_deduction_capped_at_salary() -> None:
    facts = IncomeFacts(salary_income=40_000, interest_income=500_000)
    data = build_itr_data(facts, meera_info(quarterly_tds=(0, 0, 0, 0), declared_tds=0), ITRType.itr1)
    assert data.payload.standard_deduction == 40_000
    assert data.computation.taxable_income == 500_000


def test_no_standard_deduction_without_salary() -> None:
    facts = IncomeFacts(interest_income=500_000)
    data = build_itr_data(facts, meera_info(), ITRType.itr1)
    assert data.computation.total_deductions == 0


def test_pan_is_normalised() -> None:
    data = build_itr_data(IncomeFacts(**MEERA_FACTS), meera_info(pan=" abcpm1234k "), ITRType.itr1)
    assert data.identity.pan == "ABCPM1234K"


def test_age_flows_into_old_regime_slabs() -> None:
    facts = IncomeFacts(salary_income=1_050_000, age=82)
    data = build_itr_data(facts, meera_info(regime="old"), ITRType.itr1)
    # taxable 10,00,000 super senior: 1,00,000
    assert data.computation.tax.total_tax == 100_000
    assert data.age == 82


# ===========================================================================
# TEST GROUP 2: ITR-2 build
# ===========================================================================

def test_arjun_itr2_computation() -> None:
    facts, info = arjun()
    data = build_itr_data(facts, info, ITRType.itr2)
    assert data.form_type == ITRType.itr2
    assert data.assessment_year == "2024-25"
    assert data.computation.taxable_income == ARJUN_EXPECTED["taxable_income"]
    assert data.computation.tax_liability == ARJUN_EXPECTED["total_tax_with_cess"]
    assert data.computation.position.additional_due == ARJUN_EXPECTED["additional_due"]


def test_arjun_itr2_payload() -> None:
    facts, info = arjun()
    payload = build_itr_data(facts, info, ITRType.itr2).payload
    assert isinstance(payload, ITR2Payload)
    assert len(payload.salaries) == 1
    assert payload.salaries[0].employer_name == "Deccan Motors Ltd"
    assert payload.salaries[0].tax_deducted == 25_000
    assert payload.tds_entries == [
        TDSEntry(deductor_name="Deccan Motors Ltd", tan="PNED54321C", income_paid=700_000, tax_deducted=25_000),
    ]
    assert payload.capital_gains[0].is_long_term is True
    assert payload.long_term_gains == 100_000
    assert payload.short_term_gains == 0


def test_primary_employer_gets_the_remainder() -> None:
    info = arjun_info(
        declared_tds=40_000,
        additional_employers=[
            SalaryDetails(employer_name="Second Co", tan="MUMS11111A", gross_salary=300_000, tax_deducted=10_000),
        ],
    )
    facts = IncomeFacts(salary_income=1_000_000, capital_gains=100_000)
    payload = build_itr_data(facts, info, ITRType.itr2).payload
    assert [s.employer_name for s in payload.salaries] == ["Deccan Motors Ltd", "Second Co"]
    assert payload.salaries[0].gross_salary == 700_000
    assert payload.salaries[0].tax_deducted == 30_000
    assert payload.gross_salary == 1_000_000
    assert sum(e.tax_deducted for e in payload.tds_entries) == 40_000


def test_tcs_counts_towards_tax_paid_on_itr2() -> None:
    facts, _ = arjun()
    data = build_itr_data(facts, arjun_info(tcs=6_200), ITRType.itr2)
    assert data.computation.total_tax_paid == 31_200
    assert data.computation.position.additional_due == 0
    assert data.computation.position.refund_amount == 0


# ===========================================================================
# TEST GROUP 2b: Advance-tax interest
# ===========================================================================
# 30,75,000 salary, FY 2024-25 new: taxable 30,00,000
# slab 0.3 × 30L − 3,10,000 = 5,90,000; cess 23,600 → 6,13,600
# TDS 5,00,000 → net liability 1,13,600, no advance tax paid

HIGH_EARNER = IncomeFacts(salary_income=3_075_000)


def _high_earner_info(**overrides):
    return meera_info(
        declared_tds=500_000,
        quarterly_tds=(125_000, 125_000, 125_000, 125_000),
        **overrides,
    )


def test_no_interest_without_filing_date() -> None:
    data = build_itr_data(HIGH_EARNER, _high_earner_info(), ITRType.itr1)
    assert data.computation.tax_liability == 613_600
    assert data.computation.penalties is None
    assert data.computation.total_interest == 0
    assert data.computation.position.additional_due == 113_600


def test_filed_on_due_date_charges_234b_and_234c() -> None:
    # 234B: 1,02,240 × 4 months = 4,089.60 → 4,090
    # 234C: 511.20 + 1,533.60 + 2,556 + 1,136 = 5,736.80 → 5,737
    info = _high_earner_info(self_assessment_tax=113_600, filing_date=dt.date(2025, 7, 31))
    c = build_itr_data(HIGH_EARNER, info, ITRType.itr1).computation
    assert c.penalties.section_234a_interest == 0
    assert c.penalties.section_234b_interest == 4_090
    assert c.penalties.section_234c_interest == 5_737
    assert c.total_interest == 9_827
    assert c.tax_liability == 613_600
    assert c.total_tax_paid == 613_600
    assert c.position.total_liability == 623_427
    assert c.position.additional_due == 9_827


def test_late_filing_adds_234a_to_the_demand() -> None:
    # filed 15 Dec 2025
    # 234A: 1,13,600 × 5 months (31 Jul → 15 Dec) = 5,680
    # 234B: 1,02,240 × 9 months (1 Apr → 15 Dec) = 9,201.60 → 9,202
    # 234C: 5,737
    # 6,13,600 + 20,619 − 5,00,000 = 1,34,219 due
    info = _high_earner_info(filing_date=dt.date(2025, 12, 15))
    c = build_itr_data(HIGH_EARNER, info, ITRType.itr1).computation
    assert c.penalties.section_234a_interest == 5_680
    assert c.penalties.section_234b_interest == 9_202
    assert c.penalties.section_234c_interest == 5_737
    assert c.total_interest == 20_619
    assert c.position.total_liability == 634_219
    assert c.position.additional_due == 134_219


def test_tcs_reduces_advance_tax_liability_on_itr2() -> None:
    # Arjun FY 2023-24: 31,200 − 25,000 TDS − 6,200 TCS leaves nothing for interest
    facts, _ = arjun()
    info = arjun_info(tcs=6_200, filing_date=dt.date(2024, 12, 31))
    data = build_itr_data(facts, info, ITRType.itr2)
    assert data.payments.tcs == 6_200
    assert data.computation.penalties.net_liability == 0
    assert data.computation.total_interest == 0
    assert data.computation.position.additional_due == 0


def test_house_property_income_after_30_percent_deduction() -> None:
    prop = HousePropertyDetails(
        address="Flat 4, Baner", is_self_occupied=False,
        annual_value=240_000, municipal_tax_paid=20_000, home_loan_interest=200_000,
    )
    # NAV 2,20,000 − 66,000 (30%) − 2,00,000 interest
    assert prop.net_annual_value == 220_000
    assert prop.standard_deduction == 66_000
    assert prop.net_income == -46_000


def test_capital_gain_holding_period_boundary() -> None:
    short = CapitalGainDetails(
        purchase_date=dt.date(2023, 1, 1), sale_date=dt.date(2024, 1, 1),
        sale_consideration=150_000, cost_of_acquisition=100_000,
    )
    # 2023-01-01 → 2024-01-01 is 365 days: not long term
    assert short.holding_days == 365
    assert short.is_long_term is False
    assert short.gain == 50_000


# ===========================================================================
# TEST GROUP 3: Build errors
# ===========================================================================

def test_not_supported_raises() -> None:
    facts, info = meera()
    with pytest.raises(UnsupportedITRType):
        build_itr_data(facts, info, ITRType.not_supported)


@pytest.mark.parametrize("missing", ["pan", "name"])
def test_missing_identity_raises(missing: str) -> None:
    with pytest.raises(MissingIdentityError) as exc_info:
        build_itr_data(IncomeFacts(**MEERA_FACTS), meera_info(**{missing: None}), ITRType.itr1)
    assert exc_info.value.missing == (missing,)


def test_unknown_financial_year_raises() -> None:
    with pytest.raises(ConfigurationNotFound):
        build_itr_data(IncomeFacts(**MEERA_FACTS), meera_info(financial_year="2030-31"), ITRType.itr1)


# ===========================================================================
# TEST GROUP 4: Validation
# ===========================================================================

def test_meera_is_valid() -> None:
    facts, info = meera()
    report = validate_itr_data(build_itr_data(facts, info, ITRType.itr1))
    assert report.is_valid
    assert report.warnings == []


def test_arjun_is_valid() -> None:
    facts, info = arjun()
    assert validate_itr_data(build_itr_data(facts, info, ITRType.itr2)).is_valid


@pytest.mark.parametrize("pan,issue", [
    ("ABC123", "PAN must be exactly 10 characters"),
    ("ABCPM1234KX", "PAN must be exactly 10 characters"),
    ("1234567890", "PAN format is invalid"),
    ("ABCPMX234K", "PAN format is invalid"),
])
def test_invalid_pan(pan: str, issue: str) -> None:
    data = build_itr_data(IncomeFacts(**MEERA_FACTS), meera_info(pan=pan), ITRType.itr1)
    report = validate_itr_data(data)
    assert _fields(report) == ["identity.pan"]
    assert report.errors[0].issue.startswith(issue)


def test_every_violation_is_reported() -> None:
    info = meera_info(pan="BAD", name="  ", date_of_birth=None, bank_account_number=None)
    report = validate_itr_data(build_itr_data(IncomeFacts(**MEERA_FACTS), info, ITRType.itr1))
    assert _fields(report) == [
        "identity.pan", "identity.name", "identity.date_of_birth", "bank.account_number",
    ]


def test_itr1_income_limit() -> None:
    facts = IncomeFacts(salary_income=6_000_000)
    info = meera_info(declared_tds=0, quarterly_tds=(0, 0, 0, 0))
    report = validate_itr_data(build_itr_data(facts, info, ITRType.itr1))
    assert "computation.total_income" in _fields(report)


def test_quarterly_tds_mismatch() -> None:
    info = meera_info(quarterly_tds=(20_000, 20_000, 20_000, 19_000))
    report = validate_itr_data(build_itr_data(IncomeFacts(**MEERA_FACTS), info, ITRType.itr1))
    assert _fields(report) == ["payload.quarterly_tds"]
    assert report.errors[0].issue.startswith("TDS mismatch")


def test_quarterly_tds_within_one_rupee_passes() -> None:
    info = meera_info(quarterly_tds=(20_000, 20_000, 20_000, 19_999))
    assert validate_itr_data(build_itr_data(IncomeFacts(**MEERA_FACTS), info, ITRType.itr1)).is_valid


def test_itr2_tds_entries_mismatch() -> None:
    info = arjun_info(tds_entries=[TDSEntry(deductor_name="Deccan Motors Ltd", tan="PNED54321C",
                                            income_paid=700_000, tax_deducted=20_000)])
    report = validate_itr_data(build_itr_data(IncomeFacts(**ARJUN_FACTS), info, ITRType.itr2))
    assert _fields(report) == ["payload.tds_entries"]


def test_refund_requires_bank_details() -> None:
    info = meera_info(bank_account_number=None, ifsc_code="")
    report = validate_itr_data(build_itr_data(IncomeFacts(**MEERA_FACTS), info, ITRType.itr1))
    assert _fields(report) == ["bank.account_number", "bank.ifsc_code"]


def test_demand_does_not_require_bank_details() -> None:
    facts, _ = arjun()
    info = arjun_info(bank_account_number=None, ifsc_code=None)
    assert validate_itr_data(build_itr_data(facts, info, ITRType.itr2)).is_valid


def test_malformed_ifsc_is_reported() -> None:
    info = meera_info(ifsc_code="HDFC1234567")
    report = validate_itr_data(build_itr_data(IncomeFacts(**MEERA_FACTS), info, ITRType.itr1))
    assert _fields(report) == ["bank.ifsc_code"]


@pytest.mark.parametrize("employer,issue", [
    (None, "Employer TAN is mandatory"),
    (EmployerDetails(name="Acme", tan="BLR12345B"), "Employer TAN format is invalid"),
])
def test_itr1_employer_tan(employer, issue: str) -> None:
    info = meera_info(employer=employer)
    report = validate_itr_data(build_itr_data(IncomeFacts(**MEERA_FACTS), info, ITRType.itr1))
    assert _fields(report) == ["payload.employer.tan"]
    assert report.errors[0].issue.startswith(issue)


def test_huf_requires_huf_name() -> None:
    facts = IncomeFacts(taxpayer_category=TaxpayerCategory.huf, interest_income=900_000)
    info = arjun_info(employer=None, declared_tds=0, capital_gain_details=[])
    report = validate_itr_data(build_itr_data(facts, info, ITRType.itr2))
    assert _fields(report) == ["payload.huf_name"]

    named = build_itr_data(facts, arjun_info(employer=None, declared_tds=0, capital_gain_details=[],
                                             huf_name="Rao Family HUF"), ITRType.itr2)
    assert validate_itr_data(named).is_valid


def test_sale_before_purchase_is_reported() -> None:
    gain = CapitalGainDetails(
        asset_description="Mutual fund units",
        purchase_date=dt.date(2023, 6, 1),
        sale_date=dt.date(2023, 5, 1),
        sale_consideration=120_000,
        cost_of_acquisition=100_000,
    )
    info = arjun_info(capital_gain_details=[gain])
    report = validate_itr_data(build_itr_data(IncomeFacts(**ARJUN_FACTS), info, ITRType.itr2))
    assert _fields(report) == ["payload.capital_gains[0].sale_date"]


def test_contact_and_foreign_warnings() -> None:
    facts = IncomeFacts(salary_income=700_000, has_foreign_assets=True, has_foreign_income=True)
    # taxable 6,50,000 → 20,800 against 25,000 TDS: refund, so bank details are needed
    info = arjun_info(
        email=None, mobile="", capital_gain_details=[],
        bank_account_number="50100012345678", ifsc_code="SBIN0004321",
    )
    report = validate_itr_data(build_itr_data(facts, info, ITRType.itr2))
    assert report.is_valid
    assert len(report.warnings) == 4
    assert any("Schedule FA" in w for w in report.warnings)
    assert any("Email" in w for w in report.warnings)


def test_with_validation_errors_returns_a_copy() -> None:
    facts, _ = meera()
    data = build_itr_data(facts, meera_info(pan="BAD"), ITRType.itr1)
    report = validate_itr_data(data)
    flagged = with_validation_errors(data, report)
    assert flagged.validation_errors == tuple(report.errors)
    assert data.validation_errors == ()
    assert flagged.computation == data.computation


def test_validation_logs_never_carry_pan_or_name(caplog: pytest.LogCaptureFixture) -> None:
    facts, _ = meera()
    data = build_itr_data(facts, meera_info(pan="ABCPM1234", name="Meera Iyer"), ITRType.itr1)
    with caplog.at_level(logging.DEBUG, logger="returnly"):
        validate_itr_data(data)
    assert "ITR-1 validation failed with 1 error(s)" in caplog.text
    assert "ABCPM1234" not in caplog.text
    assert "Meera" not in caplog.text


def test_none_money_fields_are_zero() -> None:
    info = meera_info(professional_tax=None, tcs=None)
    assert info.professional_tax == Decimal("0")
    assert info.tcs == Decimal("0")
