"""
ITR Data Builder — maps IncomeFacts + AdditionalInfo onto ITR-1 or ITR-2 data.

The computed summary (total income, deductions, tax, interest, refund/demand)
is produced here, once, from the Tax Calculator and the settlement chain, and
both serialized documents print it unchanged.

Deductions applied to salary:
  standard deduction   both regimes, per-year amount, capped at salary
  exempt allowances    old regime only
  professional tax     old regime only, capped at the year's limit
  Chapter VI-A         old regime only (caller supplies one aggregate figure)
"""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import List, NamedTuple

from returnly.engine.money import ZERO
from returnly.engine.refund import settle_tax_position
from returnly.engine.schemas import TaxConfiguration, TaxRegime
from returnly.engine.tax_engine import calculate_tax
from returnly.engine.tax_tables import get_tax_configuration
from returnly.errors import MissingIdentityError, UnsupportedITRType
from returnly.itr.schemas import (
    AdditionalInfo,
    Address,
    BankDetails,
    EmployerDetails,
    IncomeFacts,
    ITR1Payload,
    ITR2Payload,
    ITRComputation,
    ITRData,
    ITRType,
    SalaryDetails,
    TaxpayerIdentity,
    TDSEntry,
)

logger = logging.getLogger(__name__)


class _SalaryDeductions(NamedTuple):
    standard: Decimal
    allowances: Decimal
    professional_tax: Decimal
    chapter_via: Decimal

    @property
    def total(self) -> Decimal:
        return self.standard + self.allowances + self.professional_tax + self.chapter_via


def _salary_deductions(facts: IncomeFacts, info: AdditionalInfo, config: TaxConfiguration) -> _SalaryDeductions:
    salary = facts.salary_income
    old = info.regime == TaxRegime.old
    return _SalaryDeductions(
        standard=min(config.standard_deduction[info.regime], salary) if salary > 0 else ZERO,
        allowances=min(info.allowances_exempt, salary) if old else ZERO,
        professional_tax=min(info.professional_tax, config.professional_tax_limit) if old else ZERO,
        chapter_via=info.old_regime_deductions if old else ZERO,
    )


def _identity(facts: IncomeFacts, info: AdditionalInfo) -> TaxpayerIdentity:
    missing = [name for name in ("pan", "name") if getattr(info, name) is None]
    if missing:
        raise MissingIdentityError(missing)
    return TaxpayerIdentity(
        pan=info.pan.strip().upper(),
        name=info.name.strip(),
        date_of_birth=info.date_of_birth,
        category=facts.taxpayer_category,
        residency_status=facts.residency_status,
        address=Address(
            address_line=info.address_line,
            city=info.city,
            state=info.state,
            pincode=info.pincode,
        ),
        email=info.email,
        mobile=info.mobile,
        aadhaar=info.aadhaar,
    )


def _itr1_payload(facts: IncomeFacts, info: AdditionalInfo, deductions: _SalaryDeductions) -> ITR1Payload:
    savings = min(info.interest_from_savings, facts.interest_income)
    return ITR1Payload(
        employer=info.employer or EmployerDetails(),
        gross_salary=facts.salary_income,
        allowances_exempt=deductions.allowances,
        perquisites=info.perquisites,
        profits_in_lieu_of_salary=info.profits_in_lieu_of_salary,
        standard_deduction=deductions.standard,
        professional_tax=deductions.professional_tax,
        house_property=info.house_properties[0] if info.house_properties else None,
        interest_from_savings=savings,
        interest_from_deposits=facts.interest_income - savings,
        dividend_income=facts.dividend_income,
        other_income=facts.other_income,
        quarterly_tds=info.quarterly_tds,
    )


def _itr2_salaries(facts: IncomeFacts, info: AdditionalInfo) -> List[SalaryDetails]:
    """
    The primary employer (info.employer) gets whatever salary and TDS the
    additional employers do not account for.
    """
    salaries = list(info.additional_employers)
    other_gross = sum((s.gross_salary for s in salaries), ZERO)
    other_tds = sum((s.tax_deducted for s in salaries), ZERO)
    primary_gross = facts.salary_income - other_gross
    if primary_gross > 0:
        employer = info.employer or EmployerDetails()
        salaries.insert(0, SalaryDetails(
            employer_name=employer.name,
            tan=employer.tan,
            gross_salary=primary_gross,
            tax_deducted=max(ZERO, info.declared_tds - other_tds),
        ))
    return salaries


def _itr2_payload(facts: IncomeFacts, info: AdditionalInfo, deductions: _SalaryDeductions) -> ITR2Payload:
    salaries = _itr2_salaries(facts, info)
    tds_entries = list(info.tds_entries) or [
        TDSEntry(
            deductor_name=s.employer_name,
            tan=s.tan,
            income_paid=s.gross_salary,
            tax_deducted=s.tax_deducted,
        )
        for s in salaries if s.tax_deducted > 0
    ]
    return ITR2Payload(
        huf_name=info.huf_name,
        salaries=salaries,
        standard_deduction=deductions.standard,
        professional_tax=deductions.professional_tax,
        house_properties=list(info.house_properties),
        house_property_income=facts.house_property_income,
        capital_gains=list(info.capital_gain_details),
        capital_gains_income=facts.capital_gains,
        interest_income=facts.interest_income,
        dividend_income=facts.dividend_income,
        other_income=facts.other_income,
        foreign_income=facts.foreign_income,
        has_foreign_income=facts.has_foreign_income or facts.foreign_income > 0,
        has_foreign_assets=facts.has_foreign_assets,
        foreign_assets=list(info.foreign_assets),
        tds_entries=tds_entries,
        tcs=info.tcs,
    )


def build_itr_data(facts: IncomeFacts, info: AdditionalInfo, form_type: ITRType) -> ITRData:
    """
    Assemble the return for form_type (normally the selector's recommendation).

    Raises:
        UnsupportedITRType: form_type is NotSupported.
        MissingIdentityError: PAN or name was not supplied at all.
        ConfigurationNotFound: info.financial_year has no tax tables.
    """
    form_type = ITRType(form_type)
    if form_type == ITRType.not_supported:
        raise UnsupportedITRType(form_type.value)

    identity = _identity(facts, info)
    config = get_tax_configuration(info.financial_year)
    deductions = _salary_deductions(facts, info, config)

    total_income = facts.total_income
    taxable_income = max(ZERO, total_income - deductions.total)
    tax = calculate_tax(taxable_income, info.financial_year, info.regime, facts.age)

    # TCS is only reported on ITR-2
    settlement = settle_tax_position(
        tax,
        tds=info.declared_tds,
        advance_tax_installments=info.advance_tax,
        self_assessment_tax=info.self_assessment_tax,
        tcs=info.tcs if form_type == ITRType.itr2 else ZERO,
        filing_date=info.filing_date,
    )
    position = settlement.position

    if form_type == ITRType.itr1:
        payload = _itr1_payload(facts, info, deductions)
    else:
        payload = _itr2_payload(facts, info, deductions)

    logger.info(
        "Built %s data for FY %s (%s regime): %s",
        form_type.value, info.financial_year, info.regime.value,
        "refund due" if position.is_refund else "no refund",
    )

    return ITRData(
        assessment_year=config.assessment_year,
        financial_year=config.financial_year,
        regime=info.regime,
        age=facts.age,
        identity=identity,
        bank=BankDetails(
            account_number=info.bank_account_number,
            ifsc_code=info.ifsc_code,
            bank_name=info.bank_name,
        ),
        payments=settlement.payments,
        computation=ITRComputation(
            total_income=total_income,
            total_deductions=deductions.total,
            taxable_income=taxable_income,
            tax=tax,
            tax_liability=tax.total_tax_with_cess,
            penalties=settlement.penalties,
            total_tax_paid=settlement.payments.total,
            position=position,
        ),
        payload=payload,
    )


__all__ = ["build_itr_data"]
