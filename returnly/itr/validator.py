"""
ITR data validator — business rules checked before anything is serialized.

Collects every violation in a single pass (never stops at the first) and
returns them as ErrorDetail {field, issue} records plus non-blocking warnings.

Rules (all forms):
  1. PAN exactly 10 characters, then pattern AAAAA9999A
  2. Name non-empty
  3. Date of birth present
  4. ITR-1 total income within the year's itr1_income_limit
  5. TDS breakdown within ±₹1 of declared annual TDS
       ITR-1: Q1+Q2+Q3+Q4 quarterly TDS
       ITR-2: sum of TDS entries
  6. Refund due → bank account number and IFSC required (IFSC AAAA0XXXXXX)

ITR-1 only:
  7. Salary income → employer TAN present, pattern AAAA99999A

ITR-2 only:
  8. HUF filer → HUF name required
  9. Each capital gain: sale date after purchase date

Logs carry counts and form types only, never PAN or name.
"""
from __future__ import annotations

import logging
import re
from decimal import Decimal
from typing import List, Optional

from returnly.engine.money import format_inr
from returnly.engine.tax_tables import get_tax_configuration
from returnly.itr.schemas import (
    ErrorDetail,
    ITR1Payload,
    ITR2Payload,
    ITRData,
    TaxpayerCategory,
    ValidationReport,
)

logger = logging.getLogger(__name__)

PAN_PATTERN = re.compile(r"^[A-Z]{5}[0-9]{4}[A-Z]$")
TAN_PATTERN = re.compile(r"^[A-Z]{4}[0-9]{5}[A-Z]$")
IFSC_PATTERN = re.compile(r"^[A-Z]{4}0[A-Z0-9]{6}$")

TDS_TOLERANCE = Decimal("1")


def _error(errors: List[ErrorDetail], field: str, issue: str) -> None:
    errors.append(ErrorDetail(field=field, issue=issue))


def _blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


# ---------------------------------------------------------------------------
# Shared rules
# ---------------------------------------------------------------------------

def _check_identity(data: ITRData, errors: List[ErrorDetail]) -> None:
    pan = data.identity.pan
    if len(pan) != 10:
        _error(errors, "identity.pan", f"PAN must be exactly 10 characters (got {len(pan)}).")
    elif not PAN_PATTERN.match(pan):
        _error(errors, "identity.pan", "PAN format is invalid; expected 5 letters, 4 digits, 1 letter.")

    if _blank(data.identity.name):
        _error(errors, "identity.name", "Name is mandatory.")

    if data.identity.date_of_birth is None:
        _error(errors, "identity.date_of_birth", "Date of birth is mandatory.")


def _check_income_limit(data: ITRData, errors: List[ErrorDetail]) -> None:
    if not isinstance(data.payload, ITR1Payload):
        return
    limit = get_tax_configuration(data.financial_year).itr1_income_limit
    total = data.computation.total_income
    if total > limit:
        _error(
            errors, "computation.total_income",
            f"Total income {format_inr(total)} exceeds the ITR-1 limit of {format_inr(limit)}; file ITR-2.",
        )


def _check_tds(data: ITRData, errors: List[ErrorDetail]) -> None:
    declared = data.payments.tds
    if isinstance(data.payload, ITR1Payload):
        field, label = "payload.quarterly_tds", "Quarterly TDS"
        breakdown = sum(data.payload.quarterly_tds, Decimal("0"))
    else:
        field, label = "payload.tds_entries", "TDS entries"
        breakdown = sum((e.tax_deducted for e in data.payload.tds_entries), Decimal("0"))

    if abs(breakdown - declared) > TDS_TOLERANCE:
        _error(
            errors, field,
            f"TDS mismatch: {label} total {format_inr(breakdown)} does not match "
            f"declared annual TDS {format_inr(declared)}.",
        )


def _check_bank(data: ITRData, errors: List[ErrorDetail]) -> None:
    bank = data.bank
    if not _blank(bank.ifsc_code) and not IFSC_PATTERN.match(bank.ifsc_code.strip().upper()):
        _error(errors, "bank.ifsc_code", "IFSC code format is invalid; expected AAAA0XXXXXX.")

    if not data.computation.position.is_refund:
        return
    if _blank(bank.account_number):
        _error(errors, "bank.account_number", "Bank account number is required to receive a refund.")
    if _blank(bank.ifsc_code):
        _error(errors, "bank.ifsc_code", "IFSC code is required to receive a refund.")


# ---------------------------------------------------------------------------
# Form-specific rules
# ---------------------------------------------------------------------------

def _check_itr1(payload: ITR1Payload, errors: List[ErrorDetail]) -> None:
    if payload.gross_salary <= 0:
        return
    tan = payload.employer.tan.strip().upper()
    if not tan:
        _error(errors, "payload.employer.tan", "Employer TAN is mandatory for salary income.")
    elif len(tan) != 10 or not TAN_PATTERN.match(tan):
        _error(errors, "payload.employer.tan", "Employer TAN format is invalid; expected 4 letters, 5 digits, 1 letter.")


def _check_itr2(data: ITRData, payload: ITR2Payload, errors: List[ErrorDetail], warnings: List[str]) -> None:
    if data.identity.category == TaxpayerCategory.huf and _blank(payload.huf_name):
        _error(errors, "payload.huf_name", "HUF name is mandatory for HUF taxpayers.")

    for i, gain in enumerate(payload.capital_gains):
        if gain.sale_date <= gain.purchase_date:
            _error(
                errors, f"payload.capital_gains[{i}].sale_date",
                "Sale date must be after the purchase date.",
            )

    for salary in payload.salaries:
        if _blank(salary.tan):
            warnings.append(f"Employer TAN is missing for {salary.employer_name or 'an employer'}.")
    if payload.has_foreign_income and payload.foreign_income <= 0:
        warnings.append("Foreign income is flagged but no foreign income amount was reported.")
    if payload.has_foreign_assets and not payload.foreign_assets:
        warnings.append("Foreign assets are flagged but Schedule FA has no entries.")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def validate_itr_data(data: ITRData) -> ValidationReport:
    """Run every rule for the data's form type. Never raises for rule violations."""
    errors: List[ErrorDetail] = []
    warnings: List[str] = []

    _check_identity(data, errors)
    _check_income_limit(data, errors)
    _check_tds(data, errors)
    _check_bank(data, errors)

    if isinstance(data.payload, ITR1Payload):
        _check_itr1(data.payload, errors)
    else:
        _check_itr2(data, data.payload, errors, warnings)

    if _blank(data.identity.email):
        warnings.append("Email address is recommended for communication from the tax department.")
    if _blank(data.identity.mobile):
        warnings.append("Mobile number is recommended for OTP-based e-verification.")

    if errors:
        logger.warning(
            "%s validation failed with %d error(s)", data.form_type.value, len(errors),
        )
    else:
        logger.debug("%s validation passed (%d warning(s))", data.form_type.value, len(warnings))

    return ValidationReport(errors=errors, warnings=warnings)


def with_validation_errors(data: ITRData, report: ValidationReport) -> ITRData:
    """Copy of data carrying the report's errors."""
    return data.model_copy(update={"validation_errors": tuple(report.errors)})


__all__ = ["validate_itr_data", "with_validation_errors", "PAN_PATTERN", "TAN_PATTERN", "IFSC_PATTERN"]
