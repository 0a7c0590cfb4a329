"""
refund.py — Refund/Demand Resolver.

delta = paid − liability. A positive delta is a refund, a negative one is
additional tax due; at most one of the two is non-zero. Inputs are already
rounded upstream, so nothing is rounded here.
"""
from __future__ import annotations

import datetime as dt
import logging
from typing import Optional, Sequence

from returnly.engine.money import ZERO, D, Number
from returnly.engine.penalties import advance_tax_due_dates, calculate_advance_tax_penalties
from returnly.engine.schemas import (
    AdvanceTaxDueDates,
    RefundOrDemand,
    TaxCalculationResult,
    TaxPayments,
    TaxSettlement,
)

logger = logging.getLogger(__name__)


def resolve_refund(total_liability: Number, total_paid: Number) -> RefundOrDemand:
    liability = D(total_liability)
    paid = D(total_paid)
    delta = paid - liability
    return RefundOrDemand(
        total_liability=liability,
        amount_paid=paid,
        refund_amount=max(ZERO, delta),
        additional_due=max(ZERO, -delta),
        is_refund=delta > 0,
    )


def settle_tax_position(
    tax: TaxCalculationResult,
    tds: Number = 0,
    advance_tax_installments: Sequence[Number] = (0, 0, 0, 0),
    self_assessment_tax: Number = 0,
    tcs: Number = 0,
    filing_date: Optional[dt.date] = None,
    due_dates: Optional[AdvanceTaxDueDates] = None,
) -> TaxSettlement:
    """
    Tax Calculator → Penalty Calculator → Refund Resolver.

    With a filing_date, advance-tax interest is added to total_tax_with_cess
    before netting off tax paid. TDS and TCS both reduce the liability that
    advance tax is measured against. Without a filing_date, interest is not
    assessed (penalties=None).
    """
    payments = TaxPayments(
        tds=D(tds),
        advance_tax=tuple(D(amount) for amount in advance_tax_installments),
        self_assessment_tax=D(self_assessment_tax),
        tcs=D(tcs),
    )

    liability = tax.total_tax_with_cess
    penalties = None
    if filing_date is not None:
        penalties = calculate_advance_tax_penalties(
            total_liability=tax.total_tax_with_cess,
            quarterly_advance_tax_paid=payments.advance_tax,
            due_dates=due_dates or advance_tax_due_dates(tax.financial_year),
            filing_date=filing_date,
            tds_paid=payments.tds + payments.tcs,
        )
        liability += penalties.total_advance_tax_penalties

    position = resolve_refund(liability, payments.total)
    logger.debug(
        "FY %s settlement: %s",
        tax.financial_year, "refund" if position.is_refund else "demand or nil",
    )
    return TaxSettlement(tax=tax, penalties=penalties, payments=payments, position=position)


__all__ = ["resolve_refund", "settle_tax_position"]
