"""
penalties.py — Advance-tax interest under Sections 234A, 234B and 234C.

All three are simple interest at 1% per month, with any part of a month
counted as a full month:

  234A  late filing: unpaid tax × months from the return due date to filing
  234B  advance tax paid < 90% of net liability:
        (90% of net liability − advance tax paid) × months from 1 April of
        the assessment year to filing, or to the return due date when the
        return is filed on time
  234C  per installment: (cumulative % × net liability − cumulative paid)
        × 3 / 3 / 3 / 1 months for the 15 Jun / 15 Sep / 15 Dec / 15 Mar dates

Net liability = total liability − TDS. At or below ₹10,000 no advance tax
is due and nothing is charged. Each section is rounded once to whole rupees;
no section reduces another.
"""
from __future__ import annotations

import datetime as dt
import logging
import re
from decimal import Decimal
from typing import Sequence

from returnly.engine.money import ZERO, D, Number, format_inr, percent_of, round_rupees
from returnly.engine.schemas import AdvanceTaxDueDates, AdvanceTaxPenalty, PenaltyDetail
from returnly.errors import InvalidFinancialYear

logger = logging.getLogger(__name__)

# ===========================================================================
# CONSTANTS
# ===========================================================================

INTEREST_RATE_PER_MONTH = Decimal("1")          # % per month, all three sections
ADVANCE_TAX_THRESHOLD = Decimal("10000")        # Sec 208: no advance tax at or below this
SECTION_234B_PAID_PERCENT = Decimal("90")

# (cumulative % of net liability due, months of 234C interest) per installment
INSTALLMENT_SCHEDULE: tuple[tuple[Decimal, int], ...] = (
    (Decimal("15"), 3),    # 15 June
    (Decimal("45"), 3),    # 15 September
    (Decimal("75"), 3),    # 15 December
    (Decimal("100"), 1),   # 15 March
)

_FY_PATTERN = re.compile(r"^(\d{2}|\d{4})-(\d{2})$")


# ===========================================================================
# DATE HELPERS
# ===========================================================================

def parse_financial_year(financial_year: str) -> int:
    """
    Starting calendar year of a financial year string.
    Accepts "2023-24" and "23-24"; two-digit years are 20xx.
    """
    match = _FY_PATTERN.match(financial_year.strip())
    if not match:
        raise InvalidFinancialYear(f"Financial year must look like '2023-24', got {financial_year!r}")
    start = int(match.group(1))
    if start < 100:
        start += 2000
    if (start + 1) % 100 != int(match.group(2)):
        raise InvalidFinancialYear(f"Financial year {financial_year!r} does not span consecutive years")
    return start


def advance_tax_due_dates(financial_year: str) -> AdvanceTaxDueDates:
    start = parse_financial_year(financial_year)
    return AdvanceTaxDueDates(
        financial_year=f"{start}-{(start + 1) % 100:02d}",
        installment_due_dates=(
            dt.date(start, 6, 15),
            dt.date(start, 9, 15),
            dt.date(start, 12, 15),
            dt.date(start + 1, 3, 15),
        ),
        assessment_year_start=dt.date(start + 1, 4, 1),
        return_due_date=dt.date(start + 1, 7, 31),
    )


def months_between(start: dt.date, end: dt.date) -> int:
    """Whole months from start to end, a part month counting as one. 0 if end <= start."""
    if end <= start:
        return 0
    months = (end.year - start.year) * 12 + (end.month - start.month)
    if end.day > start.day:
        months += 1
    return months


# ===========================================================================
# SECTION CALCULATORS
# ===========================================================================

def _monthly_interest(amount: Decimal, months: int) -> Decimal:
    return percent_of(amount, INTEREST_RATE_PER_MONTH) * months


def _section_234a(
    net_liability: Decimal,
    advance_paid: Decimal,
    due_dates: AdvanceTaxDueDates,
    filing_date: dt.date,
) -> list[PenaltyDetail]:
    months = months_between(due_dates.return_due_date, filing_date)
    unpaid = max(ZERO, net_liability - advance_paid)
    if months == 0 or unpaid == 0:
        return []
    return [PenaltyDetail(
        section="234A",
        period=f"{due_dates.return_due_date.isoformat()} to {filing_date.isoformat()}",
        required_amount=net_liability,
        paid_amount=advance_paid,
        shortfall=unpaid,
        rate=INTEREST_RATE_PER_MONTH,
        months=months,
        interest=_monthly_interest(unpaid, months),
        description=f"Return filed {months} month(s) after the due date with {format_inr(unpaid)} unpaid",
    )]


def _section_234b(
    net_liability: Decimal,
    advance_paid: Decimal,
    due_dates: AdvanceTaxDueDates,
    filing_date: dt.date,
) -> list[PenaltyDetail]:
    required = percent_of(net_liability, SECTION_234B_PAID_PERCENT)
    if advance_paid >= required:
        return []
    shortfall = required - advance_paid
    period_end = max(filing_date, due_dates.return_due_date)
    months = months_between(due_dates.assessment_year_start, period_end)
    if months == 0:
        return []
    return [PenaltyDetail(
        section="234B",
        period=f"{due_dates.assessment_year_start.isoformat()} to {period_end.isoformat()}",
        required_amount=required,
        paid_amount=advance_paid,
        shortfall=shortfall,
        rate=INTEREST_RATE_PER_MONTH,
        months=months,
        interest=_monthly_interest(shortfall, months),
        description="Advance tax paid was below 90% of the assessed liability",
    )]


def _section_234c(
    net_liability: Decimal,
    installments: Sequence[Decimal],
    due_dates: AdvanceTaxDueDates,
) -> list[PenaltyDetail]:
    details: list[PenaltyDetail] = []
    paid_to_date = ZERO
    for number, ((cumulative_pct, months), paid, due_on) in enumerate(
        zip(INSTALLMENT_SCHEDULE, installments, due_dates.installment_due_dates), start=1
    ):
        paid_to_date += paid
        required = percent_of(net_liability, cumulative_pct)
        shortfall = max(ZERO, required - paid_to_date)
        if shortfall == 0:
            continue
        details.append(PenaltyDetail(
            section="234C",
            period=f"Installment {number} (due {due_on.isoformat()})",
            required_amount=required,
            paid_amount=paid_to_date,
            shortfall=shortfall,
            rate=INTEREST_RATE_PER_MONTH,
            months=months,
            interest=_monthly_interest(shortfall, months),
            description=f"{cumulative_pct}% of liability was due by {due_on.isoformat()}",
        ))
    return details


# ===========================================================================
# PUBLIC API
# ===========================================================================

def calculate_advance_tax_penalties(
    total_liability: Number,
    quarterly_advance_tax_paid: Sequence[Number],
    due_dates: AdvanceTaxDueDates,
    filing_date: dt.date,
    tds_paid: Number = 0,
) -> AdvanceTaxPenalty:
    """
    Interest under 234A, 234B and 234C for one financial year.

    quarterly_advance_tax_paid holds the amount paid against each of the four
    installments (not running totals).
    """
    if len(quarterly_advance_tax_paid) != 4:
        raise ValueError(
            f"Expected 4 quarterly advance tax amounts, got {len(quarterly_advance_tax_paid)}"
        )
    installments = [max(ZERO, D(amount)) for amount in quarterly_advance_tax_paid]
    advance_paid = sum(installments, ZERO)
    net_liability = max(ZERO, D(total_liability) - D(tds_paid))

    if net_liability <= ADVANCE_TAX_THRESHOLD:
        logger.debug("FY %s: net liability within advance-tax threshold, no interest", due_dates.financial_year)
        return AdvanceTaxPenalty(net_liability=net_liability, advance_tax_paid=advance_paid)

    details_234a = _section_234a(net_liability, advance_paid, due_dates, filing_date)
    details_234b = _section_234b(net_liability, advance_paid, due_dates, filing_date)
    details_234c = _section_234c(net_liability, installments, due_dates)

    interest_234a = round_rupees(sum((d.interest for d in details_234a), ZERO))
    interest_234b = round_rupees(sum((d.interest for d in details_234b), ZERO))
    interest_234c = round_rupees(sum((d.interest for d in details_234c), ZERO))

    logger.info(
        "FY %s advance-tax interest: 234A=%s 234B=%s 234C=%s",
        due_dates.financial_year, interest_234a, interest_234b, interest_234c,
    )

    return AdvanceTaxPenalty(
        net_liability=net_liability,
        advance_tax_paid=advance_paid,
        section_234a_interest=interest_234a,
        section_234b_interest=interest_234b,
        section_234c_interest=interest_234c,
        total_advance_tax_penalties=interest_234a + interest_234b + interest_234c,
        details=tuple(details_234a + details_234b + details_234c),
    )


__all__ = [
    "calculate_advance_tax_penalties",
    "advance_tax_due_dates",
    "parse_financial_year",
    "months_between",
]
