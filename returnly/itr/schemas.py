"""
schemas.py — Return-form (ITR) Pydantic v2 data contracts.

Defines:
  - ITRType, ITRSelectionReason, TaxpayerCategory, ResidencyStatus enums
  - IncomeFacts          (normalized income heads + flags; selector input)
  - AdditionalInfo       (identity, bank, employer, TDS, schedules; builder input)
  - ITRSelectionResult   (selector output)
  - ITRData              (tagged variant: shared fields + ITR1Payload | ITR2Payload)
  - ValidationReport, ITRDocuments, ITRGenerationResult
  - ErrorDetail, ErrorBody, ErrorResponse  (cross-cutting error envelope)

Numeric input fields never hold None: a None from a caller is normalized to 0
before validation, so downstream code never needs an `or 0`.
"""
from __future__ import annotations

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator

from returnly.config import settings
from returnly.engine.money import D, percent_of
from returnly.engine.schemas import (
    AdvanceTaxPenalty,
    RefundOrDemand,
    TaxCalculationResult,
    TaxPayments,
    TaxRegime,
)


def _none_to_zero(value: Any) -> Any:
    return D(0) if value is None else value


# Money input: None → 0, int/float/str → Decimal
Money = Annotated[Decimal, BeforeValidator(_none_to_zero)]

_ZERO_QUARTERS = (Decimal("0"), Decimal("0"), Decimal("0"), Decimal("0"))


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class ITRType(str, Enum):
    itr1 = "ITR-1"
    itr2 = "ITR-2"
    not_supported = "NotSupported"


class ITRSelectionReason(str, Enum):
    # ITR-1 eligibility
    eligible_itr1_within_income_limit = "EligibleForITR1_WithinIncomeLimit"
    eligible_itr1_simple_income_structure = "EligibleForITR1_SimpleIncomeStructure"
    eligible_itr1_basic_salary_income = "EligibleForITR1_BasicSalaryIncome"

    # ITR-1 rejections
    rejected_itr1_income_above_50_lakh = "RejectedITR1_IncomeAbove50Lakh"
    rejected_itr1_has_capital_gains = "RejectedITR1_HasCapitalGains"
    rejected_itr1_has_business_income = "RejectedITR1_HasBusinessIncome"
    rejected_itr1_has_multiple_house_properties = "RejectedITR1_HasMultipleHouseProperties"
    rejected_itr1_has_foreign_income = "RejectedITR1_HasForeignIncome"
    rejected_itr1_director_of_company = "RejectedITR1_DirectorOfCompany"
    rejected_itr1_has_unlisted_shares = "RejectedITR1_HasUnlistedShares"
    rejected_itr1_not_individual = "RejectedITR1_NotIndividual"
    rejected_itr1_not_resident = "RejectedITR1_NotResident"

    # ITR-2 eligibility
    eligible_itr2_individual_or_huf = "EligibleForITR2_IndividualOrHUF"
    eligible_itr2_no_business_income = "EligibleForITR2_NoBusinessIncome"
    eligible_itr2_has_capital_gains = "EligibleForITR2_HasCapitalGains"
    eligible_itr2_has_multiple_income_sources = "EligibleForITR2_HasMultipleIncomeSources"

    # ITR-2 rejections
    rejected_itr2_has_business_income = "RejectedITR2_HasBusinessIncome"
    rejected_itr2_not_individual_or_huf = "RejectedITR2_NotIndividualOrHUF"

    # General
    requires_higher_itr = "RequiresHigherITR"


class TaxpayerCategory(str, Enum):
    individual = "Individual"
    huf = "HUF"
    company = "Company"
    partnership = "Partnership"
    llp = "LLP"
    aop = "AOP"
    boi = "BOI"


class ResidencyStatus(str, Enum):
    resident = "Resident"
    non_resident = "NonResident"
    resident_not_ordinarily_resident = "ResidentNotOrdinaryResident"


# ---------------------------------------------------------------------------
# IncomeFacts: selector input
# ---------------------------------------------------------------------------

class IncomeFacts(BaseModel):
    """
    Annual income heads and structural flags for one taxpayer and year.

    Amounts are INR. house_property_income may be negative (a loss from a
    let-out or self-occupied property with home-loan interest).
    """
    model_config = ConfigDict(extra="forbid", frozen=True)

    taxpayer_category: TaxpayerCategory = TaxpayerCategory.individual
    residency_status: ResidencyStatus = ResidencyStatus.resident
    age: int = Field(default=30, ge=0, le=130)

    salary_income: Money = Field(default=Decimal("0"), ge=0, description="Gross salary from all employers.")
    interest_income: Money = Field(default=Decimal("0"), ge=0)
    dividend_income: Money = Field(default=Decimal("0"), ge=0)
    capital_gains: Money = Field(default=Decimal("0"), description="Net capital gains (short + long term).")
    business_income: Money = Field(default=Decimal("0"), description="Business or professional income.")
    house_property_income: Money = Decimal("0")
    other_income: Money = Field(default=Decimal("0"), ge=0)
    foreign_income: Money = Field(default=Decimal("0"), ge=0)

    house_property_count: int = Field(default=0, ge=0)
    has_foreign_income: bool = False
    has_foreign_assets: bool = False
    is_director_of_company: bool = False
    has_unlisted_shares: bool = False
    has_losses_from_previous_year: bool = False

    @property
    def total_income(self) -> Decimal:
        return (
            self.salary_income + self.interest_income + self.dividend_income
            + self.capital_gains + self.business_income + self.house_property_income
            + self.other_income + self.foreign_income
        )

    def income_breakdown(self) -> Dict[str, Decimal]:
        """Non-zero heads only, in a fixed display order."""
        heads = (
            ("Salary Income", self.salary_income),
            ("Interest Income", self.interest_income),
            ("Dividend Income", self.dividend_income),
            ("Capital Gains", self.capital_gains),
            ("Business Income", self.business_income),
            ("House Property Income", self.house_property_income),
            ("Other Income", self.other_income),
            ("Foreign Income", self.foreign_income),
        )
        return {label: amount for label, amount in heads if amount != 0}


# ---------------------------------------------------------------------------
# Schedule records (shared by AdditionalInfo and the ITR payloads)
# ---------------------------------------------------------------------------

class EmployerDetails(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = ""
    tan: str = ""
    address: str = ""


class SalaryDetails(BaseModel):
    """One employer on ITR-2 (Schedule S)."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    employer_name: str
    tan: str = ""
    gross_salary: Money = Field(default=Decimal("0"), ge=0)
    tax_deducted: Money = Field(default=Decimal("0"), ge=0)
    certificate_number: str = ""


class HousePropertyDetails(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    address: str = ""
    is_self_occupied: bool = True
    annual_value: Money = Field(default=Decimal("0"), ge=0)
    municipal_tax_paid: Money = Field(default=Decimal("0"), ge=0)
    home_loan_interest: Money = Field(default=Decimal("0"), ge=0)

    @property
    def net_annual_value(self) -> Decimal:
        return self.annual_value - self.municipal_tax_paid

    @property
    def standard_deduction(self) -> Decimal:
        """Section 24(a): 30% of net annual value."""
        return max(Decimal("0"), percent_of(self.net_annual_value, Decimal("30")))

    @property
    def net_income(self) -> Decimal:
        return self.net_annual_value - self.standard_deduction - self.home_loan_interest


class CapitalGainDetails(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    asset_description: str = ""
    purchase_date: dt.date
    sale_date: dt.date
    sale_consideration: Money = Field(default=Decimal("0"), ge=0)
    cost_of_acquisition: Money = Field(default=Decimal("0"), ge=0)
    cost_of_improvement: Money = Field(default=Decimal("0"), ge=0)
    transfer_expenses: Money = Field(default=Decimal("0"), ge=0)

    @property
    def holding_days(self) -> int:
        return (self.sale_date - self.purchase_date).days

    @property
    def is_long_term(self) -> bool:
        return self.holding_days > 365

    @property
    def gain(self) -> Decimal:
        return (
            self.sale_consideration - self.cost_of_acquisition
            - self.cost_of_improvement - self.transfer_expenses
        )


class ForeignAssetDetails(BaseModel):
    """Schedule FA entry. value is the INR equivalent."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    asset_type: str
    country: str
    value: Money = Field(default=Decimal("0"), ge=0)
    currency: str = "INR"


class TDSEntry(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    deductor_name: str = ""
    tan: str = ""
    income_paid: Money = Field(default=Decimal("0"), ge=0)
    tax_deducted: Money = Field(default=Decimal("0"), ge=0)


# ---------------------------------------------------------------------------
# AdditionalInfo: builder input beyond the income heads
# ---------------------------------------------------------------------------

class AdditionalInfo(BaseModel):
    """
    Everything the return needs that is not an income head.

    pan/name left as None mean "not supplied" and stop the build immediately;
    an empty string is treated as supplied-but-invalid and reported by validation.
    """
    model_config = ConfigDict(extra="forbid", frozen=True)

    financial_year: str = Field(default_factory=lambda: settings.default_financial_year)
    regime: TaxRegime = TaxRegime.new

    # --- Identity ---
    pan: Optional[str] = None
    name: Optional[str] = None
    date_of_birth: Optional[dt.date] = None
    address_line: str = ""
    city: str = ""
    state: str = ""
    pincode: str = ""
    email: Optional[str] = None
    mobile: Optional[str] = None
    aadhaar: Optional[str] = None

    # --- Bank (refund credit) ---
    bank_account_number: Optional[str] = None
    ifsc_code: Optional[str] = None
    bank_name: Optional[str] = None

    # --- Salary ---
    employer: Optional[EmployerDetails] = None
    additional_employers: List[SalaryDetails] = Field(default_factory=list)
    allowances_exempt: Money = Field(default=Decimal("0"), ge=0)
    perquisites: Money = Field(default=Decimal("0"), ge=0)
    profits_in_lieu_of_salary: Money = Field(default=Decimal("0"), ge=0)
    professional_tax: Money = Field(default=Decimal("0"), ge=0)

    # --- Other sources split (ITR-1 shows savings vs deposit interest separately) ---
    interest_from_savings: Money = Field(default=Decimal("0"), ge=0)

    # --- Deductions (old regime, aggregate Chapter VI-A) ---
    old_regime_deductions: Money = Field(default=Decimal("0"), ge=0)

    # --- Taxes paid ---
    declared_tds: Money = Field(default=Decimal("0"), ge=0, description="Annual TDS as declared on Form 16/26AS.")
    quarterly_tds: Tuple[Money, Money, Money, Money] = _ZERO_QUARTERS
    tds_entries: List[TDSEntry] = Field(default_factory=list)
    tcs: Money = Field(default=Decimal("0"), ge=0)
    advance_tax: Tuple[Money, Money, Money, Money] = _ZERO_QUARTERS
    self_assessment_tax: Money = Field(default=Decimal("0"), ge=0)
    filing_date: Optional[dt.date] = Field(
        default=None, description="When set, 234A/234B/234C interest is charged as of this date."
    )

    # --- Schedules ---
    house_properties: List[HousePropertyDetails] = Field(default_factory=list)
    capital_gain_details: List[CapitalGainDetails] = Field(default_factory=list)
    foreign_assets: List[ForeignAssetDetails] = Field(default_factory=list)
    huf_name: Optional[str] = None


# ---------------------------------------------------------------------------
# ITRSelectionResult: selector output
# ---------------------------------------------------------------------------

class ITRSelectionResult(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    recommended_type: ITRType
    alternative_types: List[ITRType] = Field(default_factory=list)
    primary_reason: ITRSelectionReason
    all_reasons: List[ITRSelectionReason] = Field(default_factory=list)
    explanation: str
    warnings: List[str] = Field(default_factory=list)
    requires_confirmation: bool = False
    total_income: Decimal
    income_breakdown: Dict[str, Decimal] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Error envelope
# ---------------------------------------------------------------------------

class ErrorDetail(BaseModel):
    """Single field-level validation or business-rule error."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    field: Optional[str] = None   # Dot-notation field path, e.g. "bank.ifsc_code"
    issue: str                    # Human-readable description of the problem


class ErrorBody(BaseModel):
    """Error envelope body."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    code: str                                      # VALIDATION_FAILED, UNSUPPORTED_ITR_TYPE
    message: str                                   # High-level error description
    details: List[ErrorDetail] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    """
    Standard error format for callers that surface engine failures.

    Structure: {"error": {"code": "...", "message": "...", "details": [...]}}
    """
    model_config = ConfigDict(extra="forbid", frozen=True)

    error: ErrorBody


# ---------------------------------------------------------------------------
# ITRData: tagged variant over ITR-1 / ITR-2
# ---------------------------------------------------------------------------

class Address(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    address_line: str = ""
    city: str = ""
    state: str = ""
    pincode: str = ""


class TaxpayerIdentity(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    pan: str
    name: str
    date_of_birth: Optional[dt.date] = None
    category: TaxpayerCategory = TaxpayerCategory.individual
    residency_status: ResidencyStatus = ResidencyStatus.resident
    address: Address = Field(default_factory=Address)
    email: Optional[str] = None
    mobile: Optional[str] = None
    aadhaar: Optional[str] = None


class BankDetails(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    account_number: Optional[str] = None
    ifsc_code: Optional[str] = None
    bank_name: Optional[str] = None


class ITRComputation(BaseModel):
    """Figures derived at build time; the documents print these verbatim."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    total_income: Decimal
    total_deductions: Decimal
    taxable_income: Decimal
    tax: TaxCalculationResult
    tax_liability: Decimal
    penalties: Optional[AdvanceTaxPenalty] = None
    total_tax_paid: Decimal
    position: RefundOrDemand

    @property
    def total_interest(self) -> Decimal:
        if self.penalties is None:
            return Decimal("0")
        return self.penalties.total_advance_tax_penalties


class ITR1Payload(BaseModel):
    """ITR-1 (Sahaj): one employer, at most one house property, other sources."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    form_type: Literal["ITR-1"] = "ITR-1"
    employer: EmployerDetails = Field(default_factory=EmployerDetails)
    gross_salary: Decimal = Decimal("0")
    allowances_exempt: Decimal = Decimal("0")
    perquisites: Decimal = Decimal("0")
    profits_in_lieu_of_salary: Decimal = Decimal("0")
    standard_deduction: Decimal = Decimal("0")
    professional_tax: Decimal = Decimal("0")
    house_property: Optional[HousePropertyDetails] = None
    interest_from_savings: Decimal = Decimal("0")
    interest_from_deposits: Decimal = Decimal("0")
    dividend_income: Decimal = Decimal("0")
    other_income: Decimal = Decimal("0")
    quarterly_tds: Tuple[Decimal, Decimal, Decimal, Decimal] = _ZERO_QUARTERS

    @property
    def net_salary(self) -> Decimal:
        return max(
            Decimal("0"),
            self.gross_salary - self.allowances_exempt - self.standard_deduction - self.professional_tax,
        )


class ITR2Payload(BaseModel):
    """ITR-2: several employers and properties, capital gains, foreign income/assets."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    form_type: Literal["ITR-2"] = "ITR-2"
    huf_name: Optional[str] = None
    salaries: List[SalaryDetails] = Field(default_factory=list)
    standard_deduction: Decimal = Decimal("0")
    professional_tax: Decimal = Decimal("0")
    house_properties: List[HousePropertyDetails] = Field(default_factory=list)
    house_property_income: Decimal = Decimal("0")
    capital_gains: List[CapitalGainDetails] = Field(default_factory=list)
    capital_gains_income: Decimal = Decimal("0")
    interest_income: Decimal = Decimal("0")
    dividend_income: Decimal = Decimal("0")
    other_income: Decimal = Decimal("0")
    foreign_income: Decimal = Decimal("0")
    has_foreign_income: bool = False
    has_foreign_assets: bool = False
    foreign_assets: List[ForeignAssetDetails] = Field(default_factory=list)
    tds_entries: List[TDSEntry] = Field(default_factory=list)
    tcs: Decimal = Decimal("0")

    @property
    def gross_salary(self) -> Decimal:
        return sum((s.gross_salary for s in self.salaries), Decimal("0"))

    @property
    def short_term_gains(self) -> Decimal:
        return sum((g.gain for g in self.capital_gains if not g.is_long_term), Decimal("0"))

    @property
    def long_term_gains(self) -> Decimal:
        return sum((g.gain for g in self.capital_gains if g.is_long_term), Decimal("0"))


ITRPayload = Annotated[Union[ITR1Payload, ITR2Payload], Field(discriminator="form_type")]


class ITRData(BaseModel):
    """
    One return, ready to validate and serialize.

    Built fresh per request and never mutated; validate_itr_data returns a
    copy carrying validation_errors.
    """
    model_config = ConfigDict(extra="forbid", frozen=True)

    assessment_year: str
    financial_year: str
    regime: TaxRegime
    age: int
    identity: TaxpayerIdentity
    bank: BankDetails = Field(default_factory=BankDetails)
    payments: TaxPayments
    computation: ITRComputation
    payload: ITRPayload
    validation_errors: Tuple[ErrorDetail, ...] = ()

    @property
    def form_type(self) -> ITRType:
        return ITRType(self.payload.form_type)


# ---------------------------------------------------------------------------
# Validation, documents, pipeline result
# ---------------------------------------------------------------------------

class ValidationReport(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    errors: List[ErrorDetail] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


class ITRDocuments(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    form_type: ITRType
    xml_content: str
    json_content: Dict[str, Any]


class ITRGenerationResult(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    is_success: bool
    form_type: ITRType
    selection: ITRSelectionResult
    data: Optional[ITRData] = None
    validation: Optional[ValidationReport] = None
    documents: Optional[ITRDocuments] = None
    error: Optional[ErrorBody] = None

    @model_validator(mode="after")
    def _success_has_documents(self) -> "ITRGenerationResult":
        if self.is_success and (self.documents is None or self.error is not None):
            raise ValueError("A successful generation carries documents and no error")
        if not self.is_success and self.error is None:
            raise ValueError("A failed generation carries an error body")
        return self

    @property
    def refund_or_demand(self) -> Optional[RefundOrDemand]:
        return self.data.computation.position if self.data else None


__all__: List[str] = [
    "Money",
    "ITRType",
    "ITRSelectionReason",
    "TaxpayerCategory",
    "ResidencyStatus",
    "IncomeFacts",
    "EmployerDetails",
    "SalaryDetails",
    "HousePropertyDetails",
    "CapitalGainDetails",
    "ForeignAssetDetails",
    "TDSEntry",
    "AdditionalInfo",
    "ITRSelectionResult",
    "ErrorDetail",
    "ErrorBody",
    "ErrorResponse",
    "Address",
    "TaxpayerIdentity",
    "BankDetails",
    "ITRComputation",
    "ITR1Payload",
    "ITR2Payload",
    "ITRData",
    "ValidationReport",
    "ITRDocuments",
    "ITRGenerationResult",
]
