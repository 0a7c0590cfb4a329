"""
errors.py — Returnly exception taxonomy and error codes.

Fatal conditions raise. Expected business outcomes (ineligible form, advance-tax
shortfall, refund vs demand) are data, never exceptions.

  ConfigurationNotFound  unknown financial year; no fallback year is guessed
  InvalidFinancialYear   malformed financial-year string
  MissingIdentityError   PAN or name absent when building return data
  ValidationFailed       serialize requested for data that fails validation
  UnsupportedITRType     build requested for a form outside ITR-1/ITR-2

The two last ones have envelope codes: the generation pipeline reports them
as structured failures instead of raising.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from returnly.itr.schemas import ErrorDetail

# Envelope codes used in ErrorBody.code
VALIDATION_FAILED = "VALIDATION_FAILED"
UNSUPPORTED_ITR_TYPE = "UNSUPPORTED_ITR_TYPE"


class ReturnlyError(Exception):
    """Base class for every error raised by the engine."""


class ConfigurationNotFound(ReturnlyError, LookupError):
    def __init__(self, financial_year: str, available: Sequence[str] = ()):
        self.financial_year = financial_year
        self.available = tuple(available)
        message = f"No tax configuration for financial year {financial_year!r}"
        if self.available:
            message += f" (available: {', '.join(self.available)})"
        super().__init__(message)


class InvalidFinancialYear(ReturnlyError, ValueError):
    pass


class MissingIdentityError(ReturnlyError, ValueError):
    def __init__(self, missing: Sequence[str]):
        self.missing = tuple(missing)
        super().__init__(f"Missing required identity fields: {', '.join(self.missing)}")


class ValidationFailed(ReturnlyError):
    """Carries every violation found, not only the first."""

    def __init__(self, errors: Sequence["ErrorDetail"]):
        self.errors = list(errors)
        super().__init__(f"Return data failed validation with {len(self.errors)} error(s)")


class UnsupportedITRType(ReturnlyError):
    def __init__(self, form_type: str):
        self.form_type = form_type
        super().__init__(f"Return type {form_type!r} is not supported; ITR-3 or higher is required")
