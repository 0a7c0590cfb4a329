"""
Return generation pipeline: select → build → validate → serialize.

Expected business outcomes come back as an ITRGenerationResult with an error
envelope instead of an exception:

  UNSUPPORTED_ITR_TYPE  the profile needs ITR-3 or higher
  VALIDATION_FAILED     every validation violation, no documents produced

Genuine faults (unknown financial year, missing PAN/name) still raise.
"""
from __future__ import annotations

import logging

from returnly.errors import UNSUPPORTED_ITR_TYPE, VALIDATION_FAILED
from returnly.itr.builder import build_itr_data
from returnly.itr.schemas import (
    AdditionalInfo,
    ErrorBody,
    IncomeFacts,
    ITRGenerationResult,
    ITRType,
)
from returnly.itr.selector import select_itr_type
from returnly.itr.serializer import serialize_itr_data
from returnly.itr.validator import validate_itr_data, with_validation_errors

logger = logging.getLogger(__name__)


def generate_itr(facts: IncomeFacts, info: AdditionalInfo) -> ITRGenerationResult:
    selection = select_itr_type(facts, info.financial_year)
    form_type = selection.recommended_type

    if form_type == ITRType.not_supported:
        logger.info("Generation stopped: profile requires ITR-3 or higher")
        return ITRGenerationResult(
            is_success=False,
            form_type=form_type,
            selection=selection,
            error=ErrorBody(code=UNSUPPORTED_ITR_TYPE, message=selection.explanation),
        )

    data = build_itr_data(facts, info, form_type)
    report = validate_itr_data(data)
    data = with_validation_errors(data, report)

    if not report.is_valid:
        logger.info("Generation stopped: %s failed validation with %d error(s)", form_type.value, len(report.errors))
        return ITRGenerationResult(
            is_success=False,
            form_type=form_type,
            selection=selection,
            data=data,
            validation=report,
            error=ErrorBody(
                code=VALIDATION_FAILED,
                message=f"{form_type.value} data failed validation",
                details=report.errors,
            ),
        )

    documents = serialize_itr_data(data)
    return ITRGenerationResult(
        is_success=True,
        form_type=form_type,
        selection=selection,
        data=data,
        validation=report,
        documents=documents,
    )


__all__ = ["generate_itr"]
