"""
Rendering of freight operation outcomes.

Maps each typed outcome to the HTTP status callers expect and wraps it in
the `{success, code, message, freight, details}` envelope.
"""

from fastapi import status
from fastapi.responses import JSONResponse

from backend.app.domain.freight.outcomes import FreightOutcome, OutcomeCode
from backend.app.schemas.freight import FreightActionResponse, FreightResponse


HTTP_STATUS_BY_CODE = {
    OutcomeCode.OK: status.HTTP_200_OK,
    OutcomeCode.ALREADY_ACCEPTED: status.HTTP_200_OK,
    OutcomeCode.ALREADY_CANCELLED: status.HTTP_200_OK,
    OutcomeCode.ALREADY_IN_STATUS: status.HTTP_200_OK,
    OutcomeCode.APPROVAL_REQUESTED: status.HTTP_202_ACCEPTED,
    OutcomeCode.CONFLICT: status.HTTP_409_CONFLICT,
    OutcomeCode.NOT_ELIGIBLE: status.HTTP_403_FORBIDDEN,
    OutcomeCode.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    OutcomeCode.NOT_OWNER: status.HTTP_403_FORBIDDEN,
    OutcomeCode.CONTACT_SUPPORT: status.HTTP_403_FORBIDDEN,
    OutcomeCode.INVALID_TRANSITION: status.HTTP_422_UNPROCESSABLE_ENTITY,
    OutcomeCode.FINAL_STATE_LOCKED: status.HTTP_422_UNPROCESSABLE_ENTITY,
    OutcomeCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
}


def outcome_response(outcome: FreightOutcome) -> JSONResponse:
    body = FreightActionResponse(
        success=outcome.success,
        code=outcome.code.value,
        message=outcome.message,
        freight=FreightResponse.model_validate(outcome.freight) if outcome.freight is not None else None,
        details=outcome.details,
    )
    return JSONResponse(
        status_code=HTTP_STATUS_BY_CODE[outcome.code],
        content=body.model_dump(mode="json"),
    )
