"""
Shared route helpers - outcome and error to HTTP translation.

success / partial_failure  -> returned as-is (200 or 201)
failure                    -> HTTPException with the error's status
"""

from fastapi import HTTPException

from app.core.errors import Conflict, NotFound, StoreError, StoreUnavailable, ValidationError
from app.schemas.schemas import OutcomeStatus, SubmissionOutcome

ERROR_STATUS = {
    cls.__name__: cls.status_code
    for cls in (StoreError, NotFound, ValidationError, Conflict, StoreUnavailable)
}


def http_error(error: StoreError) -> HTTPException:
    return HTTPException(status_code=error.status_code, detail=str(error))


def check_outcome(outcome: SubmissionOutcome) -> SubmissionOutcome:
    """Raise for failure outcomes, pass everything else through."""
    if outcome.status == OutcomeStatus.failure:
        status = ERROR_STATUS.get(outcome.error_type, 500)
        raise HTTPException(status_code=status, detail=outcome.error)
    return outcome
