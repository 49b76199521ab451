"""
Student Routes

GET  /students/{student_id}/can-advance - Year advancement check
POST /students/{student_id}/advance     - Move the student to the next year
"""

from fastapi import APIRouter, Depends

from app.api.deps import check_outcome, http_error
from app.core.errors import StoreError
from app.schemas.schemas import EligibilityResponse, SubmissionOutcome
from app.services.orchestration import OrchestrationService, get_orchestration_service

router = APIRouter(prefix="/students", tags=["Students"])


@router.get("/{student_id}/can-advance", response_model=EligibilityResponse)
def can_advance(student_id: str, service: OrchestrationService = Depends(get_orchestration_service)):
    """True only when every current-year subject of the student's major is passed."""
    try:
        student, allowed = service.year_eligibility(student_id)
    except StoreError as e:
        raise http_error(e)
    return EligibilityResponse(student_id=student_id, year=student.year, can_advance=allowed)


@router.post("/{student_id}/advance", response_model=SubmissionOutcome)
def advance(student_id: str, service: OrchestrationService = Depends(get_orchestration_service)):
    return check_outcome(service.advance_year(student_id))
