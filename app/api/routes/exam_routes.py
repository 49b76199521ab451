"""
Exam Routes

GET    /exam-periods/check       - Is a date inside an active exam period?
POST   /exam-periods             - Create exam period
PUT    /exam-periods/{period_id} - Update exam period
POST   /exam-sessions            - Schedule exam session
POST   /exam-registrations       - Register a student for an exam session
DELETE /exam-registrations/{student_id}/{exam_session_id} - Deregister
POST   /exam-grades              - Record a grade (registration required)
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.api.deps import check_outcome, http_error
from app.core.errors import StoreError
from app.schemas.schemas import (
    ExamGradeCreate, ExamPeriodForm, ExamRegistrationCreate, ExamSessionCreate,
    PeriodCheckResponse, SubmissionOutcome,
)
from app.services.orchestration import OrchestrationService, get_orchestration_service

router = APIRouter(tags=["Exams"])


@router.get("/exam-periods/check", response_model=PeriodCheckResponse)
def check_exam_date(
    exam_date: date = Query(...),
    major_id: Optional[str] = Query(None),
    service: OrchestrationService = Depends(get_orchestration_service)
):
    """With no exam periods configured every date is allowed."""
    try:
        within = service.is_within_active_period(exam_date, major_id)
    except StoreError as e:
        raise http_error(e)
    return PeriodCheckResponse(exam_date=exam_date, major_id=major_id, within_active_period=within)


@router.post("/exam-periods", response_model=SubmissionOutcome, status_code=201)
def create_exam_period(data: ExamPeriodForm,
                       service: OrchestrationService = Depends(get_orchestration_service)):
    return check_outcome(service.save_exam_period(None, data))


@router.put("/exam-periods/{period_id}", response_model=SubmissionOutcome)
def update_exam_period(period_id: str, data: ExamPeriodForm,
                       service: OrchestrationService = Depends(get_orchestration_service)):
    return check_outcome(service.save_exam_period(period_id, data))


@router.post("/exam-sessions", response_model=SubmissionOutcome, status_code=201)
def schedule_exam_session(data: ExamSessionCreate,
                          service: OrchestrationService = Depends(get_orchestration_service)):
    """A date outside every active period is saved with a warning, not rejected."""
    return check_outcome(service.schedule_exam_session(data))


@router.post("/exam-grades", response_model=SubmissionOutcome, status_code=201)
def record_exam_grade(data: ExamGradeCreate,
                      service: OrchestrationService = Depends(get_orchestration_service)):
    return check_outcome(service.record_exam_grade(data))


@router.post("/exam-registrations", response_model=SubmissionOutcome, status_code=201)
def register_for_exam(data: ExamRegistrationCreate,
                      service: OrchestrationService = Depends(get_orchestration_service)):
    """409 when the student is already registered for the session."""
    return check_outcome(service.register_for_exam(data))


@router.delete("/exam-registrations/{student_id}/{exam_session_id}", response_model=SubmissionOutcome)
def deregister_from_exam(student_id: str, exam_session_id: str,
                         service: OrchestrationService = Depends(get_orchestration_service)):
    return check_outcome(service.deregister_from_exam(student_id, exam_session_id))
