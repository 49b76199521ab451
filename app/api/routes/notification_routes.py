"""
Notification Routes

POST /notifications/audience - Preview who would receive a notification
POST /notifications/send     - Deliver one copy per recipient
"""

from fastapi import APIRouter, Depends

from app.api.deps import check_outcome, http_error
from app.core.errors import StoreError
from app.schemas.schemas import AudienceResponse, Notification, SubmissionOutcome
from app.services.orchestration import OrchestrationService, get_orchestration_service

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.post("/audience", response_model=AudienceResponse)
def preview_audience(data: Notification, service: OrchestrationService = Depends(get_orchestration_service)):
    try:
        recipients = service.resolve_audience(data)
    except StoreError as e:
        raise http_error(e)
    return AudienceResponse(
        recipient_type=data.recipient_type,
        recipient_value=data.recipient_value,
        recipients=[{"user_id": r.user_id, "role": r.role} for r in recipients],
        total=len(recipients),
    )


@router.post("/send", response_model=SubmissionOutcome, status_code=201)
def send_notification(data: Notification, service: OrchestrationService = Depends(get_orchestration_service)):
    """Audience is resolved now, from current membership."""
    return check_outcome(service.send_notification(data))
