"""
Administration Routes - one endpoint per portal form

POST   /departments              - Create department
PUT    /departments/{id}         - Update department (major_ids, staff)
POST   /majors                   - Create major
PUT    /majors/{id}              - Update major (department_id, subject_ids)
DELETE /majors/{id}              - Delete major and detach its subjects
POST   /subjects                 - Create subject
PUT    /subjects/{id}            - Update subject (major_id, professor_ids)
DELETE /subjects/{id}            - Delete subject
POST   /professors               - Create professor
PUT    /professors/{id}          - Update professor (department_ids, subject_ids)
DELETE /professors/{id}          - Delete professor and every membership

Every response is a SubmissionOutcome. A partial_failure still returns
2xx: the record was saved, the listed edges were not.
"""

from fastapi import APIRouter, Depends

from app.api.deps import check_outcome
from app.schemas.schemas import DepartmentForm, MajorForm, ProfessorForm, SubjectForm, SubmissionOutcome
from app.services.orchestration import OrchestrationService, get_orchestration_service

router = APIRouter(tags=["Administration"])


# ============================================================
# DEPARTMENTS
# ============================================================

@router.post("/departments", response_model=SubmissionOutcome, status_code=201)
def create_department(data: DepartmentForm,
                      service: OrchestrationService = Depends(get_orchestration_service)):
    return check_outcome(service.save_department(None, data))


@router.put("/departments/{department_id}", response_model=SubmissionOutcome)
def update_department(department_id: str, data: DepartmentForm,
                      service: OrchestrationService = Depends(get_orchestration_service)):
    return check_outcome(service.save_department(department_id, data))


# ============================================================
# MAJORS
# ============================================================

@router.post("/majors", response_model=SubmissionOutcome, status_code=201)
def create_major(data: MajorForm, service: OrchestrationService = Depends(get_orchestration_service)):
    return check_outcome(service.save_major(None, data))


@router.put("/majors/{major_id}", response_model=SubmissionOutcome)
def update_major(major_id: str, data: MajorForm,
                 service: OrchestrationService = Depends(get_orchestration_service)):
    """Changing department_id moves the major between departments."""
    return check_outcome(service.save_major(major_id, data))


@router.delete("/majors/{major_id}", response_model=SubmissionOutcome)
def delete_major(major_id: str, service: OrchestrationService = Depends(get_orchestration_service)):
    return check_outcome(service.delete_major(major_id))


# ============================================================
# SUBJECTS
# ============================================================

@router.post("/subjects", response_model=SubmissionOutcome, status_code=201)
def create_subject(data: SubjectForm, service: OrchestrationService = Depends(get_orchestration_service)):
    return check_outcome(service.save_subject(None, data))


@router.put("/subjects/{subject_id}", response_model=SubmissionOutcome)
def update_subject(subject_id: str, data: SubjectForm,
                   service: OrchestrationService = Depends(get_orchestration_service)):
    """Changing major_id moves the subject between majors."""
    return check_outcome(service.save_subject(subject_id, data))


@router.delete("/subjects/{subject_id}", response_model=SubmissionOutcome)
def delete_subject(subject_id: str, service: OrchestrationService = Depends(get_orchestration_service)):
    return check_outcome(service.delete_subject(subject_id))


# ============================================================
# PROFESSORS
# ============================================================

@router.post("/professors", response_model=SubmissionOutcome, status_code=201)
def create_professor(data: ProfessorForm,
                     service: OrchestrationService = Depends(get_orchestration_service)):
    return check_outcome(service.save_professor(None, data))


@router.put("/professors/{professor_id}", response_model=SubmissionOutcome)
def update_professor(professor_id: str, data: ProfessorForm,
                     service: OrchestrationService = Depends(get_orchestration_service)):
    return check_outcome(service.save_professor(professor_id, data))


@router.delete("/professors/{professor_id}", response_model=SubmissionOutcome)
def delete_professor(professor_id: str, service: OrchestrationService = Depends(get_orchestration_service)):
    """Removes the professor from every department and subject, and clears department heads."""
    return check_outcome(service.delete_professor(professor_id))
