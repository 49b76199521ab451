"""
Pydantic Schemas - Entities, Request/Response Validation

All domain records, API request bodies and engine results in one file
for simplicity.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List, Dict, Any, NamedTuple
from datetime import date, datetime
from enum import Enum


# ============================================================
# ENUMS
# ============================================================

class EntityKind(str, Enum):
    department = "department"
    major = "major"
    subject = "subject"
    professor = "professor"
    student = "student"
    notification = "notification"
    exam_period = "exam_period"
    exam_session = "exam_session"
    exam_registration = "exam_registration"
    exam_grade = "exam_grade"
    user = "user"


class UserRole(str, Enum):
    student = "STUDENT"
    professor = "PROFESSOR"
    assistant = "ASSISTANT"
    administrator = "ADMINISTRATOR"
    student_service = "STUDENTSKA_SLUZBA"


class RecipientType(str, Enum):
    id = "id"
    role = "role"
    department = "department"
    major = "major"
    department_students = "department_students"
    department_professors = "department_professors"
    major_students = "major_students"
    major_professors = "major_professors"


class ExamSessionStatus(str, Enum):
    scheduled = "scheduled"
    pending = "pending"
    completed = "completed"
    cancelled = "cancelled"


class EdgeOp(str, Enum):
    add = "add"
    remove = "remove"
    detach = "detach"  # child stolen from its previous parent


class OutcomeStatus(str, Enum):
    success = "success"
    partial_failure = "partial_failure"
    failure = "failure"


# ============================================================
# ENTITY RECORDS
# Documents as the store returns them. Unknown fields are kept
# so a read-modify-write never drops data we do not model.
# ============================================================

class Record(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str


class Department(Record):
    name: str = ""
    head: Optional[str] = None
    major_ids: List[str] = []
    staff: List[str] = []


class Major(Record):
    name: str = ""
    department_id: Optional[str] = None
    subject_ids: List[str] = []


class Subject(Record):
    name: str = ""
    major_id: Optional[str] = None
    year: Optional[int] = None
    semester: Optional[int] = None
    professor_ids: List[str] = []


class Professor(Record):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    office: Optional[str] = None


class Student(Record):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    major_id: Optional[str] = None
    year: Optional[int] = None
    gpa: float = 0.0
    espb: int = 0
    scholarship: bool = False


class UserAccount(Record):
    role: UserRole


class ExamPeriod(Record):
    name: str = ""
    start_date: date
    end_date: date
    academic_year: Optional[int] = None
    semester: Optional[int] = None
    major_id: Optional[str] = None
    is_active: bool = False

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def date_only(cls, v):
        # The store hands back full timestamps; periods compare by calendar day
        if isinstance(v, datetime):
            return v.date()
        if isinstance(v, str) and "T" in v:
            return datetime.fromisoformat(v.replace("Z", "+00:00")).date()
        return v


class ExamSession(Record):
    subject_id: str
    professor_id: str
    exam_date: datetime
    location: str = ""
    max_students: int = 1
    exam_period_id: Optional[str] = None
    status: ExamSessionStatus = ExamSessionStatus.scheduled

    @field_validator("status", mode="before")
    @classmethod
    def lower_status(cls, v):
        # The university service writes "Completed", "Scheduled"
        return v.lower() if isinstance(v, str) else v

    @property
    def is_completed(self) -> bool:
        return self.status == ExamSessionStatus.completed


class ExamRegistration(Record):
    student_id: str
    exam_session_id: str
    registered_at: Optional[datetime] = None
    status: str = "registered"


class ExamGrade(Record):
    student_id: str
    exam_session_id: str
    subject_id: Optional[str] = None
    grade: int
    passed: bool = False
    comments: Optional[str] = None
    graded_by: Optional[str] = None


class Notification(BaseModel):
    id: Optional[str] = None
    title: str = Field(..., min_length=1)
    content: str = ""
    recipient_type: RecipientType
    recipient_value: str


class UserRef(NamedTuple):
    """A resolved notification recipient."""
    user_id: str
    role: Optional[str] = None


# ============================================================
# RECONCILIATION RESULTS
# ============================================================

class SyncEdge(BaseModel):
    relation: str
    owner_id: str
    counter_id: str
    op: EdgeOp


class EdgeFailure(SyncEdge):
    error: str
    error_type: str


class ReconcileResult(BaseModel):
    relation: str
    owner_id: str
    applied: List[SyncEdge] = []
    failed: List[EdgeFailure] = []
    owner_synced: bool = True
    owner_error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return not self.failed and self.owner_synced

    @property
    def applied_ids(self) -> List[str]:
        return [e.counter_id for e in self.applied if e.op != EdgeOp.detach]

    @property
    def failed_ids(self) -> List[str]:
        return [e.counter_id for e in self.failed if e.op != EdgeOp.detach]


class SubmissionOutcome(BaseModel):
    status: OutcomeStatus
    kind: str
    entity_id: Optional[str] = None
    entity: Optional[Dict[str, Any]] = None
    syncs: List[ReconcileResult] = []
    warnings: List[str] = []
    error: Optional[str] = None
    error_type: Optional[str] = None

    @property
    def failed_edges(self) -> List[EdgeFailure]:
        return [f for sync in self.syncs for f in sync.failed]


# ============================================================
# REQUEST SCHEMAS
# Relation fields are Optional: None means "the form did not touch
# this relation", an empty list means "remove every member".
# ============================================================

class ReconcileRequest(BaseModel):
    desired_ids: List[str]


class DepartmentForm(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    head: Optional[str] = None
    major_ids: Optional[List[str]] = None
    staff: Optional[List[str]] = None


class MajorForm(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    department_id: Optional[str] = None
    subject_ids: Optional[List[str]] = None


class SubjectForm(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    major_id: Optional[str] = None
    year: Optional[int] = Field(None, ge=1, le=6)
    semester: Optional[int] = Field(None, ge=1, le=2)
    professor_ids: Optional[List[str]] = None


class ProfessorForm(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    office: Optional[str] = None
    department_ids: Optional[List[str]] = None
    subject_ids: Optional[List[str]] = None


class ExamPeriodForm(BaseModel):
    name: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    academic_year: Optional[int] = None
    semester: Optional[int] = None
    major_id: Optional[str] = None
    is_active: Optional[bool] = None


class ExamSessionCreate(BaseModel):
    subject_id: str
    professor_id: str
    exam_date: datetime
    location: str = Field(..., min_length=1)
    max_students: int = Field(..., ge=1)


class ExamRegistrationCreate(BaseModel):
    student_id: str
    exam_session_id: str


class ExamGradeCreate(BaseModel):
    student_id: str
    exam_session_id: str
    grade: int = Field(..., ge=5, le=10)
    comments: Optional[str] = None
    graded_by: str


# ============================================================
# RESPONSE SCHEMAS
# ============================================================

class EligibilityResponse(BaseModel):
    student_id: str
    year: Optional[int] = None
    can_advance: bool


class PeriodCheckResponse(BaseModel):
    exam_date: date
    major_id: Optional[str] = None
    within_active_period: bool


class AudienceResponse(BaseModel):
    recipient_type: RecipientType
    recipient_value: str
    recipients: List[Dict[str, Optional[str]]]
    total: int


class MessageResponse(BaseModel):
    message: str
    success: bool = True
