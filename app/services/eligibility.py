"""
Eligibility Evaluator

Pure functions over already-fetched snapshots. Nothing in this module
touches the store; the orchestration layer fetches the records and
hands them in, so every rule here is testable with plain objects.

RULES:
- Year advancement: every subject of the student's major that belongs
  to the student's current year has a passing grade, AND there is at
  least one such subject (no vacuous truth)
- Exam dates: inside at least one active exam period, inclusive on
  both ends, compared by calendar day. No periods configured at all
  means no constraint (advisory default)
- Notification audience: resolved from current membership at send
  time, never cached
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Iterable, List, Optional, Set, Union

from app.core.errors import ValidationError
from app.schemas.schemas import (
    Department,
    ExamGrade,
    ExamPeriod,
    Major,
    Notification,
    Professor,
    RecipientType,
    Student,
    Subject,
    UserAccount,
    UserRef,
    UserRole,
)

PASSING_GRADE = 6

ROLE_STUDENT = UserRole.student.value
ROLE_PROFESSOR = UserRole.professor.value


# ============================================================
# GRADES & YEAR ADVANCEMENT
# ============================================================

def is_passing_grade(grade: int) -> bool:
    """Grades run 5..10; 6 and above pass."""
    return grade >= PASSING_GRADE


def passed_subject_ids(grades: Iterable[ExamGrade]) -> Set[str]:
    """Subjects with at least one passing grade."""
    return {
        g.subject_id for g in grades
        if g.subject_id and (g.passed or is_passing_grade(g.grade))
    }


def current_year_subjects(student: Student, subjects_of_major: Iterable[Subject]) -> List[Subject]:
    """Subjects of the student's major scheduled for the student's current year."""
    if student.year is None:
        return []
    return [s for s in subjects_of_major if s.year == student.year]


def can_advance_year(student: Student, subjects_of_major: Iterable[Subject],
                     passed_ids: Iterable[str]) -> bool:
    """
    True iff the student's current-year subject list is non-empty and
    every subject on it has been passed.

    A major with no subjects defined for a year is never advanceable.
    """
    required = current_year_subjects(student, subjects_of_major)
    if not required:
        return False
    passed = set(passed_ids)
    return all(s.id in passed for s in required)


# ============================================================
# EXAM PERIODS
# ============================================================

def _as_date(value: Union[date, datetime]) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def is_within_active_period(exam_date: Union[date, datetime], periods: List[ExamPeriod],
                            major_id: Optional[str] = None) -> bool:
    """
    True iff some active period contains exam_date (inclusive, by day).

    An empty period list means nothing is configured and returns True.
    With major_id, periods scoped to another major are ignored; periods
    without a major apply to every major.
    """
    if not periods:
        return True
    return find_containing_period(exam_date, periods, major_id) is not None


def find_containing_period(exam_date: Union[date, datetime], periods: Iterable[ExamPeriod],
                           major_id: Optional[str] = None) -> Optional[ExamPeriod]:
    day = _as_date(exam_date)
    for period in periods:
        if not period.is_active:
            continue
        if major_id and period.major_id and period.major_id != major_id:
            continue
        if period.start_date <= day <= period.end_date:
            return period
    return None


def validate_exam_period(period: ExamPeriod) -> None:
    """
    Raises:
        ValidationError: end before start, or a semester set to anything but 1/2
    """
    if period.end_date < period.start_date:
        raise ValidationError("end_date must be on or after start_date", kind="exam_period")
    # 0 is how the university service stores "no semester"
    if period.semester and period.semester not in (1, 2):
        raise ValidationError("semester must be 1 or 2", kind="exam_period")


# ============================================================
# NOTIFICATION AUDIENCE
# ============================================================

@dataclass
class MembershipSnapshot:
    """Everything audience resolution may look at, fetched at send time."""
    students: List[Student] = field(default_factory=list)
    professors: List[Professor] = field(default_factory=list)
    departments: List[Department] = field(default_factory=list)
    majors: List[Major] = field(default_factory=list)
    subjects: List[Subject] = field(default_factory=list)
    users: List[UserAccount] = field(default_factory=list)

    def department(self, department_id: str) -> Optional[Department]:
        return next((d for d in self.departments if d.id == department_id), None)


def _students_of_majors(snapshot: MembershipSnapshot, major_ids: Set[str]) -> Set[UserRef]:
    return {
        UserRef(s.id, ROLE_STUDENT) for s in snapshot.students
        if s.major_id and s.major_id in major_ids
    }


def _professors_of_majors(snapshot: MembershipSnapshot, major_ids: Set[str]) -> Set[UserRef]:
    return {
        UserRef(pid, ROLE_PROFESSOR)
        for s in snapshot.subjects if s.major_id in major_ids
        for pid in s.professor_ids
    }


def _majors_of_department(snapshot: MembershipSnapshot, department_id: str) -> Set[str]:
    # Child -> parent pointer is the authoritative side
    return {m.id for m in snapshot.majors if m.department_id == department_id}


def _professors_of_department(snapshot: MembershipSnapshot, department_id: str) -> Set[UserRef]:
    department = snapshot.department(department_id)
    if department is None:
        return set()
    ids = list(department.staff)
    if department.head:
        ids.append(department.head)
    return {UserRef(pid, ROLE_PROFESSOR) for pid in ids}


def _users_with_role(snapshot: MembershipSnapshot, role: UserRole) -> Set[UserRef]:
    if role == UserRole.student:
        return {UserRef(s.id, ROLE_STUDENT) for s in snapshot.students}
    if role == UserRole.professor:
        return {UserRef(p.id, ROLE_PROFESSOR) for p in snapshot.professors}
    # Administrators and the student service share one audience
    if role in (UserRole.administrator, UserRole.student_service):
        roles = {UserRole.administrator, UserRole.student_service}
    else:
        roles = {role}
    return {UserRef(u.id, u.role.value) for u in snapshot.users if u.role in roles}


def resolve_audience(notification: Notification, snapshot: MembershipSnapshot) -> Set[UserRef]:
    """
    Who receives a notification, given current membership.

    id                     the single user
    role                   every user with that role
    department             staff + head + students of the department's majors
    department_students    students of the department's majors
    department_professors  staff + head
    major                  students of the major + professors teaching its subjects
    major_students         students of the major
    major_professors       professors teaching subjects of the major

    Raises:
        ValidationError: blank value or unknown role
    """
    value = (notification.recipient_value or "").strip()
    if not value:
        raise ValidationError("recipient_value is required", kind="notification")

    rtype = notification.recipient_type

    if rtype == RecipientType.id:
        return {UserRef(value)}

    if rtype == RecipientType.role:
        try:
            role = UserRole(value)
        except ValueError:
            valid = ", ".join(r.value for r in UserRole)
            raise ValidationError(f"Invalid role. Must be one of: {valid}", kind="notification") from None
        return _users_with_role(snapshot, role)

    if rtype in (RecipientType.department, RecipientType.department_students,
                 RecipientType.department_professors):
        audience: Set[UserRef] = set()
        if rtype != RecipientType.department_professors:
            audience |= _students_of_majors(snapshot, _majors_of_department(snapshot, value))
        if rtype != RecipientType.department_students:
            audience |= _professors_of_department(snapshot, value)
        return audience

    # major, major_students, major_professors
    audience = set()
    if rtype != RecipientType.major_professors:
        audience |= _students_of_majors(snapshot, {value})
    if rtype != RecipientType.major_students:
        audience |= _professors_of_majors(snapshot, {value})
    return audience
