"""
Orchestration Service Tests

Form submissions end to end against the in-memory store: primary save,
relation syncs, outcome aggregation.
"""
from datetime import date, datetime, timedelta

import pytest

from app.schemas.schemas import (
    DepartmentForm, ExamGradeCreate, ExamPeriodForm, ExamRegistrationCreate, ExamSessionCreate,
    MajorForm, Notification, OutcomeStatus, ProfessorForm, SubjectForm,
)


def notify(recipient_type, value):
    return Notification(title="Notice", content="Body", recipient_type=recipient_type, recipient_value=value)


# ============================================================================
# Departments & majors
# ============================================================================

class TestDepartmentsAndMajors:

    def test_create_department_claims_majors(self, university, service):
        outcome = service.save_department(None, DepartmentForm(name="Physics", major_ids=["M3"]))

        assert outcome.status == OutcomeStatus.success
        new_id = outcome.entity_id
        assert outcome.entity["major_ids"] == ["M3"]
        assert university.doc("major", "M3")["department_id"] == new_id
        assert university.doc("department", "D2")["major_ids"] == []

    def test_primary_update_never_writes_relation_fields(self, university, service):
        outcome = service.save_department("D1", DepartmentForm(name="CS", staff=["P1", "P2", "P3"]))

        assert outcome.status == OutcomeStatus.success
        assert university.writes[0] == ("update", "department", "D1", {"name": "CS"})
        assert university.doc("department", "D1")["staff"] == ["P1", "P2", "P3"]

    def test_unknown_head_is_rejected(self, university, service):
        outcome = service.save_department("D1", DepartmentForm(head="PX"))

        assert outcome.status == OutcomeStatus.failure
        assert outcome.error_type == "ValidationError"
        assert university.writes == []

    def test_create_department_requires_name(self, store, service):
        outcome = service.save_department(None, DepartmentForm())
        assert outcome.error_type == "ValidationError"

    def test_major_moves_between_departments(self, university, service):
        outcome = service.save_major("M2", MajorForm(department_id="D2"))

        assert outcome.status == OutcomeStatus.success
        assert university.doc("department", "D1")["major_ids"] == ["M1"]
        assert university.doc("department", "D2")["major_ids"] == ["M3", "M2"]
        assert university.doc("major", "M2")["department_id"] == "D2"

    def test_major_with_missing_department_is_not_saved(self, university, service):
        outcome = service.save_major("M2", MajorForm(name="Renamed", department_id="NOPE"))

        assert outcome.status == OutcomeStatus.failure
        assert university.doc("major", "M2")["name"] == "Information Systems"

    def test_delete_major_detaches_everything(self, university, service):
        outcome = service.delete_major("M1")

        assert outcome.status == OutcomeStatus.success
        assert "M1" not in university.data["major"]
        assert university.doc("department", "D1")["major_ids"] == ["M2"]
        assert university.doc("subject", "S1")["major_id"] is None
        assert university.doc("subject", "S2")["major_id"] is None


# ============================================================================
# Subjects
# ============================================================================

class TestSubjects:

    def test_create_subject_joins_major(self, university, service):
        outcome = service.save_subject(None, SubjectForm(
            name="Compilers", major_id="M1", year=3, professor_ids=["P1"]
        ))

        assert outcome.status == OutcomeStatus.success
        new_id = outcome.entity_id
        assert outcome.entity["major_id"] == "M1"
        assert outcome.entity["professor_ids"] == ["P1"]
        assert outcome.entity["year"] == 3
        assert university.doc("major", "M1")["subject_ids"] == ["S1", "S2", new_id]

    def test_create_subject_requires_major(self, university, service):
        outcome = service.save_subject(None, SubjectForm(name="Orphan"))

        assert outcome.status == OutcomeStatus.failure
        assert university.writes == []

    def test_clearing_major_is_rejected(self, university, service):
        outcome = service.save_subject("S1", SubjectForm(major_id=""))
        assert outcome.error_type == "ValidationError"

    def test_subject_moves_between_majors(self, university, service):
        service.save_subject("S3", SubjectForm(major_id="M1"))

        assert university.doc("major", "M2")["subject_ids"] == []
        assert university.doc("major", "M1")["subject_ids"] == ["S1", "S2", "S3"]
        assert university.doc("subject", "S3")["major_id"] == "M1"

    def test_partial_failure_keeps_primary_save(self, university, service):
        outcome = service.save_subject("S1", SubjectForm(name="Programming I", professor_ids=["P1", "PX"]))

        assert outcome.status == OutcomeStatus.partial_failure
        assert [f.counter_id for f in outcome.failed_edges] == ["PX"]
        assert any("Submit again" in w for w in outcome.warnings)
        assert university.doc("subject", "S1")["name"] == "Programming I"
        assert university.doc("subject", "S1")["professor_ids"] == ["P1"]

    def test_unavailable_primary_is_a_failure(self, university, service):
        university.fail("subject", "S1", "update")

        outcome = service.save_subject("S1", SubjectForm(name="X", professor_ids=[]))

        assert outcome.status == OutcomeStatus.failure
        assert outcome.error_type == "StoreUnavailable"
        assert university.doc("subject", "S1")["professor_ids"] == ["P1"]

    def test_delete_subject(self, university, service):
        outcome = service.delete_subject("S3")

        assert outcome.status == OutcomeStatus.success
        assert university.doc("major", "M2")["subject_ids"] == []
        assert "S3" not in university.data["subject"]

    def test_delete_missing_subject(self, university, service):
        outcome = service.delete_subject("NOPE")
        assert outcome.error_type == "NotFound"


# ============================================================================
# Professors
# ============================================================================

class TestProfessors:

    def test_create_professor_with_memberships(self, university, service):
        outcome = service.save_professor(None, ProfessorForm(
            first_name="Nina", last_name="Ilic", department_ids=["D2"], subject_ids=["S3"]
        ))

        assert outcome.status == OutcomeStatus.success
        new_id = outcome.entity_id
        assert university.doc("department", "D2")["staff"] == [new_id]
        assert university.doc("subject", "S3")["professor_ids"] == ["P2", new_id]
        assert "department_ids" not in university.doc("professor", new_id)

    def test_delete_professor_removes_every_membership(self, university, service):
        outcome = service.delete_professor("P1")

        assert outcome.status == OutcomeStatus.success
        assert university.doc("department", "D1")["staff"] == ["P2"]
        assert university.doc("department", "D1")["head"] is None
        assert university.doc("subject", "S1")["professor_ids"] == []
        assert university.doc("subject", "S2")["professor_ids"] == []
        assert "P1" not in university.data["professor"]


# ============================================================================
# Students
# ============================================================================

class TestYearAdvancement:

    def test_cannot_advance_without_passed_subjects(self, university, service):
        assert service.can_advance_year("ST1") is False

        outcome = service.advance_year("ST1")

        assert outcome.status == OutcomeStatus.failure
        assert outcome.error_type == "ValidationError"
        assert university.doc("student", "ST1")["year"] == 1

    def test_advance_after_passing_every_subject(self, university, service):
        university.seed("exam_grade", "G1", student_id="ST1", exam_session_id="E1",
                        subject_id="S1", grade=7, passed=True)

        assert service.can_advance_year("ST1") is True
        outcome = service.advance_year("ST1")

        assert outcome.status == OutcomeStatus.success
        assert university.doc("student", "ST1")["year"] == 2

    def test_grade_subject_resolved_through_session(self, university, service):
        university.seed("exam_session", "E1", subject_id="S1", professor_id="P1",
                        exam_date="2025-01-15T09:00:00")
        university.seed("exam_grade", "G1", student_id="ST1", exam_session_id="E1", grade=6)

        assert service.can_advance_year("ST1") is True


# ============================================================================
# Exams
# ============================================================================

@pytest.fixture
def january(university):
    university.seed("exam_period", "JAN", name="January", start_date="2025-01-10",
                    end_date="2025-01-24", semester=1, is_active=True)
    university.seed("exam_session", "E1", subject_id="S1", professor_id="P1",
                    exam_date="2025-01-15T09:00:00", location="A1", max_students=30)
    university.seed("exam_registration", "R1", student_id="ST1", exam_session_id="E1", status="registered")
    return university


class TestExams:

    def test_session_inside_period(self, january, service):
        outcome = service.schedule_exam_session(ExamSessionCreate(
            subject_id="S1", professor_id="P1", exam_date=datetime(2025, 1, 15, 9), location="A1", max_students=30
        ))

        assert outcome.status == OutcomeStatus.success
        assert outcome.entity["exam_period_id"] == "JAN"
        assert outcome.warnings == []

    def test_session_outside_period_only_warns(self, january, service):
        outcome = service.schedule_exam_session(ExamSessionCreate(
            subject_id="S1", professor_id="P1", exam_date=datetime(2025, 2, 15, 9), location="A1", max_students=30
        ))

        assert outcome.status == OutcomeStatus.success
        assert outcome.entity["exam_period_id"] is None
        assert "outside every active exam period" in outcome.warnings[0]

    def test_session_requires_teaching_professor(self, january, service):
        outcome = service.schedule_exam_session(ExamSessionCreate(
            subject_id="S1", professor_id="P2", exam_date=datetime(2025, 1, 15, 9), location="A1", max_students=30
        ))

        assert outcome.status == OutcomeStatus.failure
        assert "does not teach" in outcome.error

    def test_passing_grade_notifies_student(self, january, service):
        outcome = service.record_exam_grade(ExamGradeCreate(
            student_id="ST1", exam_session_id="E1", grade=8, graded_by="P1"
        ))

        assert outcome.status == OutcomeStatus.success
        assert outcome.entity["passed"] is True
        assert outcome.entity["subject_id"] == "S1"
        [sent] = january.data["notification"].values()
        assert sent["recipient_id"] == "ST1"
        assert sent["seen"] is False

    def test_failing_grade(self, january, service):
        outcome = service.record_exam_grade(ExamGradeCreate(
            student_id="ST1", exam_session_id="E1", grade=5, graded_by="P1"
        ))

        assert outcome.entity["passed"] is False
        assert not january.data["notification"]

    def test_grader_must_teach_subject(self, january, service):
        outcome = service.record_exam_grade(ExamGradeCreate(
            student_id="ST1", exam_session_id="E1", grade=9, graded_by="P2"
        ))
        assert outcome.error_type == "ValidationError"

    def test_exam_period_dates_are_validated(self, january, service):
        outcome = service.save_exam_period(None, ExamPeriodForm(
            name="June", start_date=date(2025, 6, 20), end_date=date(2025, 6, 1), semester=2
        ))
        assert outcome.error_type == "ValidationError"

        outcome = service.save_exam_period("JAN", ExamPeriodForm(end_date=date(2025, 1, 5)))
        assert outcome.error_type == "ValidationError"
        assert january.doc("exam_period", "JAN")["end_date"] == "2025-01-24"

    def test_create_exam_period(self, january, service):
        outcome = service.save_exam_period(None, ExamPeriodForm(
            name="June", start_date=date(2025, 6, 1), end_date=date(2025, 6, 20), semester=2, is_active=True
        ))

        assert outcome.status == OutcomeStatus.success
        assert service.is_within_active_period(date(2025, 6, 20)) is True
        assert service.is_within_active_period(date(2025, 3, 1)) is False

    def test_exam_period_without_semester(self, january, service):
        outcome = service.save_exam_period(None, ExamPeriodForm(
            name="Retake", start_date=date(2025, 9, 1), end_date=date(2025, 9, 10), is_active=True
        ))

        assert outcome.status == OutcomeStatus.success
        assert "semester" not in january.doc("exam_period", outcome.entity_id)

    def test_major_scope_can_be_cleared(self, january, service):
        january.doc("exam_period", "JAN")["major_id"] = "M1"

        outcome = service.save_exam_period("JAN", ExamPeriodForm(major_id=None))

        assert outcome.status == OutcomeStatus.success
        assert january.doc("exam_period", "JAN")["major_id"] is None
        assert service.is_within_active_period(date(2025, 1, 15), "M2") is True

    def test_required_period_fields_ignore_null(self, january, service):
        outcome = service.save_exam_period("JAN", ExamPeriodForm(name=None, major_id="M1"))

        assert outcome.status == OutcomeStatus.success
        assert january.doc("exam_period", "JAN")["name"] == "January"
        assert january.doc("exam_period", "JAN")["major_id"] == "M1"

    def test_grade_timestamp_is_timezone_aware(self, january, service):
        outcome = service.record_exam_grade(ExamGradeCreate(
            student_id="ST1", exam_session_id="E1", grade=8, graded_by="P1"
        ))

        assert datetime.fromisoformat(outcome.entity["graded_at"]).utcoffset() == timedelta(0)
        [sent] = january.data["notification"].values()
        assert datetime.fromisoformat(sent["created_at"]).utcoffset() == timedelta(0)

    def test_grading_requires_registration(self, january, service):
        outcome = service.record_exam_grade(ExamGradeCreate(
            student_id="ST2", exam_session_id="E1", grade=8, graded_by="P1"
        ))

        assert outcome.status == OutcomeStatus.failure
        assert outcome.error_type == "ValidationError"
        assert "not registered" in outcome.error
        assert not january.data["exam_grade"]

    def test_grading_completes_the_session(self, january, service):
        service.record_exam_grade(ExamGradeCreate(
            student_id="ST1", exam_session_id="E1", grade=6, graded_by="P1"
        ))

        assert january.doc("exam_session", "E1")["status"] == "completed"

    def test_session_not_closed_is_a_warning(self, january, service):
        january.fail("exam_session", "E1", "update")

        outcome = service.record_exam_grade(ExamGradeCreate(
            student_id="ST1", exam_session_id="E1", grade=5, graded_by="P1"
        ))

        assert outcome.status == OutcomeStatus.success
        assert "not closed" in outcome.warnings[0]


class TestExamRegistrations:
    """Registration gates grading and is frozen once the session is completed."""

    def test_register(self, january, service):
        outcome = service.register_for_exam(ExamRegistrationCreate(student_id="ST2", exam_session_id="E1"))

        assert outcome.status == OutcomeStatus.success
        assert outcome.entity["student_id"] == "ST2"
        assert outcome.entity["status"] == "registered"
        assert datetime.fromisoformat(outcome.entity["registered_at"]).utcoffset() == timedelta(0)

    def test_duplicate_registration_conflicts(self, january, service):
        outcome = service.register_for_exam(ExamRegistrationCreate(student_id="ST1", exam_session_id="E1"))

        assert outcome.status == OutcomeStatus.failure
        assert outcome.error_type == "Conflict"
        assert len(january.data["exam_registration"]) == 1

    @pytest.mark.parametrize("student_id,session_id", [("NOPE", "E1"), ("ST2", "NOPE")])
    def test_unknown_student_or_session(self, january, service, student_id, session_id):
        outcome = service.register_for_exam(
            ExamRegistrationCreate(student_id=student_id, exam_session_id=session_id)
        )
        assert outcome.error_type == "NotFound"

    def test_completed_session_rejects_registration(self, january, service):
        january.doc("exam_session", "E1")["status"] = "Completed"

        outcome = service.register_for_exam(ExamRegistrationCreate(student_id="ST2", exam_session_id="E1"))

        assert outcome.error_type == "ValidationError"
        assert "completed" in outcome.error

    def test_deregister(self, january, service):
        outcome = service.deregister_from_exam("ST1", "E1")

        assert outcome.status == OutcomeStatus.success
        assert outcome.entity_id == "R1"
        assert not january.data["exam_registration"]

    def test_deregister_when_not_registered(self, january, service):
        outcome = service.deregister_from_exam("ST2", "E1")
        assert outcome.error_type == "NotFound"

    def test_deregister_after_grading(self, january, service):
        service.record_exam_grade(ExamGradeCreate(
            student_id="ST1", exam_session_id="E1", grade=9, graded_by="P1"
        ))

        outcome = service.deregister_from_exam("ST1", "E1")

        assert outcome.error_type == "ValidationError"
        assert "R1" in january.data["exam_registration"]


# ============================================================================
# Notifications
# ============================================================================

class TestNotifications:

    def test_send_to_department_students(self, university, service):
        outcome = service.send_notification(notify("department_students", "D1"))

        assert outcome.status == OutcomeStatus.success
        delivered = sorted(n["recipient_id"] for n in university.data["notification"].values())
        assert delivered == ["ST1", "ST2", "ST3"]
        assert all(n["seen"] is False for n in university.data["notification"].values())

    def test_failed_delivery_is_partial(self, university, service):
        university.fail("notification", None, "create", times=3)

        outcome = service.send_notification(notify("department_students", "D1"))

        assert outcome.status == OutcomeStatus.partial_failure
        assert outcome.syncs[0].failed_ids == ["ST1"]
        assert outcome.syncs[0].applied_ids == ["ST2", "ST3"]

    def test_empty_audience_warns(self, university, service):
        outcome = service.send_notification(notify("major_students", "M9"))

        assert outcome.status == OutcomeStatus.success
        assert outcome.warnings == ["Notification has no recipients"]

    def test_unknown_department(self, university, service):
        outcome = service.send_notification(notify("department", "NOPE"))
        assert outcome.error_type == "NotFound"

    def test_audience_reflects_current_membership(self, university, service):
        assert [r.user_id for r in service.resolve_audience(notify("major_professors", "M2"))] == ["P2"]

        service.save_subject("S3", SubjectForm(professor_ids=["P3"]))

        assert [r.user_id for r in service.resolve_audience(notify("major_professors", "M2"))] == ["P3"]
