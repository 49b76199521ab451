"""
Orchestration Service

PURPOSE:
Turn one administrative form submission into a consistent store state:

1. Save the primary record (create or update)
2. Reconcile every relation the form touched
3. Aggregate everything into one SubmissionOutcome

OUTCOMES:
- success          primary saved, every relation synced
- partial_failure  primary saved, some edges failed (listed per sync);
                   re-submitting the same form retries only those edges
- failure          the primary record could not be saved; nothing changed

Step 1 is never rolled back when step 2 fails. The store has no
cross-document transactions, so "saved but not fully synced" is an
accepted state that we surface instead of hiding.

Relation fields (major_ids, staff, subject_ids, professor_ids,
department_ids, major_id, department_id) are never written by the
primary save. The LinkReconciler is their only writer.
"""

import logging
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from app.core.errors import Conflict, NotFound, StoreError, ValidationError
from app.core.retry import call_with_retry
from app.schemas.schemas import (
    Department,
    DepartmentForm,
    EdgeFailure,
    EdgeOp,
    ExamGrade,
    ExamGradeCreate,
    ExamPeriod,
    ExamPeriodForm,
    ExamRegistrationCreate,
    ExamSession,
    ExamSessionCreate,
    ExamSessionStatus,
    Major,
    MajorForm,
    Notification,
    OutcomeStatus,
    Professor,
    ProfessorForm,
    ReconcileResult,
    RecipientType,
    Student,
    Subject,
    SubjectForm,
    SubmissionOutcome,
    SyncEdge,
    UserAccount,
    UserRef,
    UserRole,
)
from app.services import eligibility
from app.services.link_reconciler import LinkReconciler, get_link_reconciler
from app.services.store import EntityStore, get_entity_store

logger = logging.getLogger(__name__)

REQUIRED_PERIOD_FIELDS = ("name", "start_date", "end_date", "is_active")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class OrchestrationService:
    """
    Façade used by routes, services and CLIs.

    Args:
        store: entity store adapter
        reconciler: link reconciler (built on the same store by default)
    """

    def __init__(self, store: Optional[EntityStore] = None,
                 reconciler: Optional[LinkReconciler] = None):
        self.store = store or get_entity_store()
        self.reconciler = reconciler or (
            get_link_reconciler() if store is None else LinkReconciler(store)
        )

    def _call(self, func: Callable):
        return call_with_retry(func, sleep=self.reconciler.sleep)

    # ============================================================
    # OUTCOME HELPERS
    # ============================================================

    def _save_primary(self, kind: str, entity_id: Optional[str], fields: Dict[str, Any]) -> Dict[str, Any]:
        if entity_id is None:
            return self._call(lambda: self.store.create(kind, fields))
        if not fields:
            return self._call(lambda: self.store.get(kind, entity_id))
        return self._call(lambda: self.store.update(kind, entity_id, fields))

    def _sync(self, syncs: List[ReconcileResult], kind: str, entity_id: str,
              relation: str, desired_ids) -> None:
        """reconcile(), with every store error degraded into a failed sync."""
        try:
            syncs.append(self.reconciler.reconcile(kind, entity_id, relation, desired_ids))
        except StoreError as e:
            logger.warning("Could not reconcile %s.%s on %s: %s", kind, relation, entity_id, e)
            syncs.append(ReconcileResult(
                relation=f"{kind}.{relation}",
                owner_id=entity_id,
                owner_synced=False,
                owner_error=f"{type(e).__name__}: {e}",
            ))

    def _move_child(self, syncs: List[ReconcileResult], parent_kind: str, relation: str,
                    child_id: str, old_parent: Optional[str], new_parent: Optional[str]) -> None:
        """
        Re-parent a child (subject between majors, major between
        departments) through the parent's relation, so the parent list
        and the child pointer move together.
        """
        if old_parent == new_parent:
            return
        for parent_id, keep in ((old_parent, False), (new_parent, True)):
            if not parent_id:
                continue
            try:
                members = self.reconciler.members(parent_kind, parent_id, relation)
            except StoreError as e:
                if isinstance(e, NotFound) and not keep:
                    # A dangling old pointer: nothing to detach from
                    continue
                syncs.append(ReconcileResult(
                    relation=f"{parent_kind}.{relation}",
                    owner_id=parent_id,
                    owner_synced=False,
                    owner_error=f"{type(e).__name__}: {e}",
                ))
                continue
            desired = members + [child_id] if keep else [m for m in members if m != child_id]
            self._sync(syncs, parent_kind, parent_id, relation, desired)

    def _require(self, kind: str, entity_id: str, label: str) -> Dict[str, Any]:
        """Fetch a referenced record; a missing reference is a validation error."""
        try:
            return self._call(lambda: self.store.get(kind, entity_id))
        except NotFound:
            raise ValidationError(f"{label} {entity_id} does not exist", kind=kind, entity_id=entity_id)

    def _refresh(self, kind: str, entity_id: str, fallback: Dict[str, Any]) -> Dict[str, Any]:
        try:
            return self._call(lambda: self.store.get(kind, entity_id))
        except StoreError:
            return fallback

    @staticmethod
    def _failure(kind: str, entity_id: Optional[str], error: StoreError) -> SubmissionOutcome:
        logger.warning("%s %s not saved: %s", kind, entity_id or "(new)", error)
        return SubmissionOutcome(
            status=OutcomeStatus.failure,
            kind=kind,
            entity_id=entity_id,
            error=str(error),
            error_type=type(error).__name__,
        )

    @staticmethod
    def _outcome(kind: str, entity: Optional[Dict[str, Any]], syncs: List[ReconcileResult],
                 warnings: Optional[List[str]] = None, entity_id: Optional[str] = None) -> SubmissionOutcome:
        warnings = list(warnings or [])
        broken = [s for s in syncs if not s.ok]
        status = OutcomeStatus.success
        if broken:
            status = OutcomeStatus.partial_failure
            failed_edges = sum(len(s.failed) for s in broken)
            warnings.append(
                f"Saved but not fully synced: {failed_edges} edge(s) failed"
                f" across {len(broken)} relation(s). Submit again to retry."
            )
            logger.warning("%s %s saved with partial sync failure", kind, entity_id)
        return SubmissionOutcome(
            status=status,
            kind=kind,
            entity_id=entity_id or (entity or {}).get("id"),
            entity=entity,
            syncs=syncs,
            warnings=warnings,
        )

    # ============================================================
    # DEPARTMENTS
    # ============================================================

    def save_department(self, department_id: Optional[str], form: DepartmentForm) -> SubmissionOutcome:
        fields = form.model_dump(exclude_unset=True, exclude={"major_ids", "staff"}, mode="json")
        try:
            if department_id is None:
                if not fields.get("name"):
                    raise ValidationError("Department name is required", kind="department")
                fields = {"head": None, **fields, "major_ids": [], "staff": []}
            if fields.get("head"):
                self._require("professor", fields["head"], "Head professor")
            doc = self._save_primary("department", department_id, fields)
        except StoreError as e:
            return self._failure("department", department_id, e)

        entity_id = doc["id"]
        syncs: List[ReconcileResult] = []
        if form.major_ids is not None:
            self._sync(syncs, "department", entity_id, "major_ids", form.major_ids)
        if form.staff is not None:
            self._sync(syncs, "department", entity_id, "staff", form.staff)
        return self._outcome("department", self._refresh("department", entity_id, doc), syncs)

    # ============================================================
    # MAJORS
    # ============================================================

    def save_major(self, major_id: Optional[str], form: MajorForm) -> SubmissionOutcome:
        fields = form.model_dump(exclude_unset=True, exclude={"department_id", "subject_ids"}, mode="json")
        try:
            current_department = None
            if major_id is None:
                if not fields.get("name"):
                    raise ValidationError("Major name is required", kind="major")
                fields = {**fields, "department_id": None, "subject_ids": []}
            else:
                current_department = Major(**self._call(lambda: self.store.get("major", major_id))).department_id
            if form.department_id:
                self._require("department", form.department_id, "Department")
            doc = self._save_primary("major", major_id, fields)
        except StoreError as e:
            return self._failure("major", major_id, e)

        entity_id = doc["id"]
        syncs: List[ReconcileResult] = []
        if "department_id" in form.model_fields_set:
            self._move_child(syncs, "department", "major_ids", entity_id,
                             current_department, form.department_id or None)
        if form.subject_ids is not None:
            self._sync(syncs, "major", entity_id, "subject_ids", form.subject_ids)
        return self._outcome("major", self._refresh("major", entity_id, doc), syncs)

    def delete_major(self, major_id: str) -> SubmissionOutcome:
        try:
            major = Major(**self._call(lambda: self.store.get("major", major_id)))
        except StoreError as e:
            return self._failure("major", major_id, e)

        syncs: List[ReconcileResult] = []
        self._sync(syncs, "major", major_id, "subject_ids", [])
        self._move_child(syncs, "department", "major_ids", major_id, major.department_id, None)
        try:
            self._call(lambda: self.store.delete("major", major_id))
        except StoreError as e:
            return self._failure("major", major_id, e)
        return self._outcome("major", None, syncs, entity_id=major_id)

    # ============================================================
    # SUBJECTS
    # ============================================================

    def save_subject(self, subject_id: Optional[str], form: SubjectForm) -> SubmissionOutcome:
        fields = form.model_dump(exclude_unset=True, exclude={"major_id", "professor_ids"}, mode="json")
        touches_major = "major_id" in form.model_fields_set
        try:
            current_major = None
            if subject_id is None:
                if not fields.get("name"):
                    raise ValidationError("Subject name is required", kind="subject")
                if not form.major_id:
                    raise ValidationError("Subject must belong to a major", kind="subject")
                fields = {"year": 1, **fields, "major_id": None, "professor_ids": []}
            else:
                current_major = Subject(**self._call(lambda: self.store.get("subject", subject_id))).major_id
                if touches_major and not form.major_id:
                    raise ValidationError("Subject must belong to a major", kind="subject", entity_id=subject_id)
            if form.major_id:
                self._require("major", form.major_id, "Major")
            doc = self._save_primary("subject", subject_id, fields)
        except StoreError as e:
            return self._failure("subject", subject_id, e)

        entity_id = doc["id"]
        syncs: List[ReconcileResult] = []
        if form.major_id:
            self._move_child(syncs, "major", "subject_ids", entity_id, current_major, form.major_id)
        if form.professor_ids is not None:
            self._sync(syncs, "subject", entity_id, "professor_ids", form.professor_ids)
        return self._outcome("subject", self._refresh("subject", entity_id, doc), syncs)

    def delete_subject(self, subject_id: str) -> SubmissionOutcome:
        try:
            subject = Subject(**self._call(lambda: self.store.get("subject", subject_id)))
        except StoreError as e:
            return self._failure("subject", subject_id, e)

        syncs: List[ReconcileResult] = []
        # Professors see subjects through professor_ids, which goes with the record
        self._move_child(syncs, "major", "subject_ids", subject_id, subject.major_id, None)
        try:
            self._call(lambda: self.store.delete("subject", subject_id))
        except StoreError as e:
            return self._failure("subject", subject_id, e)
        return self._outcome("subject", None, syncs, entity_id=subject_id)

    # ============================================================
    # PROFESSORS
    # ============================================================

    def save_professor(self, professor_id: Optional[str], form: ProfessorForm) -> SubmissionOutcome:
        fields = form.model_dump(exclude_unset=True, exclude={"department_ids", "subject_ids"}, mode="json")
        try:
            doc = self._save_primary("professor", professor_id, fields)
        except StoreError as e:
            return self._failure("professor", professor_id, e)

        entity_id = doc["id"]
        syncs: List[ReconcileResult] = []
        if form.department_ids is not None:
            self._sync(syncs, "professor", entity_id, "department_ids", form.department_ids)
        if form.subject_ids is not None:
            self._sync(syncs, "professor", entity_id, "subject_ids", form.subject_ids)
        return self._outcome("professor", doc, syncs)

    def delete_professor(self, professor_id: str) -> SubmissionOutcome:
        try:
            self._call(lambda: self.store.get("professor", professor_id))
        except StoreError as e:
            return self._failure("professor", professor_id, e)

        syncs: List[ReconcileResult] = []
        self._sync(syncs, "professor", professor_id, "department_ids", [])
        self._sync(syncs, "professor", professor_id, "subject_ids", [])
        syncs.append(self._clear_department_head(professor_id))
        try:
            self._call(lambda: self.store.delete("professor", professor_id))
        except StoreError as e:
            return self._failure("professor", professor_id, e)
        return self._outcome("professor", None, syncs, entity_id=professor_id)

    def _clear_department_head(self, professor_id: str) -> ReconcileResult:
        result = ReconcileResult(relation="department.head", owner_id=professor_id)
        try:
            headed = self._call(lambda: self.store.list("department", {"head": professor_id}))
        except StoreError as e:
            result.owner_synced = False
            result.owner_error = f"{type(e).__name__}: {e}"
            return result
        for dept in headed:
            edge = SyncEdge(relation=result.relation, owner_id=dept["id"],
                            counter_id=professor_id, op=EdgeOp.remove)
            try:
                self._call(lambda: self.store.update("department", dept["id"], {"head": None}))
                result.applied.append(edge)
            except StoreError as e:
                result.failed.append(EdgeFailure(**edge.model_dump(), error=str(e),
                                                 error_type=type(e).__name__))
        return result

    # ============================================================
    # STUDENTS: YEAR ADVANCEMENT
    # ============================================================

    def _passed_subject_ids(self, student_id: str) -> set:
        grades = [ExamGrade(**g) for g in self._call(
            lambda: self.store.list("exam_grade", {"student_id": student_id})
        )]
        # Older grades only carry the session; resolve their subject through it
        for grade in grades:
            if grade.subject_id is None:
                try:
                    session = self._call(lambda: self.store.get("exam_session", grade.exam_session_id))
                    grade.subject_id = session.get("subject_id")
                except NotFound:
                    continue
        return eligibility.passed_subject_ids(grades)

    def year_eligibility(self, student_id: str) -> Tuple[Student, bool]:
        """
        The student as stored, and whether they may move to the next year.

        Raises:
            NotFound: unknown student
            StoreUnavailable: snapshot could not be fetched
        """
        student = Student(**self._call(lambda: self.store.get("student", student_id)))
        if not student.major_id or student.year is None:
            return student, False
        subjects = [Subject(**s) for s in self._call(
            lambda: self.store.list("subject", {"major_id": student.major_id})
        )]
        allowed = eligibility.can_advance_year(student, subjects, self._passed_subject_ids(student_id))
        return student, allowed

    def can_advance_year(self, student_id: str) -> bool:
        return self.year_eligibility(student_id)[1]

    def advance_year(self, student_id: str) -> SubmissionOutcome:
        try:
            student, allowed = self.year_eligibility(student_id)
            if not allowed:
                raise ValidationError("Student has not passed all subjects for current year",
                                      kind="student", entity_id=student_id)
            doc = self._call(lambda: self.store.update("student", student_id, {"year": student.year + 1}))
        except StoreError as e:
            return self._failure("student", student_id, e)
        logger.info("Student %s advanced to year %s", student_id, doc.get("year"))
        return self._outcome("student", doc, [])

    # ============================================================
    # EXAMS
    # ============================================================

    def _periods(self) -> List[ExamPeriod]:
        return [ExamPeriod(**p) for p in self._call(lambda: self.store.list("exam_period"))]

    def is_within_active_period(self, exam_date: Union[date, datetime], major_id: Optional[str] = None) -> bool:
        return eligibility.is_within_active_period(exam_date, self._periods(), major_id)

    def save_exam_period(self, period_id: Optional[str], form: ExamPeriodForm) -> SubmissionOutcome:
        # major_id, academic_year and semester may be cleared with null; the rest may not
        fields = {
            k: v for k, v in form.model_dump(exclude_unset=True, mode="json").items()
            if v is not None or k not in REQUIRED_PERIOD_FIELDS
        }
        try:
            existing: Dict[str, Any] = {"id": period_id or "new"}
            if period_id is not None:
                existing = self._call(lambda: self.store.get("exam_period", period_id))
            merged = {**existing, **fields}
            for required in ("start_date", "end_date"):
                if merged.get(required) is None:
                    raise ValidationError(f"{required} is required", kind="exam_period")
            eligibility.validate_exam_period(ExamPeriod(**merged))
            doc = self._save_primary("exam_period", period_id, fields)
        except StoreError as e:
            return self._failure("exam_period", period_id, e)
        return self._outcome("exam_period", doc, [])

    def _require_teaches(self, professor_id: str, subject: Subject) -> None:
        if professor_id not in subject.professor_ids:
            raise ValidationError(
                f"Professor {professor_id} does not teach subject {subject.id}",
                kind="subject", entity_id=subject.id,
            )

    def schedule_exam_session(self, body: ExamSessionCreate) -> SubmissionOutcome:
        warnings: List[str] = []
        try:
            subject = Subject(**self._require("subject", body.subject_id, "Subject"))
            self._require("professor", body.professor_id, "Professor")
            self._require_teaches(body.professor_id, subject)

            # Advisory only: warn, never block
            periods = self._periods()
            period = eligibility.find_containing_period(body.exam_date, periods, subject.major_id)
            if periods and period is None:
                warnings.append(
                    f"Exam date {body.exam_date.date().isoformat()} is outside every active exam period"
                )

            fields = body.model_dump(mode="json")
            fields["exam_period_id"] = period.id if period else None
            fields["status"] = "scheduled"
            doc = self._save_primary("exam_session", None, fields)
        except StoreError as e:
            return self._failure("exam_session", None, e)
        return self._outcome("exam_session", doc, [], warnings)

    def record_exam_grade(self, body: ExamGradeCreate) -> SubmissionOutcome:
        warnings: List[str] = []
        try:
            session = ExamSession(**self._require("exam_session", body.exam_session_id, "Exam session"))
            subject = Subject(**self._require("subject", session.subject_id, "Subject"))
            self._require("student", body.student_id, "Student")
            if body.graded_by != session.professor_id:
                self._require_teaches(body.graded_by, subject)
            if not self._registrations(body.student_id, session.id):
                raise ValidationError(
                    f"Student {body.student_id} is not registered for exam session {session.id}",
                    kind="exam_grade",
                )

            fields = body.model_dump(mode="json")
            fields["subject_id"] = subject.id
            fields["passed"] = eligibility.is_passing_grade(body.grade)
            fields["graded_at"] = _now()
            doc = self._save_primary("exam_grade", None, fields)
        except StoreError as e:
            return self._failure("exam_grade", None, e)

        # Grading closes the session for registration changes
        if not session.is_completed:
            try:
                self._call(lambda: self.store.update(
                    "exam_session", session.id, {"status": ExamSessionStatus.completed.value}
                ))
            except StoreError as e:
                warnings.append(f"Grade saved but the exam session was not closed: {e}")

        if doc.get("passed"):
            try:
                self._deliver(Notification(
                    title=f"You have passed the {subject.name} exam",
                    content=f"You have passed the {subject.name} exam with a grade of {body.grade}."
                            + (f"\n{body.comments}" if body.comments else ""),
                    recipient_type=RecipientType.id,
                    recipient_value=body.student_id,
                ), UserRef(body.student_id, UserRole.student.value))
            except StoreError as e:
                warnings.append(f"Grade saved but the student was not notified: {e}")
        return self._outcome("exam_grade", doc, [], warnings)

    # ============================================================
    # EXAM REGISTRATIONS
    # ============================================================

    def _registrations(self, student_id: str, exam_session_id: str) -> List[Dict[str, Any]]:
        return self._call(lambda: self.store.list(
            "exam_registration", {"student_id": student_id, "exam_session_id": exam_session_id}
        ))

    def register_for_exam(self, body: ExamRegistrationCreate) -> SubmissionOutcome:
        """
        Failure outcomes:
            NotFound: unknown student or exam session
            ValidationError: the session is already completed
            Conflict: the student is already registered
        """
        try:
            self._call(lambda: self.store.get("student", body.student_id))
            session = ExamSession(**self._call(lambda: self.store.get("exam_session", body.exam_session_id)))
            if session.is_completed:
                raise ValidationError("Exam session is already completed",
                                      kind="exam_session", entity_id=session.id)
            if self._registrations(body.student_id, session.id):
                raise Conflict("Student is already registered for this exam", kind="exam_registration")
            doc = self._save_primary("exam_registration", None, {
                "student_id": body.student_id,
                "exam_session_id": session.id,
                "registered_at": _now(),
                "status": "registered",
            })
        except StoreError as e:
            return self._failure("exam_registration", None, e)
        logger.info("Student %s registered for exam session %s", body.student_id, session.id)
        return self._outcome("exam_registration", doc, [])

    def deregister_from_exam(self, student_id: str, exam_session_id: str) -> SubmissionOutcome:
        key = f"{student_id}/{exam_session_id}"
        try:
            session = ExamSession(**self._call(lambda: self.store.get("exam_session", exam_session_id)))
            if session.is_completed:
                raise ValidationError("You can't unregister from a completed exam",
                                      kind="exam_session", entity_id=exam_session_id)
            registrations = self._registrations(student_id, exam_session_id)
            if not registrations:
                raise NotFound("exam_registration", key)
            for registration in registrations:
                self._call(lambda: self.store.delete("exam_registration", registration["id"]))
        except StoreError as e:
            return self._failure("exam_registration", key, e)
        return self._outcome("exam_registration", None, [], entity_id=registrations[0]["id"])

    # ============================================================
    # NOTIFICATIONS
    # ============================================================

    def _load_snapshot(self, notification: Notification) -> eligibility.MembershipSnapshot:
        """Fetch only the membership the recipient type needs, fresh every time."""
        snapshot = eligibility.MembershipSnapshot()
        rtype, value = notification.recipient_type, notification.recipient_value.strip()
        if not value or rtype == RecipientType.id:
            return snapshot

        if rtype == RecipientType.role:
            if value == UserRole.student.value:
                snapshot.students = [Student(**d) for d in self._call(lambda: self.store.list("student"))]
            elif value == UserRole.professor.value:
                snapshot.professors = [Professor(**d) for d in self._call(lambda: self.store.list("professor"))]
            else:
                snapshot.users = [UserAccount(**d) for d in self._call(lambda: self.store.list("user"))]
            return snapshot

        if rtype.value.startswith("department"):
            snapshot.departments = [Department(**self._call(lambda: self.store.get("department", value)))]
            snapshot.majors = [Major(**d) for d in self._call(
                lambda: self.store.list("major", {"department_id": value})
            )]
            for major in snapshot.majors:
                snapshot.students.extend(Student(**d) for d in self._call(
                    lambda: self.store.list("student", {"major_id": major.id})
                ))
            return snapshot

        snapshot.students = [Student(**d) for d in self._call(
            lambda: self.store.list("student", {"major_id": value})
        )]
        snapshot.subjects = [Subject(**d) for d in self._call(
            lambda: self.store.list("subject", {"major_id": value})
        )]
        return snapshot

    def resolve_audience(self, notification: Notification) -> List[UserRef]:
        """
        Raises:
            ValidationError: bad recipient value / role
            NotFound: unknown department
        """
        audience = eligibility.resolve_audience(notification, self._load_snapshot(notification))
        return sorted(audience)

    def _deliver(self, notification: Notification, recipient: UserRef) -> Dict[str, Any]:
        body = notification.model_dump(exclude={"id"}, mode="json")
        body.update({
            "recipient_id": recipient.user_id,
            "seen": False,
            "created_at": _now(),
        })
        return self._call(lambda: self.store.create("notification", body))

    def send_notification(self, notification: Notification) -> SubmissionOutcome:
        """One delivered copy per recipient; a failed copy does not stop the rest."""
        try:
            recipients = self.resolve_audience(notification)
        except StoreError as e:
            return self._failure("notification", notification.id, e)

        owner = notification.id or f"{notification.recipient_type.value}:{notification.recipient_value}"
        delivery = ReconcileResult(relation="notification.recipient_id", owner_id=owner)
        for recipient in recipients:
            edge = SyncEdge(relation=delivery.relation, owner_id=owner,
                            counter_id=recipient.user_id, op=EdgeOp.add)
            try:
                self._deliver(notification, recipient)
                delivery.applied.append(edge)
            except StoreError as e:
                delivery.failed.append(EdgeFailure(**edge.model_dump(), error=str(e),
                                                   error_type=type(e).__name__))

        warnings = [] if recipients else ["Notification has no recipients"]
        logger.info("Notification '%s' delivered to %d/%d recipients",
                    notification.title, len(delivery.applied), len(recipients))
        return self._outcome("notification", notification.model_dump(mode="json"),
                             [delivery], warnings, entity_id=owner)


# Singleton instance
_orchestration_service: OrchestrationService = None


def get_orchestration_service() -> OrchestrationService:
    """Get or create the orchestration service (singleton pattern)"""
    global _orchestration_service
    if _orchestration_service is None:
        _orchestration_service = OrchestrationService()
    return _orchestration_service
