"""
Link Reconciler

PURPOSE:
Keep many-to-many relations consistent across independently stored
records. The caller hands over the FULL desired membership of one
relation on one owning record (e.g. every subject a major should
have). The reconciler works out what changed and rewrites each
affected counter-record, one store call at a time.

HOW IT WORKS:
1. Load the previous membership (owner's stored list, or the derived
   inverse view for relations the owner does not store)
2. toRemove = previous - desired, toAdd = desired - previous
3. Apply every removal, then every addition, to the counter-records.
   Children taken over from another parent are then removed from that
   parent's list, one write per previous parent
4. Rewrite the owner's stored list to previous - removed + added,
   counting only edges that actually made it
5. Return ReconcileResult(applied, failed)

A failed edge never aborts the run. Because the owner list only
records applied edges, calling reconcile again with the same desired
set retries exactly the edges that are still missing.

RELATIONS:
    major.subject_ids        Major.subject_ids   <-> Subject.major_id (pointer)
    department.major_ids     Department.major_ids<-> Major.department_id (pointer)
    department.staff         Department.staff        (professor side derived)
    subject.professor_ids    Subject.professor_ids   (professor side derived)
    professor.department_ids derived            <-> Department.staff (member)
    professor.subject_ids    derived            <-> Subject.professor_ids (member)
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from app.core.config import get_settings
from app.core.errors import NotFound, StoreError, ValidationError
from app.core.retry import call_with_retry
from app.schemas.schemas import EdgeFailure, EdgeOp, ReconcileResult, SyncEdge
from app.services.store import EntityStore, get_entity_store

logger = logging.getLogger(__name__)


# ============================================================
# RELATION REGISTRY
# ============================================================

MIRROR_POINTER = "pointer"  # counter holds a single parent id
MIRROR_MEMBER = "member"    # counter holds a list that contains the owner id
MIRROR_NONE = "none"        # nothing stored on the counter side


@dataclass(frozen=True)
class Relation:
    name: str
    owner_kind: str
    field: str
    counter_kind: str
    mirror: str
    counter_field: Optional[str] = None
    owner_stored: bool = True


RELATIONS: Dict[str, Relation] = {
    rel.name: rel for rel in (
        Relation("major.subject_ids", "major", "subject_ids", "subject",
                 MIRROR_POINTER, "major_id"),
        Relation("department.major_ids", "department", "major_ids", "major",
                 MIRROR_POINTER, "department_id"),
        Relation("department.staff", "department", "staff", "professor",
                 MIRROR_NONE),
        Relation("subject.professor_ids", "subject", "professor_ids", "professor",
                 MIRROR_NONE),
        Relation("professor.department_ids", "professor", "department_ids", "department",
                 MIRROR_MEMBER, "staff", owner_stored=False),
        Relation("professor.subject_ids", "professor", "subject_ids", "subject",
                 MIRROR_MEMBER, "professor_ids", owner_stored=False),
    )
}


def get_relation(entity_kind: str, relation: str) -> Relation:
    """
    Look up a relation. Accepts "major.subject_ids" or just "subject_ids".

    Raises:
        ValidationError: unknown relation or wrong owning kind
    """
    name = relation if "." in relation else f"{entity_kind}.{relation}"
    rel = RELATIONS.get(name)
    if rel is None:
        raise ValidationError(f"Unknown relation: {name}", kind=entity_kind)
    if rel.owner_kind != entity_kind:
        raise ValidationError(
            f"Relation {name} is owned by {rel.owner_kind}, not {entity_kind}",
            kind=entity_kind,
        )
    return rel


def normalize_ids(ids: Optional[Iterable[Any]]) -> List[str]:
    """De-duplicate, drop blanks, keep first-seen order."""
    seen = set()
    result = []
    for raw in ids or []:
        if raw is None:
            continue
        value = str(raw).strip()
        if not value or value in seen:
            continue
        seen.add(value)
        result.append(value)
    return result


# ============================================================
# RECONCILER
# ============================================================

# (applied edges, failed edges, previous parent to detach from) for one counter-record
EdgeReport = Tuple[List[SyncEdge], List[EdgeFailure], Optional[str]]


class LinkReconciler:
    """
    Applies desired membership sets to the store.

    Args:
        store: entity store adapter
        max_workers: 1 = sequential (default); >1 runs each phase on a
            bounded thread pool, still one report per counter-record
        sleep: backoff sleep, injectable for tests
    """

    def __init__(
        self,
        store: Optional[EntityStore] = None,
        max_workers: Optional[int] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.store = store or get_entity_store()
        self.max_workers = max(1, max_workers or get_settings().reconcile_max_workers)
        self.sleep = sleep

    def _call(self, func):
        return call_with_retry(func, sleep=self.sleep)

    # --------------------------------------------------------
    # Membership
    # --------------------------------------------------------

    def members(self, entity_kind: str, entity_id: str, relation: str) -> List[str]:
        """
        Current membership of a relation as the store sees it.

        Stored relations read the owner's list; derived relations query
        the counter kind, e.g. subjects whose professor_ids contain P.
        """
        rel = get_relation(entity_kind, relation)
        return self._load_previous(rel, entity_id)

    def _load_previous(self, rel: Relation, owner_id: str) -> List[str]:
        owner = self._call(lambda: self.store.get(rel.owner_kind, owner_id))
        if rel.owner_stored:
            return normalize_ids(owner.get(rel.field))
        docs = self._call(lambda: self.store.list(rel.counter_kind, {rel.counter_field: owner_id}))
        return normalize_ids(doc["id"] for doc in docs)

    # --------------------------------------------------------
    # reconcile
    # --------------------------------------------------------

    def reconcile(self, entity_kind: str, entity_id: str, relation: str,
                  desired_ids: Iterable[Any]) -> ReconcileResult:
        """
        Bring one relation of one owning record to the desired set.

        Raises:
            ValidationError: unknown relation
            NotFound: the owning record does not exist
            StoreUnavailable: previous membership could not be loaded
        Counter-record failures are never raised; they land in result.failed.
        """
        rel = get_relation(entity_kind, relation)
        desired = normalize_ids(desired_ids)
        previous = self._load_previous(rel, entity_id)

        desired_set = set(desired)
        previous_set = set(previous)
        to_remove = [cid for cid in previous if cid not in desired_set]
        to_add = [cid for cid in desired if cid not in previous_set]

        result = ReconcileResult(relation=rel.name, owner_id=entity_id)
        if not to_remove and not to_add:
            return result

        logger.info(
            "Reconciling %s on %s %s: +%d -%d",
            rel.name, rel.owner_kind, entity_id, len(to_add), len(to_remove),
        )

        # Removals first: a duplicate submission resolves to "added"
        self._run_phase(rel, entity_id, EdgeOp.remove, to_remove, result)
        self._run_phase(rel, entity_id, EdgeOp.add, to_add, result)

        if rel.owner_stored:
            self._write_owner(rel, entity_id, previous, result)

        for failure in result.failed:
            logger.warning(
                "Sync failed: %s %s %s -> %s %s (%s: %s)",
                rel.name, failure.op.value, entity_id, rel.counter_kind,
                failure.counter_id, failure.error_type, failure.error,
            )
        return result

    def _run_phase(self, rel: Relation, owner_id: str, op: EdgeOp,
                   counter_ids: List[str], result: ReconcileResult) -> None:
        if not counter_ids:
            return

        def apply(counter_id: str) -> EdgeReport:
            return self._apply_edge(rel, owner_id, counter_id, op)

        if self.max_workers > 1 and len(counter_ids) > 1:
            with ThreadPoolExecutor(max_workers=min(self.max_workers, len(counter_ids))) as pool:
                reports = list(pool.map(apply, counter_ids))
        else:
            reports = [apply(cid) for cid in counter_ids]

        # old owner id -> children taken from it, in first-seen order
        detaches: Dict[str, List[str]] = {}
        for counter_id, (applied, failed, old_owner_id) in zip(counter_ids, reports):
            result.applied.extend(applied)
            result.failed.extend(failed)
            if old_owner_id is not None:
                detaches.setdefault(old_owner_id, []).append(counter_id)

        # After the pool: one read-modify-write per old owner, never two at once
        for old_owner_id, children in detaches.items():
            self._detach_children(rel, old_owner_id, children, result)

    def _apply_edge(self, rel: Relation, owner_id: str, counter_id: str, op: EdgeOp) -> EdgeReport:
        edge = SyncEdge(relation=rel.name, owner_id=owner_id, counter_id=counter_id, op=op)
        try:
            if op == EdgeOp.remove:
                self._remove_edge(rel, owner_id, counter_id)
                return [edge], [], None
            old_owner_id = self._add_edge(rel, owner_id, counter_id)
        except StoreError as e:
            return [], [self._failure(edge, e)], None
        return [edge], [], old_owner_id

    def _detach_children(self, rel: Relation, old_owner_id: str, children: List[str],
                         result: ReconcileResult) -> None:
        edges = [
            SyncEdge(relation=rel.name, owner_id=old_owner_id, counter_id=cid, op=EdgeOp.detach)
            for cid in children
        ]
        try:
            self._detach_from_old_owner(rel, old_owner_id, children)
        except StoreError as e:
            result.failed.extend(self._failure(edge, e) for edge in edges)
            return
        result.applied.extend(edges)

    @staticmethod
    def _failure(edge: SyncEdge, error: StoreError) -> EdgeFailure:
        return EdgeFailure(**edge.model_dump(), error=str(error), error_type=type(error).__name__)

    def _remove_edge(self, rel: Relation, owner_id: str, counter_id: str) -> None:
        if rel.mirror == MIRROR_NONE:
            return
        try:
            counter = self._call(lambda: self.store.get(rel.counter_kind, counter_id))
        except NotFound:
            # Nothing left to unlink
            logger.info("%s %s already gone, removal is a no-op", rel.counter_kind, counter_id)
            return

        if rel.mirror == MIRROR_POINTER:
            if counter.get(rel.counter_field) != owner_id:
                return
            self._call(lambda: self.store.update(rel.counter_kind, counter_id, {rel.counter_field: None}))
        else:
            current = normalize_ids(counter.get(rel.counter_field))
            if owner_id not in current:
                return
            remaining = [cid for cid in current if cid != owner_id]
            self._call(lambda: self.store.update(rel.counter_kind, counter_id, {rel.counter_field: remaining}))

    def _add_edge(self, rel: Relation, owner_id: str, counter_id: str) -> Optional[str]:
        """Link counter_id to owner_id. Returns a previous parent id to detach from, if any."""
        counter = self._call(lambda: self.store.get(rel.counter_kind, counter_id))
        if rel.mirror == MIRROR_NONE:
            return None

        if rel.mirror == MIRROR_POINTER:
            old_owner_id = counter.get(rel.counter_field) or None
            if old_owner_id == owner_id:
                return None
            self._call(lambda: self.store.update(rel.counter_kind, counter_id, {rel.counter_field: owner_id}))
            return old_owner_id

        current = normalize_ids(counter.get(rel.counter_field))
        if owner_id not in current:
            self._call(lambda: self.store.update(
                rel.counter_kind, counter_id, {rel.counter_field: current + [owner_id]}
            ))
        return None

    def _detach_from_old_owner(self, rel: Relation, old_owner_id: str, children: List[str]) -> None:
        try:
            old_owner = self._call(lambda: self.store.get(rel.owner_kind, old_owner_id))
        except NotFound:
            return
        current = normalize_ids(old_owner.get(rel.field))
        taken = set(children)
        remaining = [cid for cid in current if cid not in taken]
        if remaining == current:
            return
        self._call(lambda: self.store.update(rel.owner_kind, old_owner_id, {rel.field: remaining}))

    def _write_owner(self, rel: Relation, owner_id: str, previous: List[str],
                     result: ReconcileResult) -> None:
        removed = {e.counter_id for e in result.applied if e.op == EdgeOp.remove}
        added = [e.counter_id for e in result.applied if e.op == EdgeOp.add]
        members = [cid for cid in previous if cid not in removed] + added
        if members == previous:
            return
        try:
            self._call(lambda: self.store.update(rel.owner_kind, owner_id, {rel.field: members}))
        except StoreError as e:
            result.owner_synced = False
            result.owner_error = f"{type(e).__name__}: {e}"
            logger.warning("Could not write %s on %s %s: %s", rel.field, rel.owner_kind, owner_id, e)


# Singleton instance
_reconciler: LinkReconciler = None


def get_link_reconciler() -> LinkReconciler:
    """Get or create the reconciler (singleton pattern)"""
    global _reconciler
    if _reconciler is None:
        _reconciler = LinkReconciler()
    return _reconciler
