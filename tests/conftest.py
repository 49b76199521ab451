"""
University Consistency Engine - Test Configuration and Fixtures
"""
import copy
import os
import threading
from collections import defaultdict

import pytest

# Set testing environment before any settings are cached
os.environ['STORE_BACKEND'] = 'http'
os.environ['STORE_RETRY_ATTEMPTS'] = '3'
os.environ['STORE_RETRY_BACKOFF_SECONDS'] = '0.2'
os.environ['STORE_RETRY_MAX_DELAY_SECONDS'] = '2.0'
os.environ['RECONCILE_MAX_WORKERS'] = '1'

from fastapi.testclient import TestClient

from app.core.errors import NotFound, StoreUnavailable
from app.main import app
from app.services.link_reconciler import LinkReconciler
from app.services.orchestration import OrchestrationService, get_orchestration_service
from app.services.store import EntityStore, get_entity_store


class InMemoryStore(EntityStore):
    """
    Dict-backed EntityStore with MongoDB-style filters.

    Every write is recorded in `writes` as (op, kind, id, body).
    fail() makes a (kind, id, op) raise; id=None matches any id.
    """

    def __init__(self):
        self.data = defaultdict(dict)
        self.writes = []
        self._failures = []
        self._seq = 0
        self._lock = threading.Lock()

    # -- test helpers ------------------------------------------------

    def seed(self, kind, entity_id, **fields):
        self.data[kind][entity_id] = {"id": entity_id, **fields}
        return self.data[kind][entity_id]

    def doc(self, kind, entity_id):
        return self.data[kind][entity_id]

    def fail(self, kind, entity_id, op, error=None, times=None):
        """Fail `times` calls (None = forever) with `error` (default StoreUnavailable)."""
        self._failures.append({
            "kind": kind, "id": entity_id, "op": op,
            "error": error or StoreUnavailable(f"{op} {kind} {entity_id} timed out", kind, entity_id),
            "times": times,
        })

    def heal(self):
        self._failures.clear()

    def reset_writes(self):
        self.writes.clear()

    def write_ids(self, kind=None, op="update"):
        return [w[2] for w in self.writes if w[0] == op and (kind is None or w[1] == kind)]

    def _check(self, kind, entity_id, op):
        with self._lock:
            for rule in self._failures:
                if rule["kind"] != kind or rule["op"] != op:
                    continue
                if rule["id"] is not None and rule["id"] != entity_id:
                    continue
                if rule["times"] is not None:
                    if rule["times"] <= 0:
                        continue
                    rule["times"] -= 1
                raise rule["error"]

    @staticmethod
    def _matches(doc, filter):
        for key, value in filter.items():
            field = doc.get(key)
            if isinstance(field, list):
                if value not in field:
                    return False
            elif field != value:
                return False
        return True

    # -- EntityStore -------------------------------------------------

    def get(self, kind, entity_id):
        self._check(kind, entity_id, "get")
        if entity_id not in self.data[kind]:
            raise NotFound(kind, entity_id)
        return copy.deepcopy(self.data[kind][entity_id])

    def list(self, kind, filter=None):
        self._check(kind, None, "list")
        return [copy.deepcopy(d) for d in self.data[kind].values() if self._matches(d, filter or {})]

    def create(self, kind, body):
        self._check(kind, body.get("id"), "create")
        with self._lock:
            self._seq += 1
            entity_id = body.get("id") or f"{kind}-{self._seq}"
            self.data[kind][entity_id] = {**copy.deepcopy(body), "id": entity_id}
            self.writes.append(("create", kind, entity_id, copy.deepcopy(body)))
        return copy.deepcopy(self.data[kind][entity_id])

    def update(self, kind, entity_id, partial):
        self._check(kind, entity_id, "update")
        if entity_id not in self.data[kind]:
            raise NotFound(kind, entity_id)
        with self._lock:
            self.data[kind][entity_id].update(copy.deepcopy(partial))
            self.writes.append(("update", kind, entity_id, copy.deepcopy(partial)))
        return copy.deepcopy(self.data[kind][entity_id])

    def delete(self, kind, entity_id):
        self._check(kind, entity_id, "delete")
        if entity_id not in self.data[kind]:
            raise NotFound(kind, entity_id)
        with self._lock:
            del self.data[kind][entity_id]
            self.writes.append(("delete", kind, entity_id, None))


@pytest.fixture
def sleeps():
    """Backoff delays requested during the test."""
    return []


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def reconciler(store, sleeps) -> LinkReconciler:
    return LinkReconciler(store, max_workers=1, sleep=sleeps.append)


@pytest.fixture
def service(store, reconciler) -> OrchestrationService:
    return OrchestrationService(store, reconciler)


@pytest.fixture
def client(store, service):
    """Test client with the store and service overridden."""
    app.dependency_overrides[get_orchestration_service] = lambda: service
    app.dependency_overrides[get_entity_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def university(store):
    """
    Small, consistent university:

    D1 (head P1, staff P1 P2) -> majors M1, M2
    D2                       -> major  M3
    M1 -> subjects S1 (year 1), S2 (year 2)
    M2 -> subject  S3 (year 1)
    P1 teaches S1, S2; P2 teaches S3
    students ST1, ST2 in M1, ST3 in M2, ST4 in M3
    """
    store.seed("department", "D1", name="Computing", head="P1", major_ids=["M1", "M2"], staff=["P1", "P2"])
    store.seed("department", "D2", name="Mathematics", head=None, major_ids=["M3"], staff=[])
    store.seed("major", "M1", name="Software Engineering", department_id="D1", subject_ids=["S1", "S2"])
    store.seed("major", "M2", name="Information Systems", department_id="D1", subject_ids=["S3"])
    store.seed("major", "M3", name="Applied Mathematics", department_id="D2", subject_ids=[])
    store.seed("subject", "S1", name="Programming", major_id="M1", year=1, semester=1, professor_ids=["P1"])
    store.seed("subject", "S2", name="Algorithms", major_id="M1", year=2, semester=1, professor_ids=["P1"])
    store.seed("subject", "S3", name="Databases", major_id="M2", year=1, semester=2, professor_ids=["P2"])
    store.seed("professor", "P1", first_name="Ana", last_name="Petrovic")
    store.seed("professor", "P2", first_name="Marko", last_name="Jovanovic")
    store.seed("professor", "P3", first_name="Jelena", last_name="Nikolic")
    store.seed("student", "ST1", first_name="Ivan", major_id="M1", year=1)
    store.seed("student", "ST2", first_name="Mila", major_id="M1", year=2)
    store.seed("student", "ST3", first_name="Luka", major_id="M2", year=1)
    store.seed("student", "ST4", first_name="Sara", major_id="M3", year=1)
    store.seed("user", "U1", role="ADMINISTRATOR")
    store.seed("user", "U2", role="STUDENTSKA_SLUZBA")
    store.seed("user", "U3", role="ASSISTANT")
    return store
