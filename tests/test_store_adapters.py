"""
Store Adapter Tests

HttpEntityStore status mapping via httpx.MockTransport, and the
MongoDB document helpers.
"""
import json

import httpx
import pytest
from bson import ObjectId

from app.core.errors import Conflict, NotFound, StoreUnavailable, ValidationError
from app.services.http_store import HttpEntityStore
from app.services.link_reconciler import LinkReconciler
from app.services.mongo_store import serialize_doc, to_object_id


def make_store(handler):
    client = httpx.Client(transport=httpx.MockTransport(handler), base_url="http://store.test/api")
    return HttpEntityStore(client=client)


# ============================================================================
# HTTP adapter
# ============================================================================

class TestHttpEntityStore:

    def test_get_uses_collection_path(self):
        seen = []

        def handler(request):
            seen.append((request.method, request.url.path))
            return httpx.Response(200, json={"id": "S1", "name": "Algorithms"})

        doc = make_store(handler).get("subject", "S1")

        assert doc["name"] == "Algorithms"
        assert seen == [("GET", "/api/subjects/S1")]

    def test_list_sends_filter_as_query(self):
        def handler(request):
            assert request.url.path == "/api/exam_periods"
            assert request.url.params["is_active"] == "true"
            return httpx.Response(200, json=[{"id": "JAN"}])

        assert make_store(handler).list("exam_period", {"is_active": True}) == [{"id": "JAN"}]

    def test_update_sends_partial_body(self):
        def handler(request):
            assert request.method == "PUT"
            assert json.loads(request.content) == {"major_id": None}
            return httpx.Response(200, json={"id": "S1", "major_id": None})

        assert make_store(handler).update("subject", "S1", {"major_id": None})["major_id"] is None

    def test_delete_no_content(self):
        assert make_store(lambda request: httpx.Response(204)).delete("major", "M1") is None

    def test_404_is_not_found(self):
        with pytest.raises(NotFound):
            make_store(lambda request: httpx.Response(404)).get("major", "M1")

    @pytest.mark.parametrize("status", [400, 409, 422])
    def test_rejections_are_validation_errors(self, status):
        store = make_store(lambda request: httpx.Response(status, json={"error": "name is required"}))

        with pytest.raises(ValidationError, match="name is required"):
            store.create("department", {})

    def test_server_error_is_unavailable(self):
        with pytest.raises(StoreUnavailable):
            make_store(lambda request: httpx.Response(503)).get("major", "M1")

    @pytest.mark.parametrize("status,error", [
        (301, ValidationError),
        (401, ValidationError),
        (403, ValidationError),
        (405, ValidationError),
        (409, Conflict),
        (429, StoreUnavailable),
        (502, StoreUnavailable),
    ])
    def test_every_non_2xx_status_is_mapped(self, status, error):
        store = make_store(lambda request: httpx.Response(status, json={"error": "nope"}))

        with pytest.raises(error):
            store.update("subject", "S1", {"major_id": "M1"})

    def test_connection_error_is_unavailable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        store = make_store(handler)

        with pytest.raises(StoreUnavailable):
            store.get("major", "M1")
        assert store.ping() is False

    def test_unknown_kind(self):
        with pytest.raises(ValidationError):
            make_store(lambda request: httpx.Response(200, json={})).get("building", "B1")


# ============================================================================
# MongoDB helpers
# ============================================================================

class TestMongoHelpers:

    def test_serialize_doc_exposes_string_id(self):
        oid = ObjectId()
        assert serialize_doc({"_id": oid, "name": "Physics"}) == {"id": str(oid), "name": "Physics"}

    def test_to_object_id(self):
        oid = ObjectId()
        assert to_object_id(str(oid)) == oid
        assert to_object_id("D1") == "D1"


# ============================================================================
# Reconciling through the HTTP adapter
# ============================================================================

class TestReconcileOverHttp:

    def test_forbidden_counter_fails_only_its_edge(self):
        docs = {
            "/api/majors/M1": {"id": "M1", "subject_ids": []},
            "/api/subjects/A": {"id": "A", "major_id": None},
            "/api/subjects/B": {"id": "B", "major_id": None},
            "/api/subjects/C": {"id": "C", "major_id": None},
        }

        def handler(request):
            path = request.url.path
            if path not in docs:
                return httpx.Response(404, json={"error": "not found"})
            if request.method == "PUT":
                if path == "/api/subjects/A":
                    return httpx.Response(403, json={"error": "read-only subject"})
                docs[path].update(json.loads(request.content))
            return httpx.Response(200, json=docs[path])

        reconciler = LinkReconciler(make_store(handler), max_workers=1, sleep=lambda _: None)

        result = reconciler.reconcile("major", "M1", "subject_ids", ["A", "B", "C"])

        assert result.failed_ids == ["A"]
        assert result.failed[0].error_type == "ValidationError"
        assert "read-only subject" in result.failed[0].error
        assert result.applied_ids == ["B", "C"]
        assert docs["/api/majors/M1"]["subject_ids"] == ["B", "C"]
        assert docs["/api/subjects/A"]["major_id"] is None
