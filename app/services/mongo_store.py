"""
MongoDB Store - CRUD operations for the university collections.

One collection per entity kind (see COLLECTIONS in app.db.mongodb).

WHY MongoDB?
- The university service already keeps its records as documents
- Membership lists (staff, professor_ids) are natural array fields
- Multikey indexes make "where list contains X" a cheap lookup, which
  is what every derived inverse view relies on
"""

import logging
from typing import Any, Dict, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ReturnDocument
from pymongo.collection import Collection
from pymongo.errors import (
    AutoReconnect,
    DuplicateKeyError,
    ExecutionTimeout,
    NetworkTimeout,
    PyMongoError,
    ServerSelectionTimeoutError,
    WriteError,
)

from app.core.errors import NotFound, StoreUnavailable, ValidationError
from app.db.mongodb import COLLECTIONS, get_collection, test_mongo_connection
from app.services.store import EntityStore

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS = (AutoReconnect, NetworkTimeout, ExecutionTimeout, ServerSelectionTimeoutError)


# ============================================================
# HELPER: Convert ObjectId to string for JSON serialization
# ============================================================

def serialize_doc(doc: dict) -> dict:
    """Convert MongoDB document to a store document with a string "id"."""
    if doc is None:
        return None
    if "_id" in doc:
        doc["id"] = str(doc.pop("_id"))
    return doc


def serialize_docs(docs: list) -> list:
    """Convert list of MongoDB documents to store documents."""
    return [serialize_doc(doc) for doc in docs]


def to_object_id(entity_id: str):
    """Ids that look like ObjectIds are stored as ObjectIds, anything else verbatim."""
    try:
        return ObjectId(entity_id)
    except (InvalidId, TypeError):
        return entity_id


class MongoEntityStore(EntityStore):
    """
    EntityStore backed by pymongo.

    Driver exceptions are translated:
    - network / selection / timeouts -> StoreUnavailable
    - duplicate keys / rejected writes -> ValidationError
    """

    def _collection(self, kind: str) -> Collection:
        if kind not in COLLECTIONS:
            raise ValidationError(f"Unknown entity kind: {kind}", kind=kind)
        return get_collection(kind)

    def _run(self, kind: str, entity_id: Optional[str], op):
        try:
            return op()
        except TRANSIENT_ERRORS as e:
            raise StoreUnavailable(f"MongoDB unavailable: {e}", kind=kind, entity_id=entity_id) from e
        except (DuplicateKeyError, WriteError) as e:
            raise ValidationError(f"MongoDB rejected write: {e}", kind=kind, entity_id=entity_id) from e
        except PyMongoError as e:
            raise StoreUnavailable(f"MongoDB error: {e}", kind=kind, entity_id=entity_id) from e

    def get(self, kind: str, entity_id: str) -> Dict[str, Any]:
        collection = self._collection(kind)
        doc = self._run(kind, entity_id, lambda: collection.find_one({"_id": to_object_id(entity_id)}))
        if doc is None:
            raise NotFound(kind, entity_id)
        return serialize_doc(doc)

    def list(self, kind: str, filter: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        collection = self._collection(kind)
        query = dict(filter or {})
        if "id" in query:
            query["_id"] = to_object_id(query.pop("id"))
        return self._run(kind, None, lambda: serialize_docs(list(collection.find(query))))

    def create(self, kind: str, body: Dict[str, Any]) -> Dict[str, Any]:
        collection = self._collection(kind)
        doc = {k: v for k, v in body.items() if k != "id"}
        if body.get("id"):
            doc["_id"] = to_object_id(body["id"])
        result = self._run(kind, body.get("id"), lambda: collection.insert_one(doc))
        doc["_id"] = result.inserted_id
        return serialize_doc(doc)

    def update(self, kind: str, entity_id: str, partial: Dict[str, Any]) -> Dict[str, Any]:
        collection = self._collection(kind)
        fields = {k: v for k, v in partial.items() if k != "id"}
        if not fields:
            return self.get(kind, entity_id)
        doc = self._run(kind, entity_id, lambda: collection.find_one_and_update(
            {"_id": to_object_id(entity_id)},
            {"$set": fields},
            return_document=ReturnDocument.AFTER,
        ))
        if doc is None:
            raise NotFound(kind, entity_id)
        return serialize_doc(doc)

    def delete(self, kind: str, entity_id: str) -> None:
        collection = self._collection(kind)
        result = self._run(kind, entity_id, lambda: collection.delete_one({"_id": to_object_id(entity_id)}))
        if result.deleted_count == 0:
            raise NotFound(kind, entity_id)

    def ping(self) -> bool:
        return test_mongo_connection()
