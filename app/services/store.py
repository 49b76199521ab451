"""
Entity Store contract.

The engine only ever talks to the store through these five calls:

    get(kind, id)            -> document
    list(kind, filter)       -> [documents]
    create(kind, body)       -> created document (with "id")
    update(kind, id, partial)-> updated document
    delete(kind, id)         -> None

Documents are plain dicts with a string "id". Filters are equality
filters; a filter value against a list field matches membership
(MongoDB semantics), so list("subject", {"professor_ids": P}) returns
every subject P teaches.

Errors are always the taxonomy in app.core.errors.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from app.core.config import get_settings


class EntityStore(ABC):

    @abstractmethod
    def get(self, kind: str, entity_id: str) -> Dict[str, Any]:
        """Fetch one document. Raises NotFound."""

    @abstractmethod
    def list(self, kind: str, filter: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Fetch every document matching an equality filter."""

    @abstractmethod
    def create(self, kind: str, body: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a document and return it with its new id."""

    @abstractmethod
    def update(self, kind: str, entity_id: str, partial: Dict[str, Any]) -> Dict[str, Any]:
        """Set the given fields and return the updated document. Raises NotFound."""

    @abstractmethod
    def delete(self, kind: str, entity_id: str) -> None:
        """Remove a document. Raises NotFound."""

    def ping(self) -> bool:
        """Connectivity check used by /health."""
        return True


# Singleton instance
_entity_store: EntityStore = None


def get_entity_store() -> EntityStore:
    """Get or create the configured store adapter (singleton pattern)"""
    global _entity_store
    if _entity_store is None:
        settings = get_settings()
        if settings.store_backend == "http":
            from app.services.http_store import HttpEntityStore
            _entity_store = HttpEntityStore()
        else:
            from app.services.mongo_store import MongoEntityStore
            _entity_store = MongoEntityStore()
    return _entity_store
