"""
Store error taxonomy.

Every adapter (MongoDB, HTTP) translates its driver/transport errors
into these classes so the reconciler and the façade never see pymongo
or httpx exceptions.

- NotFound:          referenced id absent
- ValidationError:   the store (or the engine) rejected the payload
  (Conflict: a duplicate of an existing record)
- StoreUnavailable:  transient - network, timeout, 5xx

PartialSyncFailure is NOT an exception. It is an outcome status
(see OutcomeStatus in app.schemas.schemas).
"""

from typing import Optional


class StoreError(Exception):
    """Base class for everything the entity store can raise."""

    status_code = 500

    def __init__(self, message: str, kind: Optional[str] = None, entity_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.entity_id = entity_id

    def __str__(self) -> str:
        return self.message


class NotFound(StoreError):
    status_code = 404

    def __init__(self, kind: str, entity_id: str):
        super().__init__(f"{kind} {entity_id} not found", kind=kind, entity_id=entity_id)


class ValidationError(StoreError):
    status_code = 400


class StoreUnavailable(StoreError):
    status_code = 503


class Conflict(ValidationError):
    """The payload is valid but clashes with an existing record."""

    status_code = 409
