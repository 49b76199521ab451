"""
University Service HTTP Client

The university service exposes its records as JSON over HTTP:

    GET    /{collection}            list (query params = equality filter)
    POST   /{collection}            create
    GET    /{collection}/{id}       get
    PUT    /{collection}/{id}       update (partial body)
    DELETE /{collection}/{id}       delete

Status mapping:
- 404                 -> NotFound
- 409                 -> Conflict
- 429, 5xx, timeouts,
  connection errors   -> StoreUnavailable
- any other non-2xx   -> ValidationError
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from app.core.config import get_settings
from app.core.errors import Conflict, NotFound, StoreUnavailable, ValidationError
from app.db.mongodb import COLLECTIONS
from app.services.store import EntityStore

logger = logging.getLogger(__name__)


class HttpEntityStore(EntityStore):
    """
    EntityStore backed by the university REST API.
    """

    def __init__(self, client: Optional[httpx.Client] = None):
        settings = get_settings()
        if client is None:
            headers = {"Accept": "application/json"}
            if settings.store_api_token:
                headers["Authorization"] = f"Bearer {settings.store_api_token}"
            client = httpx.Client(
                base_url=settings.store_base_url,
                headers=headers,
                timeout=settings.store_timeout_seconds,
            )
        self.client = client

    def _path(self, kind: str, entity_id: Optional[str] = None) -> str:
        if kind not in COLLECTIONS:
            raise ValidationError(f"Unknown entity kind: {kind}", kind=kind)
        path = f"/{COLLECTIONS[kind]}"
        if entity_id is not None:
            path = f"{path}/{entity_id}"
        return path

    def _request(self, method: str, kind: str, entity_id: Optional[str] = None, **kwargs) -> Any:
        path = self._path(kind, entity_id)
        try:
            response = self.client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise StoreUnavailable(f"{method} {path} timed out", kind=kind, entity_id=entity_id) from e
        except httpx.TransportError as e:
            raise StoreUnavailable(f"{method} {path} failed: {e}", kind=kind, entity_id=entity_id) from e

        status = response.status_code
        if status == 404:
            raise NotFound(kind, entity_id or "")
        if status == 409:
            raise Conflict(
                f"{method} {path} conflicts: {self._error_detail(response)}",
                kind=kind, entity_id=entity_id,
            )
        if status == 429 or status >= 500:
            raise StoreUnavailable(
                f"{method} {path} returned {status}",
                kind=kind, entity_id=entity_id,
            )
        if status >= 300:
            # Unfollowed redirects, 400, 401, 403, 422 and the rest: not retried
            raise ValidationError(
                f"{method} {path} rejected ({status}): {self._error_detail(response)}",
                kind=kind, entity_id=entity_id,
            )

        if status == 204 or not response.content:
            return None
        return response.json()

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text
        if isinstance(body, dict):
            return str(body.get("error") or body.get("detail") or body)
        return str(body)

    def get(self, kind: str, entity_id: str) -> Dict[str, Any]:
        return self._request("GET", kind, entity_id)

    def list(self, kind: str, filter: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        params = {k: self._param(v) for k, v in (filter or {}).items()}
        return self._request("GET", kind, params=params) or []

    def create(self, kind: str, body: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", kind, json=body)

    def update(self, kind: str, entity_id: str, partial: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("PUT", kind, entity_id, json=partial)

    def delete(self, kind: str, entity_id: str) -> None:
        self._request("DELETE", kind, entity_id)

    @staticmethod
    def _param(value: Any) -> str:
        # Query strings have no null/bool; mirror the service's lowercase convention
        if value is None:
            return ""
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)

    def ping(self) -> bool:
        try:
            self.client.get("/health")
            return True
        except httpx.HTTPError as e:
            logger.warning("University service unreachable: %s", e)
            return False
