"""
Relation Routes

GET  /relations/{kind}/{entity_id}/{relation} - Current membership
POST /relations/{kind}/{entity_id}/{relation} - Reconcile to a desired set

The POST is the retry entry point: sending the same desired set again
re-attempts exactly the edges that failed last time.
"""

from fastapi import APIRouter, Depends, HTTPException
from typing import List

from app.api.deps import http_error
from app.core.errors import StoreError
from app.schemas.schemas import ReconcileRequest, ReconcileResult
from app.services.orchestration import OrchestrationService, get_orchestration_service

router = APIRouter(prefix="/relations", tags=["Relations"])


@router.get("/{kind}/{entity_id}/{relation}", response_model=List[str])
def get_members(kind: str, entity_id: str, relation: str,
                service: OrchestrationService = Depends(get_orchestration_service)):
    """Membership as the store currently sees it (derived relations are queried)."""
    try:
        return service.reconciler.members(kind, entity_id, relation)
    except StoreError as e:
        raise http_error(e)


@router.post("/{kind}/{entity_id}/{relation}", response_model=ReconcileResult)
def reconcile_relation(kind: str, entity_id: str, relation: str, data: ReconcileRequest,
                       service: OrchestrationService = Depends(get_orchestration_service)):
    """Bring one relation to the desired set. Failed edges come back in `failed`."""
    try:
        return service.reconciler.reconcile(kind, entity_id, relation, data.desired_ids)
    except StoreError as e:
        raise http_error(e)
