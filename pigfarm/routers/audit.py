from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..database import get_db
from ..delete_requests import DeleteApprovalWorkflow
from ..deps import get_actor, get_delete_workflow, require_admin
from ..errors import ValidationError
from .. import models, schemas

router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("/delete-requests", response_model=list[schemas.DeleteRequestOut])
def list_delete_requests(
    status: str | None = Query(default=None),
    _admin: schemas.Actor = Depends(require_admin),
    workflow: DeleteApprovalWorkflow = Depends(get_delete_workflow),
):
    return workflow.list_requests(status)


@router.put("/delete-requests/{request_id}/{action}", response_model=schemas.DeleteRequestOut)
def process_delete_request(
    request_id: int,
    action: str,
    admin: schemas.Actor = Depends(require_admin),
    workflow: DeleteApprovalWorkflow = Depends(get_delete_workflow),
):
    if action == "approve":
        return workflow.approve(request_id, admin)
    if action == "reject":
        return workflow.reject(request_id, admin)
    raise ValidationError("Invalid action", details={"allowed": ["approve", "reject"]})


@router.post("/delete-requests/{request_id}/cancel", response_model=schemas.DeleteRequestOut)
def cancel_delete_request(
    request_id: int,
    actor: schemas.Actor = Depends(get_actor),
    workflow: DeleteApprovalWorkflow = Depends(get_delete_workflow),
):
    return workflow.cancel(request_id, actor)


@router.get("/edit-changes", response_model=list[schemas.EditChangeOut])
def list_edit_changes(
    entity_type: str | None = Query(default=None),
    limit: int = Query(default=1000, ge=1, le=1000),
    _admin: schemas.Actor = Depends(require_admin),
    db: Session = Depends(get_db),
):
    q = db.query(models.EditChange)
    if entity_type:
        q = q.filter(models.EditChange.entity_type == entity_type)
    return q.order_by(models.EditChange.id.desc()).limit(limit).all()


@router.get("/activities", response_model=list[schemas.AuditActivityOut])
def list_activities(
    limit: int = Query(default=1000, ge=1, le=1000),
    _admin: schemas.Actor = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return db.query(models.AuditActivity).order_by(models.AuditActivity.id.desc()).limit(limit).all()
