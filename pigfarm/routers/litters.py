from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from ..delete_requests import DeleteApprovalWorkflow
from ..deps import get_actor, get_delete_workflow
from ..errors import NotFoundError
from .. import models, schemas

router = APIRouter(prefix="/litters", tags=["litters"])


@router.get("/", response_model=list[schemas.LitterOut])
def list_litters(db: Session = Depends(get_db)):
    return db.query(models.Litter).order_by(models.Litter.birth_date.desc(), models.Litter.id.desc()).all()


@router.get("/{litter_id}", response_model=schemas.LitterOut)
def get_litter(litter_id: str, db: Session = Depends(get_db)):
    litter = db.query(models.Litter).filter(models.Litter.litter_id == litter_id).first()
    if not litter:
        raise NotFoundError("Litter not found", details={"litter_id": litter_id})
    return litter


@router.post("/{litter_id}/delete-request", response_model=schemas.DeleteRequestOut, status_code=201)
def request_litter_deletion(
    litter_id: str,
    payload: schemas.DeleteRequestCreate,
    actor: schemas.Actor = Depends(get_actor),
    workflow: DeleteApprovalWorkflow = Depends(get_delete_workflow),
):
    return workflow.create_request(actor, "litter", litter_id, payload.reason)
