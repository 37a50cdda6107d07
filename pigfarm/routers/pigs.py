from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from ..audit import AuditSink
from ..breeding import BreedingService
from ..database import get_db, get_session_factory, transaction
from ..delete_requests import DeleteApprovalWorkflow
from ..deps import get_actor, get_audit, get_breeding_service, get_delete_workflow
from ..errors import ConflictError, NotFoundError, ValidationError
from ..stores import AnimalRegistry
from .. import models, schemas

router = APIRouter(prefix="/pigs", tags=["pigs"])


@router.post("/", response_model=schemas.PigOut, status_code=201)
def create_pig(
    payload: schemas.PigCreate,
    session_factory: sessionmaker = Depends(get_session_factory),
    actor: schemas.Actor = Depends(get_actor),
    audit: AuditSink = Depends(get_audit),
):
    # Cycle states only come from breeding records
    if payload.breeding_status in ("pregnant", "farrowed"):
        raise ValidationError(
            f"Cannot register a pig as {payload.breeding_status}; register a breeding record instead"
        )

    with transaction(session_factory) as db:
        if AnimalRegistry(db).find(payload.pig_id):
            raise ConflictError(f"Pig {payload.pig_id} already exists", details={"pig_id": payload.pig_id})

        pig = models.Pig(**payload.model_dump())
        db.add(pig)
        try:
            db.flush()
        except IntegrityError:
            # Registered by a concurrent request after the check above
            raise ConflictError(
                f"Pig {payload.pig_id} already exists", details={"pig_id": payload.pig_id}
            ) from None
        out = schemas.PigOut.model_validate(pig)

    audit.record_create(actor.id, "pig", out.pig_id, f"Registered {out.gender} pig {out.pig_id}")
    return out


@router.get("/", response_model=list[schemas.PigOut])
def list_pigs(
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=200, ge=1, le=1000),
    gender: str | None = Query(default=None),
    breeding_status: str | None = Query(default=None),
    db: Session = Depends(get_db),
):
    q = db.query(models.Pig)
    if gender:
        q = q.filter(models.Pig.gender == gender)
    if breeding_status:
        q = q.filter(models.Pig.breeding_status == breeding_status)
    return q.order_by(models.Pig.pig_id.asc()).offset(skip).limit(limit).all()


@router.get("/{pig_id}", response_model=schemas.PigOut)
def get_pig(pig_id: str, db: Session = Depends(get_db)):
    pig = db.query(models.Pig).filter(models.Pig.pig_id == pig_id).first()
    if not pig:
        raise NotFoundError("Pig not found", details={"pig_id": pig_id})
    return pig


@router.patch("/{pig_id}/breeding-status", response_model=schemas.PigOut)
def update_breeding_status(
    pig_id: str,
    payload: schemas.PigBreedingStatusUpdate,
    actor: schemas.Actor = Depends(get_actor),
    service: BreedingService = Depends(get_breeding_service),
):
    return service.set_pig_breeding_status(pig_id, payload.breeding_status, actor.id)


@router.post("/{pig_id}/delete-request", response_model=schemas.DeleteRequestOut, status_code=201)
def request_pig_deletion(
    pig_id: str,
    payload: schemas.DeleteRequestCreate,
    actor: schemas.Actor = Depends(get_actor),
    workflow: DeleteApprovalWorkflow = Depends(get_delete_workflow),
):
    return workflow.create_request(actor, "pig", pig_id, payload.reason)
