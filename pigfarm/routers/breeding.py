from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from ..breeding import BreedingService
from ..delete_requests import DeleteApprovalWorkflow
from ..deps import get_actor, get_breeding_service, get_delete_workflow
from .. import schemas

router = APIRouter(prefix="/breeding", tags=["breeding"])


@router.get("/records", response_model=list[schemas.BreedingOut])
def list_records(service: BreedingService = Depends(get_breeding_service)):
    return service.list_records()


@router.post("/records", response_model=schemas.BreedingOut, status_code=201)
def register_pairing(
    payload: schemas.BreedingCreate,
    actor: schemas.Actor = Depends(get_actor),
    service: BreedingService = Depends(get_breeding_service),
):
    record = service.register_pairing(payload, actor.id)
    return service.to_out(record)


@router.get("/records/{record_id}", response_model=schemas.BreedingOut)
def get_record(record_id: int, service: BreedingService = Depends(get_breeding_service)):
    return service.get_record(record_id)


@router.put("/records/{record_id}", response_model=schemas.BreedingOut)
def update_record(
    record_id: int,
    payload: schemas.BreedingUpdate,
    actor: schemas.Actor = Depends(get_actor),
    service: BreedingService = Depends(get_breeding_service),
):
    record = service.update_pairing(record_id, payload, actor.id)
    return service.to_out(record)


@router.post("/records/{record_id}/cancel", response_model=schemas.BreedingOut)
def cancel_record(
    record_id: int,
    actor: schemas.Actor = Depends(get_actor),
    service: BreedingService = Depends(get_breeding_service),
):
    record = service.cancel_pairing(record_id, actor.id)
    return service.to_out(record)


@router.post("/records/{record_id}/farrowing", response_model=schemas.FarrowingOut, status_code=201)
def register_farrowing(
    record_id: int,
    payload: schemas.FarrowingCreate,
    actor: schemas.Actor = Depends(get_actor),
    service: BreedingService = Depends(get_breeding_service),
):
    return service.register_farrowing(record_id, payload, actor.id)


@router.put("/update-statuses", response_model=schemas.StatusSweepOut)
def update_statuses(
    actor: schemas.Actor = Depends(get_actor),
    service: BreedingService = Depends(get_breeding_service),
):
    return service.recompute_statuses(actor=actor.id)


@router.get("/statistics", response_model=schemas.BreedingStatistics)
def statistics(service: BreedingService = Depends(get_breeding_service)):
    return service.statistics()


@router.get("/due", response_model=list[schemas.DueItem])
def due_farrowings(
    window_days: int | None = Query(default=None, ge=0, le=60),
    service: BreedingService = Depends(get_breeding_service),
):
    return service.due_list(window_days=window_days)


@router.get("/next-litter-id", response_model=schemas.NextLitterIdOut)
def next_litter_id(service: BreedingService = Depends(get_breeding_service)):
    return schemas.NextLitterIdOut(next_litter_id=service.next_litter_id())


@router.post("/records/{record_id}/delete-request", response_model=schemas.DeleteRequestOut, status_code=201)
def request_record_deletion(
    record_id: int,
    payload: schemas.DeleteRequestCreate,
    actor: schemas.Actor = Depends(get_actor),
    workflow: DeleteApprovalWorkflow = Depends(get_delete_workflow),
):
    return workflow.create_request(actor, "breeding_record", record_id, payload.reason)


@router.post("/records/{record_id}/cancel-delete-request", response_model=schemas.DeleteRequestOut)
def cancel_record_deletion(
    record_id: int,
    actor: schemas.Actor = Depends(get_actor),
    workflow: DeleteApprovalWorkflow = Depends(get_delete_workflow),
):
    return workflow.cancel_for_item("breeding_record", record_id, actor)
