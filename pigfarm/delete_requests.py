"""
Two-phase deletion: an employee files a request, an admin approves or
rejects it. Only approval deletes anything.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Optional

from pydantic_core import to_jsonable_python
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from . import models, schemas
from .audit import AuditSink
from .database import transaction
from .errors import ConflictError, NotFoundError, PermissionDenied, ValidationError
from .stores import AnimalRegistry, BreedingRecordStore

logger = logging.getLogger(__name__)

MIN_REASON_LENGTH = 10


def _load_breeding_record(db: Session, item_id: str) -> Optional[models.BreedingRecord]:
    if not item_id.isdigit():
        return None
    return BreedingRecordStore(db).find(int(item_id))


def _load_litter(db: Session, item_id: str) -> Optional[models.Litter]:
    return db.query(models.Litter).filter(models.Litter.litter_id == item_id).first()


def _load_pig(db: Session, item_id: str) -> Optional[models.Pig]:
    return AnimalRegistry(db).find(item_id)


def _delete_breeding_record(db: Session, record: models.BreedingRecord) -> None:
    registry = AnimalRegistry(db)
    sow = registry.find(record.sow_id)
    if sow and sow.current_breeding_record_id == record.id:
        # pregnant and farrowed only exist with a record behind them
        if sow.breeding_status in ("pregnant", "farrowed"):
            registry.set_breeding_status(sow.pig_id, "available", None)
        else:
            sow.current_breeding_record_id = None

    db.query(models.Litter).filter(models.Litter.breeding_record_id == record.id).update(
        {models.Litter.breeding_record_id: None}, synchronize_session=False
    )
    BreedingRecordStore(db).delete(record)


def _delete_pig(db: Session, pig: models.Pig) -> None:
    # Block if referenced by a breeding
    breeding_ref = (
        db.query(models.BreedingRecord)
        .filter(
            (models.BreedingRecord.sow_id == pig.pig_id)
            | (models.BreedingRecord.boar_id == pig.pig_id)
        )
        .first()
    )
    if breeding_ref:
        raise ConflictError(
            f"Pig {pig.pig_id} is referenced by breeding record {breeding_ref.id}. "
            "Remove or reassign the breeding record first.",
            details={"breeding_record_id": breeding_ref.id},
        )
    db.delete(pig)


def _delete_litter(db: Session, litter: models.Litter) -> None:
    db.delete(litter)


# item_type -> (loader, deleter)
HANDLERS: dict[str, tuple[Callable[[Session, str], Any], Callable[[Session, Any], None]]] = {
    "breeding_record": (_load_breeding_record, _delete_breeding_record),
    "litter": (_load_litter, _delete_litter),
    "pig": (_load_pig, _delete_pig),
}


def _details(obj) -> dict[str, Any]:
    return to_jsonable_python({c.name: getattr(obj, c.name) for c in obj.__table__.columns})


class DeleteApprovalWorkflow:
    def __init__(self, session_factory: sessionmaker, audit: AuditSink):
        self.session_factory = session_factory
        self.audit = audit

    def _handler(self, item_type: str):
        try:
            return HANDLERS[item_type]
        except KeyError:
            raise ValidationError(
                f"Unknown item type: {item_type}",
                details={"supported": sorted(HANDLERS)},
            ) from None

    def _pending(self, db: Session, request_id: int) -> models.DeleteRequest:
        request = (
            db.query(models.DeleteRequest)
            .filter(models.DeleteRequest.id == request_id)
            .filter(models.DeleteRequest.status == "pending")
            .with_for_update()
            .first()
        )
        if not request:
            raise NotFoundError(
                "Delete request not found or already processed",
                details={"request_id": request_id},
            )
        return request

    def list_requests(self, status: Optional[str] = None) -> list[models.DeleteRequest]:
        with transaction(self.session_factory) as db:
            q = db.query(models.DeleteRequest)
            if status:
                q = q.filter(models.DeleteRequest.status == status)
            return q.order_by(models.DeleteRequest.id.desc()).all()

    def create_request(
        self, requester: schemas.Actor, item_type: str, item_id: Any, reason: str
    ) -> models.DeleteRequest:
        item_id = str(item_id)
        reason = (reason or "").strip()
        if len(reason) < MIN_REASON_LENGTH:
            raise ValidationError(
                f"Reason is required and must be at least {MIN_REASON_LENGTH} characters long"
            )
        load, _ = self._handler(item_type)

        with transaction(self.session_factory) as db:
            item = load(db, item_id)
            if item is None:
                raise NotFoundError(
                    f"{item_type} {item_id} not found",
                    details={"item_type": item_type, "item_id": item_id},
                )

            existing = (
                db.query(models.DeleteRequest)
                .filter(models.DeleteRequest.item_type == item_type)
                .filter(models.DeleteRequest.item_id == item_id)
                .filter(models.DeleteRequest.status == "pending")
                .first()
            )
            if existing:
                raise ConflictError(
                    f"A delete request for this {item_type} is already pending",
                    details={"request_id": existing.id},
                )

            request = models.DeleteRequest(
                requester_id=requester.id,
                item_type=item_type,
                item_id=item_id,
                item_details=_details(item),
                reason=reason,
                status="pending",
            )
            db.add(request)
            try:
                db.flush()
            except IntegrityError:
                # Another request for the same item got in first
                raise ConflictError(f"A delete request for this {item_type} is already pending") from None

        logger.info("Delete request %s filed for %s %s by %s", request.id, item_type, item_id, requester.id)
        self.audit.record_activity(
            requester.id,
            "delete_request",
            f"Requested deletion of {item_type} (ID: {item_id})",
            {"request_id": request.id, "item_type": item_type, "item_id": item_id, "reason": reason},
        )
        return request

    def approve(self, request_id: int, approver: schemas.Actor) -> models.DeleteRequest:
        return self._process(request_id, approver, approve=True)

    def reject(self, request_id: int, approver: schemas.Actor) -> models.DeleteRequest:
        return self._process(request_id, approver, approve=False)

    def _process(self, request_id: int, approver: schemas.Actor, *, approve: bool) -> models.DeleteRequest:
        if not approver.is_admin:
            raise PermissionDenied("Only admins can process delete requests")

        with transaction(self.session_factory) as db:
            request = self._pending(db, request_id)

            if approve:
                load, delete = self._handler(request.item_type)
                item = load(db, request.item_id)
                if item is None:
                    logger.warning(
                        "Delete request %s approved but %s %s is already gone",
                        request_id,
                        request.item_type,
                        request.item_id,
                    )
                else:
                    delete(db, item)

            request.status = "approved" if approve else "rejected"
            request.processed_by = approver.id
            request.processed_at = datetime.now()
            db.flush()

        action = "approve" if approve else "reject"
        logger.info("Delete request %s %sd by %s", request_id, action, approver.id)
        if approve:
            self.audit.record_delete(
                approver.id,
                request.item_type,
                request.item_id,
                f"Deleted {request.item_type}",
                {"request_id": request_id, "item_details": request.item_details},
            )
        self.audit.record_activity(
            approver.id,
            action,
            f"{'Approved' if approve else 'Rejected'} delete request for "
            f"{request.item_type} (ID: {request.item_id})",
            {
                "request_id": request_id,
                "item_type": request.item_type,
                "item_id": request.item_id,
                "reason": request.reason,
            },
        )
        return request

    def cancel(self, request_id: int, requester: schemas.Actor) -> models.DeleteRequest:
        with transaction(self.session_factory) as db:
            request = self._pending(db, request_id)
            if request.requester_id != requester.id:
                raise NotFoundError(
                    "No pending delete request of yours found",
                    details={"request_id": request_id},
                )
            request.status = "cancelled"
            request.processed_by = requester.id
            request.processed_at = datetime.now()
            db.flush()

        logger.info("Delete request %s cancelled by %s", request_id, requester.id)
        return request

    def cancel_for_item(self, item_type: str, item_id: Any, requester: schemas.Actor) -> models.DeleteRequest:
        with transaction(self.session_factory) as db:
            request = (
                db.query(models.DeleteRequest)
                .filter(models.DeleteRequest.item_type == item_type)
                .filter(models.DeleteRequest.item_id == str(item_id))
                .filter(models.DeleteRequest.requester_id == requester.id)
                .filter(models.DeleteRequest.status == "pending")
                .first()
            )
            if not request:
                raise NotFoundError(f"No pending delete request found for this {item_type}")
            request_id = request.id
        return self.cancel(request_id, requester)
