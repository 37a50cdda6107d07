"""
Data access for the breeding workflow.

Each store wraps the caller's SQLAlchemy session, so everything done through
them lands in the caller's transaction. Nothing is cached between calls.
"""
from __future__ import annotations

from datetime import date
from typing import Any, Optional

from sqlalchemy.orm import Session

from . import models
from .errors import ConflictError, NotFoundError

_KEEP = object()

AVAILABLE_FOR_PAIRING = ("available", "breeding")


class AnimalRegistry:
    def __init__(self, db: Session):
        self.db = db

    def find(self, pig_id: str, *, for_update: bool = False) -> Optional[models.Pig]:
        q = self.db.query(models.Pig).filter(models.Pig.pig_id == pig_id)
        if for_update:
            q = q.with_for_update()
        return q.first()

    def get(self, pig_id: str, *, for_update: bool = False) -> models.Pig:
        pig = self.find(pig_id, for_update=for_update)
        if not pig:
            raise NotFoundError(f"Pig {pig_id} not found", details={"pig_id": pig_id})
        return pig

    def set_breeding_status(self, pig_id: str, status: str, record_id: Any = _KEEP) -> models.Pig:
        """
        Set a pig's breeding status.

        `record_id` left at its default keeps the current breeding record
        reference; pass None to clear it.
        """
        pig = self.get(pig_id)
        pig.breeding_status = status
        if record_id is not _KEEP:
            pig.current_breeding_record_id = record_id
        self.db.flush()
        return pig

    def claim_for_pairing(self, pig_id: str, record_id: int) -> None:
        """
        Move an available sow to pregnant in a single conditional UPDATE.

        Raises ConflictError when the sow is no longer available, i.e. a
        concurrent pairing committed after this one read her.
        """
        claimed = (
            self.db.query(models.Pig)
            .filter(models.Pig.pig_id == pig_id)
            .filter(models.Pig.breeding_status.in_(AVAILABLE_FOR_PAIRING))
            .update(
                {
                    models.Pig.breeding_status: "pregnant",
                    models.Pig.current_breeding_record_id: record_id,
                },
                synchronize_session="fetch",
            )
        )
        if claimed == 0:
            raise ConflictError(
                f"Sow {pig_id} was paired by another request",
                details={"rule": "sow_not_double_booked", "sow_id": pig_id},
            )

    def sows_referencing(self, record_ids: list[int]) -> list[models.Pig]:
        if not record_ids:
            return []
        return (
            self.db.query(models.Pig)
            .filter(models.Pig.gender == "female")
            .filter(models.Pig.current_breeding_record_id.in_(record_ids))
            .all()
        )

    def sows_on_failed_records(self) -> list[models.Pig]:
        return (
            self.db.query(models.Pig)
            .join(models.BreedingRecord, models.BreedingRecord.id == models.Pig.current_breeding_record_id)
            .filter(models.BreedingRecord.breeding_status == "failed")
            .all()
        )


class BreedingRecordStore:
    def __init__(self, db: Session):
        self.db = db

    def insert(self, record: models.BreedingRecord) -> int:
        self.db.add(record)
        self.db.flush()
        return record.id

    def find(self, record_id: int, *, for_update: bool = False) -> Optional[models.BreedingRecord]:
        q = self.db.query(models.BreedingRecord).filter(models.BreedingRecord.id == record_id)
        if for_update:
            # Row lock so concurrent farrowings on one record serialize
            q = q.with_for_update()
        return q.first()

    def get(self, record_id: int, *, for_update: bool = False) -> models.BreedingRecord:
        record = self.find(record_id, for_update=for_update)
        if not record:
            raise NotFoundError("Breeding record not found", details={"breeding_record_id": record_id})
        return record

    def update(self, record_id: int, fields: dict[str, Any]) -> models.BreedingRecord:
        record = self.get(record_id)
        for key, value in fields.items():
            setattr(record, key, value)
        self.db.flush()
        return record

    def find_active_for_sow(self, sow_id: str, since_date: date) -> list[models.BreedingRecord]:
        """Non-terminal records for the sow bred after `since_date`."""
        return (
            self.db.query(models.BreedingRecord)
            .filter(models.BreedingRecord.sow_id == sow_id)
            .filter(models.BreedingRecord.breeding_status.in_(models.ACTIVE_RECORD_STATUSES))
            .filter(models.BreedingRecord.breeding_date > since_date)
            .order_by(models.BreedingRecord.breeding_date.desc())
            .all()
        )

    def list_non_terminal(self) -> list[models.BreedingRecord]:
        return (
            self.db.query(models.BreedingRecord)
            .filter(models.BreedingRecord.breeding_status.in_(models.ACTIVE_RECORD_STATUSES))
            .order_by(models.BreedingRecord.expected_farrowing_date.asc())
            .all()
        )

    def list_all(self) -> list[models.BreedingRecord]:
        return (
            self.db.query(models.BreedingRecord)
            .order_by(models.BreedingRecord.breeding_date.desc(), models.BreedingRecord.id.desc())
            .all()
        )

    def delete(self, record: models.BreedingRecord) -> None:
        self.db.delete(record)
        self.db.flush()


class LitterStore:
    def __init__(self, db: Session):
        self.db = db

    def exists(self, litter_id: str) -> bool:
        return (
            self.db.query(models.Litter.id)
            .filter(models.Litter.litter_id == litter_id)
            .first()
            is not None
        )

    def insert(self, litter: models.Litter) -> models.Litter:
        self.db.add(litter)
        self.db.flush()
        return litter

    def ids_with_prefix(self, prefix: str) -> list[str]:
        rows = (
            self.db.query(models.Litter.litter_id)
            .filter(models.Litter.litter_id.like(f"{prefix}%"))
            .all()
        )
        return [r[0] for r in rows]
