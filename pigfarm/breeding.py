"""
Breeding cycle state machine.

A pairing starts a breeding record in ``bred`` and moves the sow to
``pregnant``. The status sweep advances records by days left to the
expected farrowing date:

    bred -> confirmed_pregnant -> due_soon -> overdue

Registering the farrowing ends the cycle (``farrowed``) and creates the
litter; cancelling it ends in ``failed`` and frees the sow. Records in
``farrowed`` or ``failed`` are never touched by the sweep again.

Every operation runs in its own transaction and re-reads current state.
Audit entries are written after the commit.
"""
from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from . import models, schemas
from .audit import AuditSink, snapshot
from .config import Settings
from .database import transaction
from .errors import ConflictError, ValidationError
from .litter_ids import next_litter_id, suggest_alternate
from .stores import AVAILABLE_FOR_PAIRING, AnimalRegistry, BreedingRecordStore, LitterStore

logger = logging.getLogger(__name__)

ENTITY = "breeding_record"

EDITABLE_FIELDS = (
    "sow_id",
    "boar_id",
    "breeding_date",
    "expected_farrowing_date",
    "boar_source",
    "notes",
    "breeding_status",
)


def expected_farrowing_date(breeding_date: date, gestation_days: int = 114) -> date:
    return breeding_date + timedelta(days=gestation_days)


def days_left(expected: date, today: date) -> int:
    return (expected - today).days


def next_status(status: str, days: int, due_soon_days: int = 7, confirm_after_days: int = 21) -> str:
    if status in models.TERMINAL_RECORD_STATUSES:
        return status
    if days < 0:
        return "overdue"
    if days <= due_soon_days:
        return "due_soon"
    if days > confirm_after_days and status == "bred":
        return "confirmed_pregnant"
    return status


def sow_status_for(record_status: str) -> str:
    if record_status == "farrowed":
        return "farrowed"
    if record_status == "failed":
        return "available"
    return "pregnant"


class BreedingService:
    def __init__(self, session_factory: sessionmaker, audit: AuditSink, settings: Settings):
        self.session_factory = session_factory
        self.audit = audit
        self.settings = settings

    # -----------------------------
    # Reads
    # -----------------------------
    def to_out(self, record: models.BreedingRecord, today: Optional[date] = None) -> schemas.BreedingOut:
        out = schemas.BreedingOut.model_validate(record)
        out.days_left_to_farrowing = days_left(record.expected_farrowing_date, today or date.today())
        return out

    def list_records(self, today: Optional[date] = None) -> list[schemas.BreedingOut]:
        with transaction(self.session_factory) as db:
            records = BreedingRecordStore(db).list_all()
        return [self.to_out(r, today) for r in records]

    def get_record(self, record_id: int, today: Optional[date] = None) -> schemas.BreedingOut:
        with transaction(self.session_factory) as db:
            record = BreedingRecordStore(db).get(record_id)
        return self.to_out(record, today)

    def active_for_sow(self, sow_id: str, since: date) -> list[models.BreedingRecord]:
        with transaction(self.session_factory) as db:
            return BreedingRecordStore(db).find_active_for_sow(sow_id, since)

    def next_litter_id(self) -> str:
        with transaction(self.session_factory) as db:
            return next_litter_id(
                LitterStore(db),
                prefix=self.settings.litter_id_prefix,
                max_attempts=self.settings.litter_id_max_attempts,
            )

    # -----------------------------
    # Pairing
    # -----------------------------
    def _check_boar(self, registry: AnimalRegistry, boar_id: str) -> models.Pig:
        boar = registry.get(boar_id)
        if boar.gender != "male":
            raise ValidationError(f"Pig {boar_id} is not male", details={"rule": "boar_is_male"})
        return boar

    def _check_sow(self, registry: AnimalRegistry, sow_id: str, for_update: bool = False) -> models.Pig:
        sow = registry.get(sow_id, for_update=for_update)
        if sow.gender != "female":
            raise ValidationError(f"Pig {sow_id} is not female", details={"rule": "sow_is_female"})
        return sow

    def _check_not_cycling(
        self,
        records: BreedingRecordStore,
        sow_id: str,
        breeding_date: date,
        exclude_id: Optional[int] = None,
    ) -> None:
        since = breeding_date - timedelta(days=self.settings.active_cycle_window_days)
        active = [r for r in records.find_active_for_sow(sow_id, since) if r.id != exclude_id]
        if active:
            raise ConflictError(
                "Sow is already in an active breeding cycle",
                details={"rule": "sow_not_double_booked", "breeding_record_id": active[0].id},
            )

    def register_pairing(self, payload: schemas.BreedingCreate, actor: int) -> models.BreedingRecord:
        with transaction(self.session_factory) as db:
            registry = AnimalRegistry(db)
            records = BreedingRecordStore(db)

            sow = self._check_sow(registry, payload.sow_id, for_update=True)
            self._check_boar(registry, payload.boar_id)
            self._check_not_cycling(records, payload.sow_id, payload.breeding_date)

            if sow.breeding_status not in AVAILABLE_FOR_PAIRING:
                raise ValidationError(
                    f"Sow is currently {sow.breeding_status} and not available for breeding",
                    details={"rule": "sow_available", "breeding_status": sow.breeding_status},
                )

            record = models.BreedingRecord(
                sow_id=payload.sow_id,
                boar_id=payload.boar_id,
                breeding_date=payload.breeding_date,
                expected_farrowing_date=expected_farrowing_date(
                    payload.breeding_date, self.settings.gestation_days
                ),
                boar_source=payload.boar_source,
                notes=payload.notes,
                breeding_status="bred",
                number_died=0,
                total_born=0,
                registered_by=actor,
            )
            record_id = records.insert(record)
            registry.claim_for_pairing(payload.sow_id, record_id)

        logger.info("Breeding record %s created for sow %s and boar %s", record_id, record.sow_id, record.boar_id)
        self.audit.record_create(
            actor,
            ENTITY,
            record_id,
            f"Breeding record created for sow {record.sow_id} and boar {record.boar_id}",
        )
        return record

    def update_pairing(
        self, record_id: int, payload: schemas.BreedingUpdate, actor: int
    ) -> models.BreedingRecord:
        # Only fields that were actually provided; notes may be cleared
        fields = {
            k: v
            for k, v in payload.model_dump(exclude_unset=True).items()
            if v is not None or k == "notes"
        }

        with transaction(self.session_factory) as db:
            registry = AnimalRegistry(db)
            records = BreedingRecordStore(db)

            record = records.get(record_id, for_update=True)
            if record.breeding_status in models.TERMINAL_RECORD_STATUSES:
                raise ConflictError(
                    f"Breeding record is already {record.breeding_status} and cannot be edited",
                    details={"breeding_status": record.breeding_status},
                )

            status = fields.get("breeding_status")
            if status is not None:
                if status == "farrowed":
                    raise ValidationError("Use farrowing registration to mark a record farrowed")
                if status not in models.ACTIVE_RECORD_STATUSES and status != "failed":
                    raise ValidationError(
                        f"breeding_status must be one of: "
                        f"{', '.join(models.ACTIVE_RECORD_STATUSES + ('failed',))}"
                    )

            before = snapshot(record, EDITABLE_FIELDS)
            old_sow_id = record.sow_id

            if "sow_id" in fields and fields["sow_id"] != old_sow_id:
                new_sow = self._check_sow(registry, fields["sow_id"], for_update=True)
                if new_sow.breeding_status not in AVAILABLE_FOR_PAIRING:
                    raise ValidationError(
                        f"Sow is currently {new_sow.breeding_status} and not available for breeding",
                        details={"rule": "sow_available", "breeding_status": new_sow.breeding_status},
                    )
            if "boar_id" in fields and fields["boar_id"] != record.boar_id:
                self._check_boar(registry, fields["boar_id"])
            if "breeding_date" in fields and "expected_farrowing_date" not in fields:
                fields["expected_farrowing_date"] = expected_farrowing_date(
                    fields["breeding_date"], self.settings.gestation_days
                )

            new_status = fields.get("breeding_status", record.breeding_status)
            new_sow_id = fields.get("sow_id", old_sow_id)
            if new_status != "failed" and (
                new_sow_id != old_sow_id or "breeding_date" in fields
            ):
                self._check_not_cycling(
                    records,
                    new_sow_id,
                    fields.get("breeding_date", record.breeding_date),
                    exclude_id=record.id,
                )

            record = records.update(record_id, fields)

            if new_sow_id != old_sow_id:
                old_sow = registry.find(old_sow_id)
                if old_sow and old_sow.current_breeding_record_id == record.id:
                    registry.set_breeding_status(old_sow_id, "available", None)

            sow_status = sow_status_for(record.breeding_status)
            if new_sow_id != old_sow_id and sow_status == "pregnant":
                registry.claim_for_pairing(new_sow_id, record.id)
            else:
                registry.set_breeding_status(
                    new_sow_id,
                    sow_status,
                    None if sow_status == "available" else record.id,
                )
            after = snapshot(record, EDITABLE_FIELDS)

        logger.info("Breeding record %s updated, sow %s now %s", record_id, new_sow_id, sow_status)
        self.audit.record_edit(actor, ENTITY, record_id, "update", before, after)
        return record

    def cancel_pairing(self, record_id: int, actor: int) -> models.BreedingRecord:
        return self.update_pairing(record_id, schemas.BreedingUpdate(breeding_status="failed"), actor)

    def set_pig_breeding_status(self, pig_id: str, status: str, actor: int) -> models.Pig:
        """
        Manual status moves outside a cycle: weaning after farrowing, back to
        available, retired. pregnant and farrowed are only reached through
        pairing and farrowing registration.
        """
        if status in ("pregnant", "farrowed"):
            raise ValidationError(
                f"Breeding status {status} is set by pairing or farrowing registration",
                details={"rule": "status_owned_by_breeding_cycle"},
            )

        with transaction(self.session_factory) as db:
            registry = AnimalRegistry(db)
            pig = registry.get(pig_id)
            before = {"breeding_status": pig.breeding_status}

            record_id = pig.current_breeding_record_id
            if record_id is not None:
                record = BreedingRecordStore(db).find(record_id)
                if record and record.breeding_status in models.ACTIVE_RECORD_STATUSES:
                    raise ConflictError(
                        f"Pig {pig_id} is in an active breeding cycle; cancel breeding record {record_id} first",
                        details={"breeding_record_id": record_id},
                    )

            if status == "weaning":
                pig = registry.set_breeding_status(pig_id, status)
            else:
                pig = registry.set_breeding_status(pig_id, status, None)

        self.audit.record_edit(actor, "pig", pig_id, "update", before, {"breeding_status": status})
        return pig

    # -----------------------------
    # Farrowing
    # -----------------------------
    def register_farrowing(
        self,
        record_id: int,
        payload: schemas.FarrowingCreate,
        actor: int,
        today: Optional[date] = None,
    ) -> schemas.FarrowingOut:
        today = today or date.today()
        litter_size = payload.male_count + payload.female_count
        total_born = litter_size + payload.number_died

        with transaction(self.session_factory) as db:
            registry = AnimalRegistry(db)
            records = BreedingRecordStore(db)
            litters = LitterStore(db)

            record = records.get(record_id, for_update=True)
            if record.breeding_status in models.TERMINAL_RECORD_STATUSES:
                raise ConflictError(
                    f"Breeding record is already {record.breeding_status}",
                    details={"breeding_status": record.breeding_status},
                )

            remaining = days_left(record.expected_farrowing_date, today)
            if remaining > self.settings.due_soon_days:
                raise ValidationError(
                    f"Farrowing can only be registered when {self.settings.due_soon_days} days "
                    f"or less remain, or if overdue",
                    details={"rule": "farrowing_window", "days_left": remaining},
                )

            if total_born < 1:
                raise ValidationError(
                    "Must have at least one piglet (male, female, or died)",
                    details={"rule": "total_born_positive"},
                )

            if payload.health_status != "healthy":
                if not payload.health_reason:
                    raise ValidationError(
                        "Health reason is required when health status is not healthy",
                        details={"rule": "health_reason_required"},
                    )
                if not payload.number_affected:
                    raise ValidationError(
                        "Number affected is required when health status is not healthy",
                        details={"rule": "number_affected_required"},
                    )

            if litters.exists(payload.litter_id):
                raise ConflictError(
                    "Litter ID already exists. Please use a unique ID.",
                    details={
                        "error": "DUPLICATE_LITTER_ID",
                        "suggested_id": suggest_alternate(litters, payload.litter_id),
                    },
                )

            litter = models.Litter(
                litter_id=payload.litter_id,
                breeding_record_id=record.id,
                birth_date=payload.birth_date,
                sow_id=record.sow_id,
                boar_id=record.boar_id,
                male_count=payload.male_count,
                female_count=payload.female_count,
                number_died=payload.number_died,
                total_born=total_born,
                average_weight=payload.average_weight,
                piglet_status="farrowed",
                location=payload.location,
                health_status=payload.health_status,
                health_reason=payload.health_reason,
                number_affected=payload.number_affected,
                registered_by=actor,
            )
            try:
                litters.insert(litter)
            except IntegrityError:
                # Lost a race for the same litter id
                db.rollback()
                raise ConflictError(
                    "Litter ID already exists. Please use a unique ID.",
                    details={
                        "error": "DUPLICATE_LITTER_ID",
                        "suggested_id": suggest_alternate(litters, payload.litter_id),
                    },
                )

            records.update(
                record.id,
                {
                    "breeding_status": "farrowed",
                    "actual_farrowing_date": payload.birth_date,
                    "litter_size": litter_size,
                    "number_died": payload.number_died,
                    "total_born": total_born,
                },
            )
            registry.set_breeding_status(record.sow_id, "farrowed")
            sow_id = record.sow_id

        logger.info(
            "Farrowing registered for breeding record %s: litter %s, %s alive, %s died",
            record_id,
            payload.litter_id,
            litter_size,
            payload.number_died,
        )
        self.audit.record_update(
            actor,
            ENTITY,
            record_id,
            f"Farrowing registered for breeding record {record_id}, litter {payload.litter_id} "
            f"created with {litter_size} living piglets",
            {"field": "breeding_status", "old_value": "pregnant", "new_value": "farrowed"},
        )
        return schemas.FarrowingOut(
            litter_id=payload.litter_id,
            breeding_record_id=record_id,
            sow_status="farrowed",
            litter_size=litter_size,
            number_died=payload.number_died,
            total_born=total_born,
            male_count=payload.male_count,
            female_count=payload.female_count,
        )

    # -----------------------------
    # Status sweep
    # -----------------------------
    def recompute_statuses(self, today: Optional[date] = None, actor: Optional[int] = None) -> schemas.StatusSweepOut:
        today = today or date.today()
        records_updated = 0
        sows_updated = 0

        with transaction(self.session_factory) as db:
            records = BreedingRecordStore(db)
            registry = AnimalRegistry(db)

            active = records.list_non_terminal()
            for record in active:
                new = next_status(
                    record.breeding_status,
                    days_left(record.expected_farrowing_date, today),
                    self.settings.due_soon_days,
                    self.settings.confirm_after_days,
                )
                if new != record.breeding_status:
                    record.breeding_status = new
                    records_updated += 1

            for sow in registry.sows_referencing([r.id for r in active]):
                if sow.breeding_status != "pregnant":
                    sow.breeding_status = "pregnant"
                    sows_updated += 1

            for sow in registry.sows_on_failed_records():
                sow.breeding_status = "available"
                sow.current_breeding_record_id = None
                sows_updated += 1
            db.flush()

        logger.info("Status sweep updated %s breeding records and %s sows", records_updated, sows_updated)
        if actor is not None and (records_updated or sows_updated):
            self.audit.record_activity(
                actor,
                "update",
                "Breeding statuses recomputed",
                {"records_updated": records_updated, "sows_updated": sows_updated, "as_of": today},
            )
        return schemas.StatusSweepOut(records_updated=records_updated, sows_updated=sows_updated)

    # -----------------------------
    # Calendar views
    # -----------------------------
    def statistics(self, today: Optional[date] = None) -> schemas.BreedingStatistics:
        today = today or date.today()
        with transaction(self.session_factory) as db:
            all_records = BreedingRecordStore(db).list_all()
            sow_counts = {
                status: db.query(models.Pig)
                .filter(models.Pig.gender == "female")
                .filter(models.Pig.breeding_status == status)
                .count()
                for status in ("pregnant", "farrowed", "weaning")
            }

        active = [r for r in all_records if r.breeding_status in models.ACTIVE_RECORD_STATUSES]
        remaining = [days_left(r.expected_farrowing_date, today) for r in active]
        ahead = [
            days_left(r.expected_farrowing_date, today)
            for r in active
            if r.breeding_status != "overdue" and days_left(r.expected_farrowing_date, today) > 0
        ]
        return schemas.BreedingStatistics(
            total_records=len(all_records),
            pregnant_sows=sow_counts["pregnant"],
            farrowed_sows=sow_counts["farrowed"],
            weaning_sows=sow_counts["weaning"],
            due_soon=sum(1 for d in remaining if 0 < d <= self.settings.due_soon_days),
            overdue=sum(1 for d in remaining if d < 0),
            avg_days_to_farrowing=round(sum(ahead) / len(ahead)) if ahead else 0,
        )

    def due_list(self, today: Optional[date] = None, window_days: Optional[int] = None) -> list[schemas.DueItem]:
        today = today or date.today()
        window = self.settings.due_soon_days if window_days is None else window_days

        with transaction(self.session_factory) as db:
            active = BreedingRecordStore(db).list_non_terminal()

        out: list[schemas.DueItem] = []
        for r in active:
            d = days_left(r.expected_farrowing_date, today)
            if d > window:
                continue
            if d < 0:
                kind = "overdue"
                label = f"Sow {r.sow_id} is {-d} day{'s' if d != -1 else ''} overdue for farrowing"
            else:
                kind = "due_soon"
                label = f"Sow {r.sow_id} is due to farrow in {d} day{'s' if d != 1 else ''}"
            out.append(schemas.DueItem(
                breeding_record_id=r.id,
                sow_id=r.sow_id,
                boar_id=r.boar_id,
                expected_farrowing_date=r.expected_farrowing_date,
                days_left=d,
                kind=kind,
                label=label,
            ))
        # Overdue first
        out.sort(key=lambda item: (item.kind != "overdue", item.days_left))
        return out

