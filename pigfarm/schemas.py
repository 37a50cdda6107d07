from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


# -----------------------------
# Pigs
# -----------------------------

class PigCreate(BaseModel):
    pig_id: str = Field(min_length=1, max_length=10)
    gender: str = Field(pattern=r"^(male|female)$")
    breed: Optional[str] = None
    birth_date: Optional[date] = None
    weight: Optional[float] = Field(default=None, ge=0)
    location: Optional[str] = None
    breeding_status: str = Field(
        default="available",
        pattern=r"^(available|breeding|pregnant|farrowed|weaning|retired)$",
    )
    notes: Optional[str] = None


class PigOut(PigCreate):
    id: int
    current_breeding_record_id: Optional[int] = None

    class Config:
        from_attributes = True


class PigBreedingStatusUpdate(BaseModel):
    breeding_status: str = Field(pattern=r"^(available|breeding|pregnant|farrowed|weaning|retired)$")


# -----------------------------
# Breeding records
# -----------------------------

BOAR_SOURCE_PATTERN = (
    r"^(own_farm|neighboring_farm|breeding_center|artificial_insemination"
    r"|purchased_service|exchange_program|other)$"
)


class BreedingCreate(BaseModel):
    sow_id: str
    boar_id: str
    breeding_date: date
    boar_source: str = Field(default="own_farm", pattern=BOAR_SOURCE_PATTERN)
    notes: Optional[str] = None


class BreedingUpdate(BaseModel):
    sow_id: Optional[str] = None
    boar_id: Optional[str] = None
    breeding_date: Optional[date] = None
    expected_farrowing_date: Optional[date] = None
    boar_source: Optional[str] = Field(default=None, pattern=BOAR_SOURCE_PATTERN)
    notes: Optional[str] = None
    breeding_status: Optional[str] = None   # bred / confirmed_pregnant / due_soon / overdue / failed


class BreedingOut(BaseModel):
    id: int
    sow_id: str
    boar_id: str
    breeding_date: date
    expected_farrowing_date: date
    boar_source: Optional[str] = None
    notes: Optional[str] = None
    breeding_status: str
    actual_farrowing_date: Optional[date] = None
    litter_size: Optional[int] = None
    number_died: Optional[int] = None
    total_born: Optional[int] = None
    registered_by: Optional[int] = None
    days_left_to_farrowing: Optional[int] = None

    class Config:
        from_attributes = True


class FarrowingCreate(BaseModel):
    litter_id: str = Field(min_length=1, max_length=20)
    birth_date: date
    male_count: int = Field(default=0, ge=0)
    female_count: int = Field(default=0, ge=0)
    number_died: int = Field(default=0, ge=0)
    average_weight: Optional[float] = Field(default=None, ge=0)
    location: Optional[str] = None
    health_status: str = Field(default="healthy", pattern=r"^(healthy|average|bad)$")
    health_reason: Optional[str] = None
    number_affected: Optional[int] = Field(default=None, ge=0)


class FarrowingOut(BaseModel):
    litter_id: str
    breeding_record_id: int
    sow_status: str
    litter_size: int
    number_died: int
    total_born: int
    male_count: int
    female_count: int


class StatusSweepOut(BaseModel):
    records_updated: int
    sows_updated: int


class BreedingStatistics(BaseModel):
    total_records: int
    pregnant_sows: int
    farrowed_sows: int
    weaning_sows: int
    due_soon: int
    overdue: int
    avg_days_to_farrowing: int


class DueItem(BaseModel):
    breeding_record_id: int
    sow_id: str
    boar_id: str
    expected_farrowing_date: date
    days_left: int
    kind: str   # due_soon / overdue
    label: str


class NextLitterIdOut(BaseModel):
    next_litter_id: str


# -----------------------------
# Litters
# -----------------------------

class LitterOut(BaseModel):
    id: int
    litter_id: str
    breeding_record_id: Optional[int] = None
    birth_date: date
    sow_id: str
    boar_id: str
    male_count: int
    female_count: int
    number_died: int
    total_born: int
    average_weight: Optional[float] = None
    piglet_status: str
    location: Optional[str] = None
    health_status: str
    health_reason: Optional[str] = None
    number_affected: Optional[int] = None

    class Config:
        from_attributes = True


# -----------------------------
# Audit / delete approval
# -----------------------------

class DeleteRequestCreate(BaseModel):
    reason: str


class DeleteRequestOut(BaseModel):
    id: int
    requester_id: int
    item_type: str
    item_id: str
    item_details: Optional[dict[str, Any]] = None
    reason: str
    status: str
    processed_by: Optional[int] = None
    processed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class EditChangeOut(BaseModel):
    id: int
    user_id: int
    entity_type: str
    entity_id: str
    action: str
    changes: Optional[dict[str, Any]] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AuditActivityOut(BaseModel):
    id: int
    user_id: int
    activity_type: str
    description: Optional[str] = None
    details: Optional[dict[str, Any]] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# -----------------------------
# Actors
# -----------------------------

class Actor(BaseModel):
    id: int
    role: str = Field(default="employee", pattern=r"^(admin|manager|employee|cashier|vet)$")

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"
