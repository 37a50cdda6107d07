from __future__ import annotations

from sqlalchemy import (
    JSON,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
    text,
)

from .database import Base

ACTIVE_RECORD_STATUSES = ("bred", "confirmed_pregnant", "due_soon", "overdue")
TERMINAL_RECORD_STATUSES = ("farrowed", "failed")


class Pig(Base):
    __tablename__ = "grown_pigs"

    id = Column(Integer, primary_key=True, index=True)
    pig_id = Column(String(10), unique=True, nullable=False, index=True)
    gender = Column(String, nullable=False)  # male/female
    breed = Column(String)
    birth_date = Column(Date)
    weight = Column(Float)
    location = Column(String)
    breeding_status = Column(String, nullable=False, default="available", index=True)
    current_breeding_record_id = Column(Integer, nullable=True)
    notes = Column(Text)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class BreedingRecord(Base):
    __tablename__ = "breeding_records"

    id = Column(Integer, primary_key=True, index=True)
    sow_id = Column(String(10), ForeignKey("grown_pigs.pig_id"), nullable=False, index=True)
    boar_id = Column(String(10), ForeignKey("grown_pigs.pig_id"), nullable=False, index=True)
    breeding_date = Column(Date, nullable=False, index=True)
    expected_farrowing_date = Column(Date, nullable=False, index=True)
    boar_source = Column(String, default="own_farm")
    notes = Column(Text)
    breeding_status = Column(String, nullable=False, default="bred", index=True)
    actual_farrowing_date = Column(Date)
    litter_size = Column(Integer)  # live born
    number_died = Column(Integer, default=0)
    total_born = Column(Integer, default=0)
    registered_by = Column(Integer)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class Litter(Base):
    __tablename__ = "litters"

    id = Column(Integer, primary_key=True, index=True)
    litter_id = Column(String(20), unique=True, nullable=False, index=True)
    breeding_record_id = Column(Integer, ForeignKey("breeding_records.id", ondelete="SET NULL"))
    birth_date = Column(Date, nullable=False)
    sow_id = Column(String(10), nullable=False)
    boar_id = Column(String(10), nullable=False)
    male_count = Column(Integer, nullable=False)
    female_count = Column(Integer, nullable=False)
    number_died = Column(Integer, default=0)
    total_born = Column(Integer, nullable=False)
    average_weight = Column(Float)
    piglet_status = Column(String, default="farrowed")
    location = Column(String)
    health_status = Column(String, default="healthy")
    health_reason = Column(Text)
    number_affected = Column(Integer)
    registered_by = Column(Integer)
    created_at = Column(DateTime, server_default=func.now())


class DeleteRequest(Base):
    __tablename__ = "delete_requests"
    __table_args__ = (
        # At most one pending request per item
        Index(
            "uq_delete_requests_pending_item",
            "item_type",
            "item_id",
            unique=True,
            sqlite_where=text("status = 'pending'"),
            postgresql_where=text("status = 'pending'"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    requester_id = Column(Integer, nullable=False)
    item_type = Column(String(50), nullable=False, index=True)
    item_id = Column(String(100), nullable=False)
    item_details = Column(JSON)
    reason = Column(Text, nullable=False)
    status = Column(String, nullable=False, default="pending", index=True)  # pending/approved/rejected/cancelled
    processed_by = Column(Integer)
    processed_at = Column(DateTime)
    created_at = Column(DateTime, server_default=func.now())


class EditChange(Base):
    __tablename__ = "edit_changes"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    entity_type = Column(String(50), nullable=False, index=True)
    entity_id = Column(String(100), nullable=False)
    action = Column(String, nullable=False)  # create/update/delete
    changes = Column(JSON)
    created_at = Column(DateTime, server_default=func.now())


class AuditActivity(Base):
    __tablename__ = "audit_activities"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    activity_type = Column(String(50), nullable=False)
    description = Column(Text)
    details = Column(JSON)
    created_at = Column(DateTime, server_default=func.now())
