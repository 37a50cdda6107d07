from __future__ import annotations

from datetime import date

import pytest

from pigfarm import models
from pigfarm.errors import ConflictError, NotFoundError, PermissionDenied, ValidationError
from pigfarm.schemas import Actor, BreedingCreate, FarrowingCreate

REASON = "Entered against the wrong sow"


@pytest.fixture()
def record(service, add_pig):
    add_pig("S1", "female")
    add_pig("B1", "male")
    return service.register_pairing(
        BreedingCreate(sow_id="S1", boar_id="B1", breeding_date=date(2024, 1, 1)), 1
    )


def test_reason_must_be_meaningful(workflow, employee, record, count):
    with pytest.raises(ValidationError):
        workflow.create_request(employee, "breeding_record", record.id, "  oops  ")

    assert count(models.DeleteRequest) == 0


def test_unknown_item_and_type(workflow, employee):
    with pytest.raises(NotFoundError):
        workflow.create_request(employee, "breeding_record", 404, REASON)
    with pytest.raises(ValidationError):
        workflow.create_request(employee, "tractor", 1, REASON)


def test_one_pending_request_per_item(workflow, employee, record, count):
    request = workflow.create_request(employee, "breeding_record", record.id, REASON)

    assert request.status == "pending"
    assert request.item_details["sow_id"] == "S1"
    with pytest.raises(ConflictError):
        workflow.create_request(Actor(id=2), "breeding_record", record.id, REASON)
    assert count(models.DeleteRequest) == 1


def test_only_admin_can_process(workflow, employee, record):
    request = workflow.create_request(employee, "breeding_record", record.id, REASON)

    with pytest.raises(PermissionDenied):
        workflow.approve(request.id, Actor(id=5, role="manager"))
    with pytest.raises(PermissionDenied):
        workflow.reject(request.id, employee)


def test_approval_deletes_record_and_frees_sow(workflow, employee, admin, record, fetch, count):
    request = workflow.create_request(employee, "breeding_record", record.id, REASON)

    approved = workflow.approve(request.id, admin)

    assert approved.status == "approved"
    assert approved.processed_by == admin.id
    assert fetch(models.BreedingRecord, id=record.id) is None
    sow = fetch(models.Pig, pig_id="S1")
    assert sow.breeding_status == "available"
    assert sow.current_breeding_record_id is None
    assert count(models.AuditActivity, activity_type="delete") == 1
    assert count(models.AuditActivity, activity_type="approve") == 1

    with pytest.raises(NotFoundError):
        workflow.approve(request.id, admin)


def test_rejection_keeps_record_and_allows_new_request(workflow, employee, admin, record, fetch):
    request = workflow.create_request(employee, "breeding_record", record.id, REASON)

    rejected = workflow.reject(request.id, admin)

    assert rejected.status == "rejected"
    assert fetch(models.BreedingRecord, id=record.id) is not None
    again = workflow.create_request(employee, "breeding_record", record.id, REASON)
    assert again.status == "pending"


def test_only_requester_can_cancel(workflow, employee, record):
    request = workflow.create_request(employee, "breeding_record", record.id, REASON)

    with pytest.raises(NotFoundError):
        workflow.cancel(request.id, Actor(id=2))

    cancelled = workflow.cancel_for_item("breeding_record", record.id, employee)
    assert cancelled.id == request.id
    assert cancelled.status == "cancelled"
    with pytest.raises(NotFoundError):
        workflow.cancel(request.id, employee)


def test_pig_in_use_cannot_be_deleted(workflow, employee, admin, record, fetch):
    request = workflow.create_request(employee, "pig", "S1", REASON)

    with pytest.raises(ConflictError):
        workflow.approve(request.id, admin)

    assert fetch(models.Pig, pig_id="S1") is not None
    assert fetch(models.DeleteRequest, id=request.id).status == "pending"


def test_unused_pig_can_be_deleted(workflow, employee, admin, add_pig, fetch):
    add_pig("B9", "male")
    request = workflow.create_request(employee, "pig", "B9", REASON)

    workflow.approve(request.id, admin)

    assert fetch(models.Pig, pig_id="B9") is None


@pytest.mark.parametrize(
    "sow_status, expected",
    [
        ("farrowed", "available"),
        ("weaning", "weaning"),
    ],
)
def test_deleting_farrowed_record(workflow, service, employee, admin, record, fetch, sow_status, expected):
    service.register_farrowing(
        record.id,
        FarrowingCreate(litter_id="LT001", birth_date=date(2024, 4, 24), female_count=6),
        employee.id,
        today=date(2024, 4, 24),
    )
    if sow_status == "weaning":
        service.set_pig_breeding_status("S1", "weaning", employee.id)
    request = workflow.create_request(employee, "breeding_record", record.id, REASON)

    workflow.approve(request.id, admin)

    sow = fetch(models.Pig, pig_id="S1")
    assert sow.breeding_status == expected
    assert sow.current_breeding_record_id is None
    assert fetch(models.Litter, litter_id="LT001").breeding_record_id is None
