from __future__ import annotations

from fastapi import Depends, Header, Request

from . import schemas
from .audit import AuditSink
from .breeding import BreedingService
from .delete_requests import DeleteApprovalWorkflow
from .errors import PermissionDenied


# Identity is resolved upstream (gateway / auth service); this only reads it.
def get_actor(
    x_employee_id: int = Header(),
    x_employee_role: str = Header(default="employee", pattern=r"^(admin|manager|employee|cashier|vet)$"),
) -> schemas.Actor:
    return schemas.Actor(id=x_employee_id, role=x_employee_role)


def require_admin(actor: schemas.Actor = Depends(get_actor)) -> schemas.Actor:
    if not actor.is_admin:
        raise PermissionDenied("Admin role required")
    return actor


def get_audit(request: Request) -> AuditSink:
    return request.app.state.audit


def get_breeding_service(request: Request) -> BreedingService:
    state = request.app.state
    return BreedingService(state.session_factory, state.audit, state.settings)


def get_delete_workflow(request: Request) -> DeleteApprovalWorkflow:
    state = request.app.state
    return DeleteApprovalWorkflow(state.session_factory, state.audit)
