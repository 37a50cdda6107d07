from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from pigfarm import models
from pigfarm.breeding import BreedingService
from pigfarm.config import Settings
from pigfarm.delete_requests import DeleteApprovalWorkflow
from pigfarm.main import create_app
from pigfarm.schemas import Actor

EMPLOYEE_HEADERS = {"X-Employee-Id": "1", "X-Employee-Role": "employee"}
ADMIN_HEADERS = {"X-Employee-Id": "99", "X-Employee-Role": "admin"}


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return Settings(database_url=f"sqlite:///{tmp_path / 'test.db'}", log_level="WARNING")


@pytest.fixture()
def app(settings):
    app = create_app(settings)
    yield app
    app.state.engine.dispose()


@pytest.fixture()
def client(app):
    with TestClient(app, headers=EMPLOYEE_HEADERS) as c:
        yield c


@pytest.fixture()
def session_factory(app):
    return app.state.session_factory


@pytest.fixture()
def service(app) -> BreedingService:
    return BreedingService(app.state.session_factory, app.state.audit, app.state.settings)


@pytest.fixture()
def workflow(app) -> DeleteApprovalWorkflow:
    return DeleteApprovalWorkflow(app.state.session_factory, app.state.audit)


@pytest.fixture()
def employee() -> Actor:
    return Actor(id=1, role="employee")


@pytest.fixture()
def admin() -> Actor:
    return Actor(id=99, role="admin")


@pytest.fixture()
def add_pig(session_factory):
    def _add(pig_id: str, gender: str, breeding_status: str = "available") -> None:
        with session_factory() as db:
            db.add(models.Pig(pig_id=pig_id, gender=gender, breed="Large White", breeding_status=breeding_status))
            db.commit()

    return _add


@pytest.fixture()
def fetch(session_factory):
    """Read a row back in a fresh session."""

    def _fetch(model, **filters):
        with session_factory() as db:
            return db.query(model).filter_by(**filters).first()

    return _fetch


@pytest.fixture()
def count(session_factory):
    def _count(model, **filters) -> int:
        with session_factory() as db:
            return db.query(model).filter_by(**filters).count()

    return _count
