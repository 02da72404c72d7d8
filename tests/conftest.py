"""
Test configuration and fixtures.

Provides:
- In-memory SQLite session, fresh schema per test
- HTTPX AsyncClient with identity headers
- Factories for templates used across tests
"""
import os
import uuid
from typing import AsyncGenerator, Generator

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite://")

from safetyforms.main import app
from safetyforms.core.deps import get_db
from safetyforms.db import models  # noqa: F401
from safetyforms.db.base import Base
from safetyforms.db.enums import FieldType, Role
from safetyforms.schemas.forms import FormTemplate
from safetyforms.services import form_template_service, submission_events


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """
    Creates a database session on a private in-memory SQLite database.

    StaticPool keeps the single connection alive so every session in the
    test sees the same tables.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()

    yield session

    session.close()
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(autouse=True)
def reset_submission_listeners() -> Generator[None, None, None]:
    submission_events.clear_listeners()
    yield
    submission_events.clear_listeners()


@pytest.fixture
def org_id() -> str:
    return f"org-{uuid.uuid4().hex[:8]}"


# =============================================================================
# Template Factories
# =============================================================================

@pytest.fixture
def incident_template() -> FormTemplate:
    """Unsaved template with one field of each commonly used type."""
    template = form_template_service.create_template("Site Incident", created_by="admin-1")
    template = form_template_service.add_field(template, FieldType.TEXT, "Title")
    template = form_template_service.add_field(template, FieldType.NUMBER, "Workers Involved")
    template = form_template_service.add_field(template, FieldType.SELECT, "Severity")
    template = form_template_service.add_field(template, FieldType.CHECKBOX, "First Aid Given")
    title, workers, severity, _ = form_template_service.active_fields(template)
    template = form_template_service.update_field(template, title.id, {"required": True}).template
    template = form_template_service.update_field(
        template,
        severity.id,
        {
            "options": [
                {"value": "low", "label": "Low"},
                {"value": "high", "label": "High"},
            ]
        },
    ).template
    template = form_template_service.set_field_validation_rule(template, workers.id, "min", 0)
    return template


# =============================================================================
# Client Fixtures
# =============================================================================

def _identity_headers(user_id: str, org_id: str, role: Role) -> dict[str, str]:
    return {"X-User-Id": user_id, "X-Org-Id": org_id, "X-Role": role.value}


@pytest.fixture(scope="function")
async def client(db: Session) -> AsyncGenerator[AsyncClient, None]:
    """
    Create AsyncClient without identity headers.
    """
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def admin_client(db: Session, org_id: str) -> AsyncGenerator[AsyncClient, None]:
    """
    Create AsyncClient acting as an organization admin.
    """
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers=_identity_headers("admin-1", org_id, Role.ADMIN),
    ) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def user_client(db: Session, org_id: str) -> AsyncGenerator[AsyncClient, None]:
    """
    Create AsyncClient acting as a regular field worker in the same organization.
    """
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers=_identity_headers("worker-1", org_id, Role.USER),
    ) as c:
        yield c

    app.dependency_overrides.clear()
