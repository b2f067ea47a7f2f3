"""Shared test fixtures for the BPM Flow backend.

Provides:
- Per-test database (in-memory SQLite by default, TEST_DATABASE_URL to point at PostgreSQL)
- Outbound HTTP mock for automation steps (httpx.MockTransport)
- FastAPI test client with overridden DB and automation runner dependencies
- Factory helpers for organizations, users, org chart and workflow graphs
"""

from __future__ import annotations

import os
import uuid

# Set test environment BEFORE any app imports so Settings() picks them up.
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-pytest-only")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

from types import SimpleNamespace

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

from bpmflow.core.security import create_access_token
from bpmflow.models.base import Base
from bpmflow.services.automation_runner import AutomationRunner

# ---------------------------------------------------------------------------
# Database engine
# ---------------------------------------------------------------------------


def _test_db_url() -> str:
    return os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite://")


def _create_test_engine(url: str):
    if url.startswith("sqlite"):
        # One shared connection so the in-memory database survives across sessions
        return create_async_engine(
            url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    return create_async_engine(url, echo=False, poolclass=NullPool)


@pytest.fixture
async def db():
    """Provide a session on a freshly created schema, dropped after the test.

    The engine functions commit as they go, so each test gets its own schema
    instead of the savepoint-rollback pattern.
    """
    engine = _create_test_engine(_test_db_url())
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    session = AsyncSession(engine, expire_on_commit=False)
    yield session

    await session.close()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


# ---------------------------------------------------------------------------
# Outbound HTTP (automation steps)
# ---------------------------------------------------------------------------


class MockHTTP:
    """Records outbound requests and answers them with ``handler``.

    Tests replace ``handler`` to simulate failures::

        mock_http.handler = lambda request: httpx.Response(500, text="boom")
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.handler = lambda request: httpx.Response(200, json={"ok": True})
        self.client = httpx.AsyncClient(transport=httpx.MockTransport(self._dispatch))

    def _dispatch(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)


@pytest.fixture
async def mock_http():
    mock = MockHTTP()
    yield mock
    await mock.client.aclose()


@pytest.fixture
def runner(mock_http):
    """Automation runner whose HTTP calls never leave the process."""
    return AutomationRunner(client=mock_http.client)


# ---------------------------------------------------------------------------
# FastAPI test app + HTTP client
# ---------------------------------------------------------------------------


@pytest.fixture
async def app(db, runner):
    """Minimal FastAPI test app with ``get_db`` and the automation runner overridden."""
    from fastapi import FastAPI

    from bpmflow.api.deps import get_automation_runner
    from bpmflow.api.errors import engine_error_handler
    from bpmflow.api.v1.router import api_router
    from bpmflow.config import settings
    from bpmflow.database import get_db
    from bpmflow.services.execution_engine import EngineError

    test_app = FastAPI()
    test_app.add_exception_handler(EngineError, engine_error_handler)
    test_app.include_router(api_router, prefix=settings.API_V1_PREFIX)

    async def _override_get_db():
        yield db

    test_app.dependency_overrides[get_db] = _override_get_db
    test_app.dependency_overrides[get_automation_runner] = lambda: runner
    yield test_app
    test_app.dependency_overrides.clear()


@pytest.fixture
async def client(app):
    """HTTP test client for the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c


# ---------------------------------------------------------------------------
# Factory helpers
# ---------------------------------------------------------------------------


async def create_organization(db, *, name="Acme", settings=None):
    """Insert an organization into the test database."""
    from bpmflow.models.organization import Organization

    org = Organization(name=name, settings=settings if settings is not None else {})
    db.add(org)
    await db.flush()
    return org


async def create_user(
    db, *, email=None, display_name="Test User", organization_id=None, is_active=True
):
    """Insert a user into the test database."""
    from bpmflow.models.user import User

    user = User(
        email=email or f"test-{uuid.uuid4().hex[:8]}@example.com",
        display_name=display_name,
        organization_id=organization_id,
        is_active=is_active,
    )
    db.add(user)
    await db.flush()
    return user


async def create_department(db, *, organization_id, name="Compras"):
    from bpmflow.models.org_chart import Department

    dept = Department(organization_id=organization_id, name=name)
    db.add(dept)
    await db.flush()
    return dept


async def create_position(db, *, organization_id, title="Analista", department_id=None):
    from bpmflow.models.org_chart import Position

    position = Position(organization_id=organization_id, title=title, department_id=department_id)
    db.add(position)
    await db.flush()
    return position


async def assign_position(db, user, position, **kwargs):
    """Give ``user`` the ``position`` (pool order follows insertion order)."""
    from bpmflow.models.org_chart import EmployeePosition

    link = EmployeePosition(user_id=user.id, position_id=position.id, **kwargs)
    db.add(link)
    await db.flush()
    return link


async def create_workflow(db, *, organization_id, name="Solicitud de Compra", **kwargs):
    """Insert a workflow into the test database."""
    from bpmflow.models.workflow import Workflow

    workflow = Workflow(
        organization_id=organization_id,
        name=name,
        status=kwargs.get("status", "active"),
        name_template=kwargs.get("name_template"),
        description=kwargs.get("description"),
    )
    db.add(workflow)
    await db.flush()
    return workflow


async def create_activity(db, *, workflow, name="Revisión", type="task", **kwargs):
    """Insert an activity (graph node); extra kwargs map to Activity columns."""
    from bpmflow.models.workflow import Activity

    activity = Activity(workflow_id=workflow.id, name=name, type=type, **kwargs)
    db.add(activity)
    await db.flush()
    return activity


async def create_transition(db, *, workflow, source, target, condition=None, **kwargs):
    from bpmflow.models.workflow import Transition

    transition = Transition(
        workflow_id=workflow.id,
        source_id=source.id,
        target_id=target.id,
        condition=condition,
        **kwargs,
    )
    db.add(transition)
    await db.flush()
    return transition


async def create_field(db, *, activity, name, type="text", **kwargs):
    """Insert a form field definition on ``activity``."""
    from bpmflow.models.activity_field import ActivityFieldDefinition

    field = ActivityFieldDefinition(activity_id=activity.id, name=name, type=type, **kwargs)
    db.add(field)
    await db.flush()
    return field


async def create_linear_workflow(db, *, organization_id, review_kwargs=None, **kwargs):
    """start -> review -> end, returned as a namespace of the created rows."""
    workflow = await create_workflow(db, organization_id=organization_id, **kwargs)
    start = await create_activity(db, workflow=workflow, name="Solicitud", type="start")
    review = await create_activity(db, workflow=workflow, name="Revisión", **(review_kwargs or {}))
    end = await create_activity(db, workflow=workflow, name="Fin", type="end")
    to_review = await create_transition(db, workflow=workflow, source=start, target=review)
    to_end = await create_transition(db, workflow=workflow, source=review, target=end)
    return SimpleNamespace(
        workflow=workflow,
        start=start,
        review=review,
        end=end,
        to_review=to_review,
        to_end=to_end,
    )


def auth_headers(user) -> dict[str, str]:
    """Generate Bearer token headers for a test user."""
    token = create_access_token(user.id)
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# Convenience fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
async def org(db):
    return await create_organization(db, name="Acme")


@pytest.fixture
async def user(db, org):
    return await create_user(db, email="analyst@acme.test", organization_id=org.id)


@pytest.fixture
async def linear(db, org):
    return await create_linear_workflow(db, organization_id=org.id)
