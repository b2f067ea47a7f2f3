"""Integration tests for the task inbox and integration error endpoints."""

from __future__ import annotations

import httpx

from bpmflow.services.execution_engine import advance_process, start_process
from tests.conftest import auth_headers, create_linear_workflow, create_position, create_user


class TestInbox:
    async def test_requires_auth(self, client):
        resp = await client.get("/api/v1/tasks/inbox")
        assert resp.status_code == 401

    async def test_lists_eligible_tasks(self, client, db, org, user, linear):
        other = await create_user(db, email="other@acme.test", organization_id=org.id)
        mine = await start_process(db, linear.workflow.id, user_id=user.id)
        await start_process(db, linear.workflow.id, user_id=other.id)

        resp = await client.get("/api/v1/tasks/inbox", headers=auth_headers(user))
        assert resp.status_code == 200
        tasks = resp.json()
        assert [t["process_id"] for t in tasks] == [str(mine.id)]
        task = tasks[0]
        assert task["workflow_name"] == "Solicitud de Compra"
        assert task["activity_name"] == "Solicitud"
        assert task["activity_type"] == "start"
        assert task["overdue"] is False
        assert task["due_hours"] == 24

    async def test_group_queue_after_advance(self, client, db, org, user):
        position = await create_position(db, organization_id=org.id, title="Jefe")
        linear = await create_linear_workflow(
            db,
            organization_id=org.id,
            review_kwargs={"assignment_type": "position", "assigned_position_id": position.id},
        )
        instance = await start_process(db, linear.workflow.id, user_id=user.id)
        await advance_process(db, instance.id, linear.to_review.id)

        # The creator no longer owns it and holds no position
        resp = await client.get("/api/v1/tasks/inbox", headers=auth_headers(user))
        assert resp.json() == []


class TestIntegrationErrors:
    async def test_lists_failures(self, client, db, org, user, runner, mock_http):
        mock_http.handler = lambda request: httpx.Response(500, text="boom")
        linear = await create_linear_workflow(
            db,
            organization_id=org.id,
            review_kwargs={"action_type": "webhook", "action_config": {"url": "https://erp.test"}},
        )
        instance = await start_process(db, linear.workflow.id, name="Compra Sillas")
        await advance_process(db, instance.id, linear.to_review.id, runner=runner)

        resp = await client.get("/api/v1/integration-errors", headers=auth_headers(user))
        assert resp.status_code == 200
        errors = resp.json()
        assert len(errors) == 1
        assert errors[0]["process_id"] == str(instance.id)
        assert errors[0]["activity_name"] == "Revisión"
        assert errors[0]["detail"] == "Error en paso 1: HTTP 500: boom"

        resp = await client.get(
            "/api/v1/integration-errors", params={"search": "lápices"}, headers=auth_headers(user)
        )
        assert resp.json() == []
