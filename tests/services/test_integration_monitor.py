"""Tests for the integration error monitor (automation failures in process history)."""

from __future__ import annotations

import httpx
import pytest

from bpmflow.services.execution_engine import advance_process, complete_process, start_process
from bpmflow.services.integration_monitor import list_integration_errors
from tests.conftest import create_linear_workflow, create_organization

FAILING_REVIEW = {
    "action_type": "webhook",
    "action_config": {"url": "https://erp.test/ordenes"},
}


@pytest.fixture
async def failing(db, org, runner, mock_http):
    """Workflow whose review activity calls a webhook that answers 500."""
    mock_http.handler = lambda request: httpx.Response(500, text="ERP caído")
    return await create_linear_workflow(db, organization_id=org.id, review_kwargs=FAILING_REVIEW)


async def _run_failing(db, workflow, runner, name):
    instance = await start_process(db, workflow.workflow.id, name=name)
    await advance_process(db, instance.id, workflow.to_review.id, runner=runner)
    return instance


class TestListIntegrationErrors:
    async def test_lists_failures_newest_first(self, db, failing, runner):
        first = await _run_failing(db, failing, runner, "Compra Lápices")
        second = await _run_failing(db, failing, runner, "Compra Sillas")

        errors = await list_integration_errors(db)
        assert [e.process_id for e in errors] == [second.id, first.id]
        error = errors[0]
        assert error.process_name == "Compra Sillas"
        assert error.workflow_name == "Solicitud de Compra"
        assert error.activity_id == failing.review.id
        assert error.activity_name == "Revisión"
        assert error.detail == "Error en paso 1: HTTP 500: ERP caído"
        assert error.error_message.startswith("❌ Error en Acción Automática: ")

    async def test_successful_automation_not_listed(self, db, org, runner):
        linear = await create_linear_workflow(
            db, organization_id=org.id, review_kwargs=FAILING_REVIEW
        )
        instance = await start_process(db, linear.workflow.id)
        await advance_process(db, instance.id, linear.to_review.id, runner=runner)
        assert await list_integration_errors(db) == []

    async def test_completed_processes_hidden_by_default(self, db, failing, runner):
        instance = await _run_failing(db, failing, runner, "Compra Lápices")
        await advance_process(db, instance.id, failing.to_end.id)
        await complete_process(db, instance.id)

        assert await list_integration_errors(db) == []
        errors = await list_integration_errors(db, only_active=False)
        assert [e.process_status for e in errors] == ["completed"]

    async def test_search_is_case_insensitive(self, db, failing, runner):
        await _run_failing(db, failing, runner, "Compra Lápices")
        sillas = await _run_failing(db, failing, runner, "Compra Sillas")

        assert [e.process_id for e in await list_integration_errors(db, search="SILLAS")] == [
            sillas.id
        ]
        assert len(await list_integration_errors(db, search="http 500")) == 2
        assert await list_integration_errors(db, search="timeout") == []

    async def test_organization_scope(self, db, failing, runner, org):
        await _run_failing(db, failing, runner, "Compra Lápices")
        other = await create_organization(db, name="Otra")

        assert len(await list_integration_errors(db, organization_id=org.id)) == 1
        assert await list_integration_errors(db, organization_id=other.id) == []
