"""Tests for scheduled processes: recurrence arithmetic, CRUD and the due-schedule trigger."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from bpmflow.models.base import as_utc, utcnow
from bpmflow.models.scheduled_process import ScheduledProcess
from bpmflow.services.execution_engine import WorkflowNotFound, get_history
from bpmflow.services.scheduler_service import (
    InvalidSchedule,
    ScheduleNotFound,
    create_schedule,
    delete_schedule,
    get_schedule,
    list_schedules,
    next_occurrence,
    run_due_schedules,
    update_schedule,
)
from tests.conftest import create_activity, create_organization, create_workflow

T0 = datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc)

# ---------------------------------------------------------------------------
# Recurrence arithmetic
# ---------------------------------------------------------------------------


def _schedule(pattern="daily", interval=None, recurring=True, at=T0):
    return ScheduledProcess(
        scheduled_at=at,
        is_recurring=recurring,
        recurrence_pattern=pattern,
        recurrence_interval=interval,
    )


class TestNextOccurrence:
    def test_one_shot(self):
        assert next_occurrence(_schedule("none", recurring=False), T0) is None

    def test_future_schedule_unchanged(self):
        assert next_occurrence(_schedule(), T0 - timedelta(hours=1)) == T0

    def test_strictly_after(self):
        assert next_occurrence(_schedule(), T0) == T0 + timedelta(days=1)

    def test_skips_missed_periods(self):
        after = T0 + timedelta(days=2, hours=12)
        assert next_occurrence(_schedule(), after) == T0 + timedelta(days=3)

    def test_weekly(self):
        assert next_occurrence(_schedule("weekly"), T0 + timedelta(days=1)) == T0 + timedelta(
            weeks=1
        )

    def test_custom_days(self):
        after = T0 + timedelta(days=4)
        assert next_occurrence(_schedule("custom_days", 3), after) == T0 + timedelta(days=6)

    def test_naive_schedule_time(self):
        schedule = _schedule(at=T0.replace(tzinfo=None))
        assert next_occurrence(schedule, T0) == T0 + timedelta(days=1)


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


class TestScheduleCrud:
    async def test_create_and_list(self, db, org, user, linear):
        schedule = await create_schedule(
            db, org.id, linear.workflow.id, "Inventario mensual", T0, created_by=user.id
        )
        assert schedule.status == "pending"
        assert schedule.recurrence_pattern == "none"
        assert [s.id for s in await list_schedules(db, org.id)] == [schedule.id]

    async def test_workflow_of_other_organization(self, db, linear):
        other = await create_organization(db, name="Otra")
        with pytest.raises(WorkflowNotFound):
            await create_schedule(db, other.id, linear.workflow.id, "X", T0)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"is_recurring": True, "recurrence_pattern": "none"},
            {"is_recurring": True, "recurrence_pattern": "custom_days", "recurrence_interval": 0},
            {"recurrence_pattern": "monthly"},
        ],
    )
    async def test_invalid_recurrence(self, db, org, linear, kwargs):
        with pytest.raises(InvalidSchedule):
            await create_schedule(db, org.id, linear.workflow.id, "X", T0, **kwargs)

    async def test_update_whitelisted_fields(self, db, org, linear):
        schedule = await create_schedule(db, org.id, linear.workflow.id, "X", T0)
        updated = await update_schedule(
            db,
            schedule.id,
            {"status": "cancelled", "name": "Y", "organization_id": None},
        )
        assert updated.status == "cancelled"
        assert updated.name == "Y"
        assert updated.organization_id == org.id

    async def test_delete(self, db, org, linear):
        schedule = await create_schedule(db, org.id, linear.workflow.id, "X", T0)
        schedule_id = schedule.id
        await delete_schedule(db, schedule_id)
        with pytest.raises(ScheduleNotFound):
            await get_schedule(db, schedule_id)


# ---------------------------------------------------------------------------
# Trigger
# ---------------------------------------------------------------------------


class TestRunDueSchedules:
    async def test_one_shot_starts_once(self, db, org, user, linear):
        now = utcnow()
        schedule = await create_schedule(
            db, org.id, linear.workflow.id, "Inventario", now - timedelta(minutes=5),
            created_by=user.id,
        )
        schedule_id = schedule.id

        started = await run_due_schedules(db, now)
        assert len(started) == 1
        instance = started[0]
        assert instance.name == "Inventario"
        assert instance.created_by == user.id
        assert instance.current_activity_id == linear.start.id
        assert [h.action for h in await get_history(db, instance.id)] == ["started"]

        schedule = await get_schedule(db, schedule_id)
        assert schedule.status == "completed"
        assert as_utc(schedule.last_run_at) == now

        assert await run_due_schedules(db, now + timedelta(minutes=1)) == []

    async def test_recurring_moves_forward(self, db, org, linear):
        now = utcnow()
        schedule = await create_schedule(
            db,
            org.id,
            linear.workflow.id,
            "Arqueo diario",
            now - timedelta(hours=1),
            is_recurring=True,
            recurrence_pattern="daily",
        )
        schedule_id = schedule.id

        assert len(await run_due_schedules(db, now)) == 1
        schedule = await get_schedule(db, schedule_id)
        assert schedule.status == "active"
        assert as_utc(schedule.scheduled_at) == now + timedelta(hours=23)

    async def test_future_and_cancelled_skipped(self, db, org, linear):
        now = utcnow()
        await create_schedule(db, org.id, linear.workflow.id, "Futuro", now + timedelta(hours=1))
        cancelled = await create_schedule(
            db, org.id, linear.workflow.id, "Cancelado", now - timedelta(hours=1)
        )
        await update_schedule(db, cancelled.id, {"status": "cancelled"})

        assert await run_due_schedules(db, now) == []

    async def test_broken_schedule_does_not_block_others(self, db, org, linear):
        now = utcnow()
        broken_workflow = await create_workflow(db, organization_id=org.id, name="Sin inicio")
        await create_activity(db, workflow=broken_workflow, name="Tarea")
        broken = await create_schedule(
            db, org.id, broken_workflow.id, "Roto", now - timedelta(hours=2)
        )
        await create_schedule(db, org.id, linear.workflow.id, "Sano", now - timedelta(hours=1))
        broken_id = broken.id

        started = await run_due_schedules(db, now)
        assert [i.name for i in started] == ["Sano"]

        broken = await get_schedule(db, broken_id)
        assert broken.status == "pending"
        assert broken.last_run_at is None
