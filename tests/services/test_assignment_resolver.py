"""Tests for AssignmentResolver — who owns an activity when a process enters it."""

from __future__ import annotations

import random

import pytest

from bpmflow.models.process import ProcessHistory, ProcessInstance
from bpmflow.models.workflow import Activity
from bpmflow.services.assignment_resolver import Assignment, AssignmentResolver
from tests.conftest import (
    assign_position,
    create_department,
    create_position,
    create_user,
)


@pytest.fixture
async def team(db, org):
    """A department with one position held by two users, in that order."""
    dept = await create_department(db, organization_id=org.id, name="Compras")
    position = await create_position(
        db, organization_id=org.id, title="Analista", department_id=dept.id
    )
    first = await create_user(db, email="first@acme.test", organization_id=org.id)
    second = await create_user(db, email="second@acme.test", organization_id=org.id)
    await assign_position(db, first, position)
    await assign_position(db, second, position)
    return dept, position, first, second


async def _give_instances(db, linear, user, count, status="active"):
    instances = []
    for i in range(count):
        instances.append(
            ProcessInstance(
                organization_id=linear.workflow.organization_id,
                workflow_id=linear.workflow.id,
                name=f"P{i}",
                status=status,
                current_activity_id=linear.review.id,
                assigned_user_id=user.id,
            )
        )
    db.add_all(instances)
    await db.flush()
    return instances


def _position_activity(position, strategy):
    return Activity(
        name="Aprobar",
        assignment_type="position",
        assignment_strategy=strategy,
        assigned_position_id=position.id,
    )


# ---------------------------------------------------------------------------
# Static assignment types
# ---------------------------------------------------------------------------


class TestStaticTypes:
    async def test_manual_keeps_group(self, db, team):
        dept, position, _, _ = team
        activity = Activity(
            assignment_type="manual",
            assigned_department_id=dept.id,
            assigned_position_id=position.id,
        )
        assignment = await AssignmentResolver(db).resolve(activity, None, None)
        assert assignment == Assignment(
            assigned_department_id=dept.id, assigned_position_id=position.id
        )

    async def test_unknown_type_is_manual(self, db, team):
        dept, _, _, _ = team
        activity = Activity(assignment_type="robot", assigned_department_id=dept.id)
        assignment = await AssignmentResolver(db).resolve(activity, None, None)
        assert assignment == Assignment(assigned_department_id=dept.id)

    async def test_creator(self, db, user):
        activity = Activity(assignment_type="creator")
        assignment = await AssignmentResolver(db).resolve(activity, user.id, None)
        assert assignment == Assignment(assigned_user_id=user.id)

    async def test_creator_unknown_falls_back_to_group(self, db, team):
        dept, _, _, _ = team
        activity = Activity(assignment_type="creator", assigned_department_id=dept.id)
        assignment = await AssignmentResolver(db).resolve(activity, None, None)
        assert assignment == Assignment(assigned_department_id=dept.id)

    async def test_specific_user_clears_group(self, db, team, user):
        dept, _, _, _ = team
        activity = Activity(
            assignment_type="specific_user",
            assigned_user_id=user.id,
            assigned_department_id=dept.id,
        )
        assignment = await AssignmentResolver(db).resolve(activity, None, None)
        assert assignment == Assignment(assigned_user_id=user.id)


# ---------------------------------------------------------------------------
# Pools and strategies
# ---------------------------------------------------------------------------


class TestCandidatePool:
    async def test_position_pool_in_assignment_order(self, db, team):
        _, position, first, second = team
        pool = await AssignmentResolver(db).candidate_pool(_position_activity(position, "random"))
        assert pool == [first.id, second.id]

    async def test_department_pool_deduplicated(self, db, org, team):
        dept, _, first, second = team
        other = await create_position(
            db, organization_id=org.id, title="Jefe", department_id=dept.id
        )
        await assign_position(db, first, other)
        activity = Activity(
            assignment_type="department",
            assignment_strategy="random",
            assigned_department_id=dept.id,
        )
        pool = await AssignmentResolver(db).candidate_pool(activity)
        assert pool == [first.id, second.id]

    async def test_inactive_users_excluded(self, db, org, team):
        _, position, first, second = team
        second.is_active = False
        await db.flush()
        pool = await AssignmentResolver(db).candidate_pool(_position_activity(position, "random"))
        assert pool == [first.id]

    async def test_no_group_means_no_pool(self, db):
        activity = Activity(assignment_type="position", assignment_strategy="workload")
        assert await AssignmentResolver(db).candidate_pool(activity) == []


class TestStrategies:
    async def test_group_manual_strategy_keeps_queue(self, db, team):
        _, position, _, _ = team
        assignment = await AssignmentResolver(db).resolve(
            _position_activity(position, "manual"), None, None
        )
        assert assignment == Assignment(assigned_position_id=position.id)

    async def test_empty_pool_keeps_queue(self, db, org):
        empty = await create_position(db, organization_id=org.id, title="Vacante")
        assignment = await AssignmentResolver(db).resolve(
            _position_activity(empty, "workload"), None, org.id
        )
        assert assignment == Assignment(assigned_position_id=empty.id)

    async def test_workload_picks_least_loaded(self, db, org, team, linear):
        _, position, first, second = team
        await _give_instances(db, linear, first, 2)
        await _give_instances(db, linear, second, 1)
        assignment = await AssignmentResolver(db).resolve(
            _position_activity(position, "workload"), None, org.id
        )
        assert assignment == Assignment(assigned_user_id=second.id)

    async def test_workload_ignores_completed_instances(self, db, org, team, linear):
        _, position, first, second = team
        await _give_instances(db, linear, first, 3, status="completed")
        await _give_instances(db, linear, second, 1)
        assignment = await AssignmentResolver(db).resolve(
            _position_activity(position, "workload"), None, org.id
        )
        assert assignment.assigned_user_id == first.id

    async def test_workload_tie_goes_to_first_member(self, db, org, team):
        _, position, first, _ = team
        assignment = await AssignmentResolver(db).resolve(
            _position_activity(position, "workload"), None, org.id
        )
        assert assignment.assigned_user_id == first.id
        assert assignment.assigned_position_id is None

    async def test_efficiency_picks_most_completions(self, db, team, linear):
        _, position, first, second = team
        (instance,) = await _give_instances(db, linear, first, 1, status="completed")
        for actor, action in [(first, "completed"), (second, "completed"), (second, "completed")]:
            db.add(
                ProcessHistory(
                    process_id=instance.id,
                    activity_id=linear.review.id,
                    action=action,
                    user_id=actor.id,
                )
            )
        db.add(
            ProcessHistory(
                process_id=instance.id,
                activity_id=linear.review.id,
                action="commented",
                user_id=first.id,
            )
        )
        await db.flush()
        assignment = await AssignmentResolver(db).resolve(
            _position_activity(position, "efficiency"), None, None
        )
        assert assignment.assigned_user_id == second.id

    async def test_random_uses_injected_rng(self, db, team):
        _, position, first, second = team
        expected = [first.id, second.id][random.Random(7).randrange(2)]
        resolver = AssignmentResolver(db, rng=random.Random(7))
        assignment = await resolver.resolve(_position_activity(position, "random"), None, None)
        assert assignment.assigned_user_id == expected
