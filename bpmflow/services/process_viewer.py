"""Read-only reconstruction of a process instance's execution for display.

A node is ``executed`` when any history entry references it, ``current`` when
the instance sits on it (this wins over executed), ``pending`` otherwise. An
edge is executed when its source was executed and its target was reached.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bpmflow.models.process import ProcessHistory
from bpmflow.models.workflow import Activity, Transition
from bpmflow.services.execution_engine import get_history, get_process


@dataclass
class NodeState:
    activity_id: uuid.UUID
    name: str
    type: str
    status: str  # executed / current / pending


@dataclass
class EdgeState:
    transition_id: uuid.UUID
    source_id: uuid.UUID
    target_id: uuid.UUID
    condition: str | None
    executed: bool


@dataclass
class ExecutionState:
    process_id: uuid.UUID
    workflow_id: uuid.UUID
    status: str
    current_activity_id: uuid.UUID
    executed_activity_ids: set[uuid.UUID] = field(default_factory=set)
    nodes: list[NodeState] = field(default_factory=list)
    edges: list[EdgeState] = field(default_factory=list)
    history: list[ProcessHistory] = field(default_factory=list)


async def get_execution_state(db: AsyncSession, process_id: uuid.UUID) -> ExecutionState:
    instance = await get_process(db, process_id)
    history = await get_history(db, process_id)
    executed = {entry.activity_id for entry in history}
    current = instance.current_activity_id

    activities = (
        await db.execute(
            select(Activity)
            .where(Activity.workflow_id == instance.workflow_id)
            .order_by(Activity.created_at)
        )
    ).scalars().all()
    transitions = (
        await db.execute(
            select(Transition)
            .where(Transition.workflow_id == instance.workflow_id)
            .order_by(Transition.created_at)
        )
    ).scalars().all()

    nodes = []
    for activity in activities:
        if activity.id == current:
            status = "current"
        elif activity.id in executed:
            status = "executed"
        else:
            status = "pending"
        nodes.append(NodeState(activity.id, activity.name, activity.type, status))

    edges = [
        EdgeState(
            transition_id=t.id,
            source_id=t.source_id,
            target_id=t.target_id,
            condition=t.condition,
            executed=t.source_id in executed and (t.target_id in executed or t.target_id == current),
        )
        for t in transitions
    ]

    return ExecutionState(
        process_id=instance.id,
        workflow_id=instance.workflow_id,
        status=instance.status,
        current_activity_id=current,
        executed_activity_ids=executed,
        nodes=nodes,
        edges=edges,
        history=history,
    )
