"""Assignment resolver — decides who owns an activity when a process enters it.

Group-based activities (department / position) build a pool from the org
chart and pick one member with the activity's strategy:

    workload    fewest active instances in the organization
    efficiency  most ``completed`` history entries
    random      uniform pick
    manual      nobody; the task stays in the group queue

Ties go to the earliest pool member (pool order = order of position
assignment). An empty pool leaves the task in the group queue.
"""

from __future__ import annotations

import logging
import random
import uuid
from dataclasses import asdict, dataclass

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from bpmflow.models.org_chart import EmployeePosition, Position
from bpmflow.models.process import HistoryAction, ProcessHistory, ProcessInstance, ProcessStatus
from bpmflow.models.user import User
from bpmflow.models.workflow import Activity, AssignmentStrategy, AssignmentType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Assignment:
    assigned_user_id: uuid.UUID | None = None
    assigned_department_id: uuid.UUID | None = None
    assigned_position_id: uuid.UUID | None = None

    def as_dict(self) -> dict[str, uuid.UUID | None]:
        return asdict(self)


def group_assignment(activity: Activity) -> Assignment:
    """The activity's static group queue, with no individual owner."""
    return Assignment(
        assigned_department_id=activity.assigned_department_id,
        assigned_position_id=activity.assigned_position_id,
    )


class AssignmentResolver:
    def __init__(self, db: AsyncSession, rng: random.Random | None = None):
        self.db = db
        self._rng = rng or random.Random()

    async def resolve(
        self,
        activity: Activity,
        creator_id: uuid.UUID | None,
        organization_id: uuid.UUID | None,
    ) -> Assignment:
        assignment_type = AssignmentType.parse(activity.assignment_type)

        if assignment_type == AssignmentType.MANUAL:
            return group_assignment(activity)

        if assignment_type == AssignmentType.CREATOR:
            return Assignment(assigned_user_id=creator_id) if creator_id else group_assignment(activity)

        if assignment_type == AssignmentType.SPECIFIC_USER:
            if activity.assigned_user_id:
                return Assignment(assigned_user_id=activity.assigned_user_id)
            return group_assignment(activity)

        # department / position
        strategy = AssignmentStrategy.parse(activity.assignment_strategy)
        if strategy == AssignmentStrategy.MANUAL:
            return group_assignment(activity)

        pool = await self.candidate_pool(activity)
        if not pool:
            logger.info("Empty assignment pool for activity %s, using group queue", activity.id)
            return group_assignment(activity)

        if strategy == AssignmentStrategy.WORKLOAD:
            chosen = await self._least_loaded(pool, organization_id)
        elif strategy == AssignmentStrategy.EFFICIENCY:
            chosen = await self._most_efficient(pool)
        else:
            chosen = pool[self._rng.randrange(len(pool))]

        logger.debug("Activity %s assigned to %s by %s", activity.id, chosen, strategy.value)
        return Assignment(assigned_user_id=chosen)

    async def candidate_pool(self, activity: Activity) -> list[uuid.UUID]:
        """Active users holding the activity's position, else any position of its department."""
        if activity.assigned_position_id:
            position_filter = EmployeePosition.position_id == activity.assigned_position_id
        elif activity.assigned_department_id:
            position_filter = EmployeePosition.position_id.in_(
                select(Position.id).where(Position.department_id == activity.assigned_department_id)
            )
        else:
            return []

        result = await self.db.execute(
            select(EmployeePosition.user_id)
            .join(User, User.id == EmployeePosition.user_id)
            .where(position_filter, User.is_active.is_(True))
            .order_by(EmployeePosition.created_at, EmployeePosition.id)
        )
        # One user may hold several positions in the same department
        return list(dict.fromkeys(result.scalars().all()))

    async def _least_loaded(
        self, pool: list[uuid.UUID], organization_id: uuid.UUID | None
    ) -> uuid.UUID:
        stmt = (
            select(ProcessInstance.assigned_user_id, func.count())
            .where(
                ProcessInstance.status == ProcessStatus.ACTIVE.value,
                ProcessInstance.assigned_user_id.in_(pool),
            )
            .group_by(ProcessInstance.assigned_user_id)
        )
        if organization_id:
            stmt = stmt.where(ProcessInstance.organization_id == organization_id)
        counts = dict((await self.db.execute(stmt)).all())
        return min(pool, key=lambda user_id: counts.get(user_id, 0))

    async def _most_efficient(self, pool: list[uuid.UUID]) -> uuid.UUID:
        stmt = (
            select(ProcessHistory.user_id, func.count())
            .where(
                ProcessHistory.action == HistoryAction.COMPLETED.value,
                ProcessHistory.user_id.in_(pool),
            )
            .group_by(ProcessHistory.user_id)
        )
        counts = dict((await self.db.execute(stmt)).all())
        return max(pool, key=lambda user_id: counts.get(user_id, 0))
