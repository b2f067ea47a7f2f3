from bpmflow.models.activity_field import ActivityFieldDefinition
from bpmflow.models.base import Base
from bpmflow.models.org_chart import Department, EmployeePosition, Position
from bpmflow.models.organization import Organization
from bpmflow.models.process import ProcessData, ProcessHistory, ProcessInstance
from bpmflow.models.scheduled_process import ScheduledProcess
from bpmflow.models.user import User
from bpmflow.models.workflow import Activity, Transition, Workflow

__all__ = [
    "Base",
    "Organization",
    "User",
    "Department",
    "Position",
    "EmployeePosition",
    "Workflow",
    "Activity",
    "ActivityFieldDefinition",
    "Transition",
    "ProcessInstance",
    "ProcessData",
    "ProcessHistory",
    "ScheduledProcess",
]
