from fastapi import APIRouter

from bpmflow.api.v1 import integration_errors, processes, scheduled_processes, tasks

api_router = APIRouter()

api_router.include_router(processes.router, prefix="/processes", tags=["processes"])
api_router.include_router(tasks.router, prefix="/tasks", tags=["tasks"])
api_router.include_router(
    integration_errors.router, prefix="/integration-errors", tags=["integration-errors"]
)
api_router.include_router(
    scheduled_processes.router, prefix="/scheduled-processes", tags=["scheduled-processes"]
)
