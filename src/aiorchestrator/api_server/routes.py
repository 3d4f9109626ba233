# src/aiorchestrator/api_server/routes.py
"""
Orchestrator API routes.

Task submission returns 202 Accepted with the new task id; processing
happens on the orchestrator's worker pool. Clients poll `GET /tasks/{id}`
for the outcome.
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from prometheus_client import CONTENT_TYPE_LATEST

from ..exceptions import QueueFullError, TaskNotFoundError, TaskValidationError
from ..monitor import MonitorStats
from ..orchestrator import Orchestrator
from .models import ModelInfo, ModelListResponse, TaskStatusResponse, TaskSubmissionRequest, TaskSubmissionResponse

logger = logging.getLogger(__name__)

router = APIRouter()


def get_orchestrator(request: Request) -> Orchestrator:
    """Dependency returning the orchestrator attached to the app, or 503."""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="Orchestrator service is not available.")
    return orchestrator


@router.post(
    "/tasks",
    response_model=TaskSubmissionResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def submit_task(
    body: TaskSubmissionRequest,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> TaskSubmissionResponse:
    """
    Submit a task for asynchronous processing.

    Raises:
        HTTPException: 503 when the queue is full, 422 for an invalid task.
    """
    try:
        task_id = await orchestrator.submit_task(
            body.kind,
            body.priority,
            body.input,
            submitter_id=body.submitter_id,
            context=body.context,
            requested_model=body.requested_model,
            metadata=body.metadata,
        )
    except QueueFullError as e:
        logger.warning(f"Rejected task from '{body.submitter_id}': {e}")
        raise HTTPException(status_code=503, detail=str(e))
    except TaskValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    logger.info(f"Accepted task {task_id} ({body.kind.value}, {body.priority.value}) from '{body.submitter_id}'")
    return TaskSubmissionResponse(task_id=task_id)


@router.get("/tasks/{task_id}", response_model=TaskStatusResponse)
async def get_task_status(
    task_id: str,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> TaskStatusResponse:
    try:
        task_status = orchestrator.get_task_status(task_id)
    except TaskNotFoundError:
        raise HTTPException(status_code=404, detail="Task not found.")
    return TaskStatusResponse(task_id=task_id, status=task_status.state, result=task_status.result)


@router.get("/health")
async def health_check(request: Request) -> Dict[str, Any]:
    """Health check endpoint for monitoring."""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        return {"status": "unavailable", "orchestrator_available": False}
    health = orchestrator.get_health()
    health["orchestrator_available"] = True
    return health


@router.get("/stats", response_model=MonitorStats)
async def get_stats(orchestrator: Orchestrator = Depends(get_orchestrator)) -> MonitorStats:
    """JSON snapshot of the performance monitor."""
    return orchestrator.get_metrics()


@router.get("/metrics", include_in_schema=False)
async def prometheus_metrics(request: Request) -> Response:
    """Prometheus text exposition of orchestrator and HTTP metrics."""
    return Response(content=request.app.state.metrics.render(), media_type=CONTENT_TYPE_LATEST)


@router.get("/models", response_model=ModelListResponse)
async def list_models(orchestrator: Orchestrator = Depends(get_orchestrator)) -> ModelListResponse:
    return ModelListResponse(
        models=[
            ModelInfo(
                name=d.name,
                endpoint=d.endpoint,
                max_tokens=d.max_tokens,
                temperature=d.temperature,
                capabilities=sorted(d.capabilities),
                cost_per_unit=d.cost_per_unit,
            )
            for d in orchestrator.registry.list_models()
        ]
    )
