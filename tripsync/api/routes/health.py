"""Health check endpoints.

- /health: liveness only
- /healthz: snapshot storage reachability and pending writes
"""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Response

from tripsync.api.deps import get_planner_session
from tripsync.persistence.storage import SnapshotStorage
from tripsync.session import PlannerSession

router = APIRouter()

HEALTHCHECK_KEY = "tripsync:healthcheck"


async def check_storage(storage: SnapshotStorage) -> tuple[bool, str]:
    """Check snapshot storage reachability.

    Returns:
        (is_ok, status_message)
    """
    try:
        storage.read(HEALTHCHECK_KEY)
        return (True, "ok")
    except Exception as e:
        return (False, f"error: {type(e).__name__}")


@router.get("/health")
async def health() -> dict[str, str]:
    """Simple health check for Docker/k8s.

    Returns:
        200 OK always (application is running)
    """
    return {"status": "ok"}


@router.get("/healthz", response_model=None)
async def healthz(
    session: Annotated[PlannerSession, Depends(get_planner_session)],
) -> dict[str, Any] | Response:
    """Health check including snapshot storage.

    Returns:
        200 with component status if storage is reachable
        503 if storage fails
    """
    storage_ok, storage_status = await check_storage(session.storage)

    response_body = {
        "status": "ok" if storage_ok else "degraded",
        "components": {
            "storage": storage_status,
            "pending_writes": len(session.persister.pending_keys),
        },
    }

    if not storage_ok:
        import json

        return Response(
            content=json.dumps(response_body),
            status_code=503,
            media_type="application/json",
        )

    return response_body
