"""Health check endpoint."""

from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from .._version import __version__
from ..dependencies.services import ExecutionServiceDep

router = APIRouter()


@router.get("/health", summary="Health check")
def health_check(execution_service: ExecutionServiceDep):
    """Report service status and whether the Docker engine answers."""
    docker_available = execution_service.is_available()
    return JSONResponse(
        status_code=200 if docker_available else 503,
        content={
            "status": "healthy" if docker_available else "unhealthy",
            "docker": "available" if docker_available else "unavailable",
            "version": __version__,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "service": "codeexec",
        },
    )
