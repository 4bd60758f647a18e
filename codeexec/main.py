"""Main FastAPI application for the code execution engine."""

# Standard library imports
from contextlib import asynccontextmanager

# Third-party imports
import structlog
import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError

# Local application imports
from ._version import __version__
from .api import execute, health
from .config import settings
from .dependencies.services import get_execution_service
from .models.errors import ExecutionEngineException
from .utils.error_handlers import (
    execution_exception_handler,
    general_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from .utils.logging import setup_logging


# Setup logging
setup_logging()
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info(
        "Starting code execution service",
        version=__version__,
        **settings.get_configuration_summary(),
    )

    yield

    logger.info("Shutting down code execution service")
    if get_execution_service.cache_info().currsize:
        get_execution_service().close()
        get_execution_service.cache_clear()


app = FastAPI(
    title="Code Execution Engine",
    description="Runs untrusted submissions in resource-limited, network-isolated containers",
    version=__version__,
    lifespan=lifespan,
)

# Exception handlers
app.add_exception_handler(ExecutionEngineException, execution_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)

# Routers
app.include_router(execute.router, prefix="/api", tags=["execution"])
app.include_router(health.router, tags=["health"])


def main() -> None:
    """Run the API server."""
    api = settings.api
    uvicorn.run(api.app, **api.uvicorn_options)


if __name__ == "__main__":
    main()
