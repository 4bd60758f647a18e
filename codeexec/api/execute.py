"""Code execution API endpoint.

A thin endpoint: validation happens in the request model, everything else
in the execution service.
"""

import structlog
from fastapi import APIRouter

from ..dependencies.services import ExecutionServiceDep
from ..models import ExecutionRequest, ExecutionResult
from ..utils.id_generator import generate_request_id

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post(
    "/codeexecution/execute",
    response_model=ExecutionResult,
    response_model_exclude_none=True,
)
async def execute_code(request: ExecutionRequest, execution_service: ExecutionServiceDep):
    """Execute a submission in a sandboxed container.

    Supported languages: python, javascript, typescript, kotlin, java, cpp, go.
    Unsupported languages, timeouts and runtime failures are reported in the
    result body (``success`` false, ``outcome`` says why). Unexpected engine
    failures return a generic 500.
    """
    request_id = generate_request_id()[:8]
    logger.info(
        "Code execution request",
        request_id=request_id,
        language=request.language,
        code_length=len(request.code),
        timeout_ms=request.timeout_ms,
    )
    return await execution_service.execute(request)
