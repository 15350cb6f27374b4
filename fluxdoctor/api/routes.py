"""REST routes for the three diagnostic operations.

All handlers read the diagnostician from ``request.app.state``. Error
results are mapped onto HTTP statuses with the ``{error, detail}`` envelope.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from fluxdoctor.api.schemas import DiagnosisResponse, ErrorResponse, HealthResponse, ResourceRequest
from fluxdoctor.models.report import DiagnosticResult
from fluxdoctor.observability.logging import get_logger

_log = get_logger("api.routes")

router = APIRouter()

_STATUS_BY_CODE: dict[str, int] = {
    "NOT_FOUND": 404,
    "PERMISSION_DENIED": 403,
    "UNAUTHORIZED": 401,
    "TIMEOUT": 504,
    "CANCELLED": 503,
    "INVALID_KIND": 400,
    "ERROR": 502,
}

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    502: {"model": ErrorResponse},
    504: {"model": ErrorResponse},
}


def _to_response(result: DiagnosticResult) -> JSONResponse:
    if not result.is_error:
        return JSONResponse(status_code=200, content=DiagnosisResponse(report=result.text).model_dump())
    code = result.error_code or "ERROR"
    status = _STATUS_BY_CODE.get(code, 502)
    _log.info("diagnosis_error_result", error_code=code, status=status)
    return JSONResponse(status_code=status, content=ErrorResponse(error=code, detail=result.text).model_dump())


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    from fluxdoctor import __version__

    return HealthResponse(version=__version__)


@router.post("/diagnose", response_model=DiagnosisResponse, responses=_ERROR_RESPONSES)
async def diagnose(body: ResourceRequest, request: Request) -> JSONResponse:
    """Diagnose a single Kustomization or HelmRelease."""
    result = await request.app.state.diagnostician.diagnose_resource(body.kind, body.namespace, body.name)
    return _to_response(result)


@router.get("/system", response_model=DiagnosisResponse, responses=_ERROR_RESPONSES)
async def system(request: Request) -> JSONResponse:
    """Cluster-wide FluxCD health report."""
    result = await request.app.state.diagnostician.diagnose_system()
    return _to_response(result)


@router.post("/tree", response_model=DiagnosisResponse, responses=_ERROR_RESPONSES)
async def tree(body: ResourceRequest, request: Request) -> JSONResponse:
    """Source, dependency and inventory tree of one resource."""
    result = await request.app.state.diagnostician.get_resource_tree(body.kind, body.namespace, body.name)
    return _to_response(result)
