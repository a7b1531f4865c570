"""Error taxonomy for corridor workflow actions and its HTTP mapping."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class HospFlowError(Exception):
    """Base class for errors raised by core workflow actions."""

    kind = "error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str, *, patient_id: str | None = None) -> None:
        super().__init__(detail)
        self.detail = detail
        self.patient_id = patient_id


class ValidationError(HospFlowError):
    """Required input is missing or blank."""

    kind = "validation_error"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class GuardViolation(HospFlowError):
    """Transition attempted against the record's current state."""

    kind = "guard_violation"
    status_code = status.HTTP_409_CONFLICT


class NotFound(HospFlowError):
    kind = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class CollaboratorUnavailable(HospFlowError):
    """The advisory service failed, timed out, or is not configured."""

    kind = "collaborator_unavailable"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


async def _handle_hospflow_error(request: Request, exc: HospFlowError) -> JSONResponse:
    if isinstance(exc, (ValidationError, GuardViolation)):
        logger.warning("Rejected %s %s: %s", request.method, request.url.path, exc.detail)
    body = {"error": exc.kind, "detail": exc.detail}
    if exc.patient_id:
        body["patient_id"] = exc.patient_id
    return JSONResponse(status_code=exc.status_code, content=body)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(HospFlowError, _handle_hospflow_error)
