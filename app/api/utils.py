import logging

from fastapi.exceptions import RequestValidationError
from starlette.requests import Request
from starlette.responses import JSONResponse

from app.models import ProvisionResponse
from app.services.errors import (
    GatewayException,
    ProvisioningCancelledException,
    RandomSourceException,
    ReadinessTimeoutException,
    StackpressException,
    ValidationException,
)

ERROR_STATUS = {
    ValidationException: 400,
    RandomSourceException: 500,
    GatewayException: 500,
    ReadinessTimeoutException: 500,
    ProvisioningCancelledException: 500,
}

logger = logging.getLogger(__name__)


def status_for(exc: Exception | None) -> int:
    if exc is None:
        return 200
    for exc_type in type(exc).__mro__:
        if exc_type in ERROR_STATUS:
            return ERROR_STATUS[exc_type]
    return 500


def envelope(*, status_code: int, message: str, headers: dict[str, str] | None = None) -> JSONResponse:
    body = ProvisionResponse(success=False, message=message, resources=[])
    return JSONResponse(body.model_dump(), status_code=status_code, headers=headers)


def _exception_handler(request: Request, exc: Exception):
    status = status_for(exc)
    if status >= 500:
        logger.exception("Unhandled application error for path=%s: %s", request.url.path, exc)
    else:
        logger.warning("Request failed path=%s status=%s error=%s", request.url.path, status, exc)
    return envelope(status_code=status, message=str(exc))


def _request_validation_handler(request: Request, exc: RequestValidationError):
    logger.warning("Rejected malformed payload path=%s errors=%s", request.url.path, exc.errors())
    return envelope(status_code=400, message="Invalid JSON payload")


def register_exception_handlers(app):
    app.exception_handler(StackpressException)(_exception_handler)
    app.exception_handler(RequestValidationError)(_request_validation_handler)
