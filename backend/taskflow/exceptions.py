"""DRF exception handling for the taskflow API.

Reconciler errors carry no HTTP knowledge; they are translated here into the
DRF exception with the matching status code before DRF renders them.
"""

from rest_framework import exceptions, status
from rest_framework.views import exception_handler as drf_exception_handler

from tasks.reconciler import StepNotFound, TaskValidationError

from .logging_config import get_logger

logger = get_logger(__name__)

# camelCase wire names for reconciler field names
WIRE_FIELD_NAMES = {
    "time_estimate": "timeEstimate",
    "on_hold_reason": "onHoldReason",
}


class Conflict(exceptions.APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Resource already exists."
    default_code = "conflict"


class InvalidApiKey(exceptions.APIException):
    # stays 401 on views without authentication classes, unlike AuthenticationFailed
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Invalid API key"
    default_code = "invalid_api_key"


def _translate(exc):
    if isinstance(exc, StepNotFound):
        return exceptions.NotFound("Step not found")
    if isinstance(exc, TaskValidationError):
        field = WIRE_FIELD_NAMES.get(exc.field_name, exc.field_name)
        return exceptions.ValidationError({field: [exc.message]})
    return exc


def exception_handler(exc, context):
    exc = _translate(exc)
    response = drf_exception_handler(exc, context)
    if response is not None:
        view = context.get("view")
        logger.warning(
            "request_rejected",
            view=type(view).__name__ if view is not None else None,
            status_code=response.status_code,
            detail=response.data,
        )
    return response
