"""
Response normalization for the Hotel Dashboard API client.

Every API call resolves to an ApiResult. Successful responses are unwrapped
from the server envelope; failures of any kind (HTTP error statuses, network
errors, unexpected exceptions) are collapsed into the same shape.
"""

import logging
from typing import Any, Mapping, Optional

from hotel_shared.exceptions import (
    APIRequestError, HotelDashboardError, NetworkError, GENERIC_ERROR_MESSAGE,
    handle_exception
)
from hotel_shared.models import ApiResult, FieldErrors, ResponseEnvelope

logger = logging.getLogger(__name__)


DEFAULT_SUCCESS_MESSAGE = "ok"


def coerce_field_errors(raw: Optional[Mapping[str, Any]]) -> FieldErrors:
    """
    Coerce a server field-error map so every value is a list of strings.

    A single string becomes a one-element list; lists pass through with their
    items converted to strings. Null values are dropped.
    """
    normalized: FieldErrors = {}
    if not raw:
        return normalized

    for field_name, value in raw.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            normalized[field_name] = [str(item) for item in value]
        else:
            normalized[field_name] = [str(value)]

    return normalized


def normalize_envelope(payload: Any) -> ApiResult:
    """
    Unwrap a 2xx response body into an ApiResult.

    Missing ``success`` means success, a missing or empty ``message``
    becomes "ok", and missing ``errors`` becomes an empty map.
    """
    envelope = ResponseEnvelope.from_payload(payload)

    return ApiResult(
        success=True if envelope.success is None else envelope.success,
        message=envelope.message or DEFAULT_SUCCESS_MESSAGE,
        data=envelope.data,
        errors=coerce_field_errors(envelope.errors)
    )


def normalize_error(error: BaseException) -> ApiResult:
    """
    Collapse any failure into an unsuccessful ApiResult.

    The message is the server-provided message when there is one, else the
    transport error's own message, else a generic fallback. Exceptions that
    are neither API nor transport errors only ever get the generic message.
    """
    if not isinstance(error, HotelDashboardError):
        logger.error(f"Unexpected error during API call: {type(error).__name__}: {error}")
        error = handle_exception(error)

    if isinstance(error, APIRequestError):
        envelope = ResponseEnvelope.from_payload(error.payload)
        return ApiResult(
            success=False,
            message=envelope.message or error.message or GENERIC_ERROR_MESSAGE,
            data=None,
            errors=coerce_field_errors(envelope.errors)
        )

    if isinstance(error, NetworkError):
        return ApiResult(
            success=False,
            message=error.message or GENERIC_ERROR_MESSAGE,
            data=None,
            errors={}
        )

    return ApiResult(success=False, message=error.user_message or GENERIC_ERROR_MESSAGE, data=None, errors={})
