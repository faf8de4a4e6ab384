from typing import Any, Optional

from fastapi import status as http_status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

SUCCESS_STATUS = "success"
ERROR_STATUS = "error"

MESSAGES = {
    "SERVER_ERROR": "Internal server error",
    "DB_ERROR": "Database error occurred",
    "VALIDATION_ERROR": "Validation error occurred",
    "DUPLICATE_ENTRY": "Duplicate entry found",
}


def build_envelope(
    status_code: int,
    message: Any,
    data: Any = None,
    pagination: Optional[dict] = None,
) -> dict:
    body = {
        "status": SUCCESS_STATUS if status_code < 400 else ERROR_STATUS,
        "statusCode": status_code,
        "message": message,
    }
    if data is not None:
        body["data"] = data
    if pagination:
        body["pagination"] = pagination
    return body


def api_response(
    message: Any,
    data: Any = None,
    pagination: Optional[dict] = None,
    status_code: int = http_status.HTTP_200_OK,
    headers: Optional[dict] = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(build_envelope(status_code, message, data, pagination)),
        headers=headers,
    )
