from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from config import settings
from logging_config import get_logger

logger = get_logger(__name__)

class ApiError(Exception):
    code = "INTERNAL_ERROR"
    status_code = 500
    default_message = "An internal error occurred"

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body

class ValidationFailed(ApiError):
    code = "VALIDATION_ERROR"
    status_code = 400
    default_message = "Request validation failed"

class InvalidParent(ApiError):
    code = "INVALID_PARENT"
    status_code = 400
    default_message = "Parent must be a folder"

class NotFound(ApiError):
    code = "NOT_FOUND"
    status_code = 404
    default_message = "Item not found"

class DuplicateName(ApiError):
    code = "DUPLICATE_NAME"
    status_code = 409
    default_message = "An item with this name already exists in this location"

class NoFile(ApiError):
    code = "NO_FILE"
    status_code = 400
    default_message = "No file uploaded"

class FileNotFound(ApiError):
    code = "FILE_NOT_FOUND"
    status_code = 404
    default_message = "File not found on disk"

class InvalidType(ApiError):
    code = "INVALID_TYPE"
    status_code = 400
    default_message = "Operation not valid for this item type"

class FileTooLarge(ApiError):
    code = "FILE_TOO_LARGE"
    status_code = 413
    default_message = "Uploaded file exceeds the maximum allowed size"

class Conflict(ApiError):
    code = "CONFLICT"
    status_code = 409
    default_message = "The item changed while the request was processed"

def translate_integrity_error(exc: IntegrityError) -> ApiError:
    """Map an insert's constraint violation onto the public error kinds.

    Only the parent foreign key and the (parent, type, name) unique index are
    recognized; anything else becomes a plain internal error.
    """
    text = str(exc.orig).lower()
    if "foreign key" in text:
        return NotFound("Parent folder not found")
    if "unique" in text or "duplicate key" in text:
        return DuplicateName()
    return ApiError()

def _field_path(loc) -> str:
    parts = [str(p) for p in loc]
    if parts and parts[0] in ("body", "query", "path", "form", "header"):
        parts = parts[1:]
    return ".".join(parts) or "request"

async def api_error_handler(request: Request, exc: ApiError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = {}
    for error in exc.errors():
        details[_field_path(error.get("loc", ()))] = error.get("msg", "Invalid value")
    logger.info(f"Validation failed for {request.method} {request.url.path}: {details}")
    return JSONResponse(status_code=400, content=ValidationFailed(details=details).to_dict())

async def integrity_error_handler(request: Request, exc: IntegrityError):
    api_error = translate_integrity_error(exc)
    if api_error.status_code >= 500:
        logger.error(f"Unexpected constraint violation on {request.method} {request.url.path}: {exc.orig}")
    else:
        logger.warning(f"Constraint violation on {request.method} {request.url.path}: {exc.orig}")
    return JSONResponse(status_code=api_error.status_code, content=api_error.to_dict())

async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    message = "An internal error occurred" if settings.is_production else str(exc)
    return JSONResponse(status_code=500, content={"code": "INTERNAL_ERROR", "message": message})

def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
