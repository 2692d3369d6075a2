"""
Error taxonomy shared by the policy, the lifecycle rules and the stores.

Every failure surfaces at the request boundary as ``{"error": message}`` with
the status code carried by the exception class. Nothing here retries.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError

logger = logging.getLogger("fleet.errors")


class FleetError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthenticated(FleetError):
    status_code = 401
    default_message = "Unauthorized"


class ProfileMissing(FleetError):
    # identity verified by the token, but no user profile behind it
    status_code = 404
    default_message = "User not found"


class Forbidden(FleetError):
    status_code = 403
    default_message = "Forbidden"


class NotFound(FleetError):
    status_code = 404
    default_message = "Not found"


class ValidationFailed(FleetError):
    status_code = 400
    default_message = "Invalid request"


class Conflict(FleetError):
    status_code = 400
    default_message = "Conflict"


class Unclassified(FleetError):
    status_code = 500


class DuplicateKey(Exception):
    """Raised by the stores when a unique index rejects a write."""

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"duplicate value for {field}")


DUPLICATE_MESSAGES = {
    "email": "A user with this email already exists",
    "license_number": "A driver with this license number already exists",
    "license_plate": "A vehicle with this license plate already exists",
    "user_id": "This user already has a driver record",
}


def conflict_for(err: DuplicateKey) -> Conflict:
    return Conflict(DUPLICATE_MESSAGES.get(err.field, f"Duplicate {err.field}"))


def _format_validation(exc: RequestValidationError) -> str:
    parts = []
    for e in exc.errors():
        loc = ".".join(str(p) for p in e.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {e.get('msg')}" if loc else e.get("msg", "invalid"))
    return "; ".join(parts) or ValidationFailed.default_message


def install_error_handlers(app: FastAPI):
    @app.exception_handler(FleetError)
    async def fleet_error(request: Request, exc: FleetError):
        if isinstance(exc, Unclassified):
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
            return JSONResponse(status_code=500, content={"error": FleetError.default_message})
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(PyMongoError)
    async def storage_error(request: Request, exc: PyMongoError):
        return await fleet_error(request, Unclassified(f"storage failure: {exc}"))

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": _format_validation(exc)})

    @app.exception_handler(Exception)
    async def unhandled(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": FleetError.default_message})
