from fastapi import Request, status
from fastapi.responses import JSONResponse


class BootseeError(Exception):
    """Base class for domain failures; each maps to one HTTP status."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationFailed(BootseeError):
    status_code = status.HTTP_400_BAD_REQUEST


class Forbidden(BootseeError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFound(BootseeError):
    status_code = status.HTTP_404_NOT_FOUND


class RideConflict(BootseeError):
    status_code = status.HTTP_409_CONFLICT


class InvalidTransition(RideConflict):
    pass


class VerificationError(BootseeError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class UpstreamError(BootseeError):
    status_code = status.HTTP_502_BAD_GATEWAY


async def bootsee_error_handler(request: Request, exc: BootseeError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})
