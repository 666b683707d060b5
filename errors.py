import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

# leading loc entries FastAPI adds to say where a value came from
_REQUEST_LOCATIONS = {"body", "query", "path", "header", "cookie", "form"}


class FeedError(Exception):
    """Base class for errors that map onto an HTTP status and a JSON body."""

    status_code = 500
    message = "An internal error occurred."

    def __init__(self, message=None, data=None):
        self.message = message or self.message
        self.data = data
        super().__init__(self.message)

    def to_dict(self) -> dict:
        body = {"message": self.message}
        if self.data:
            body["data"] = self.data
        return body


class ValidationFailedError(FeedError):
    status_code = 422
    message = "Validation failed, entered data is incorrect."


class MissingImageError(FeedError):
    status_code = 422
    message = "No image provided."


class NotAuthenticatedError(FeedError):
    status_code = 401
    message = "Not authenticated."


class ForbiddenError(FeedError):
    status_code = 403
    message = "Not authorized!"


class NotFoundError(FeedError):
    status_code = 404
    message = "Could not find post."


class InternalError(FeedError):
    pass


def validation_details(errors) -> list:
    """Flatten pydantic error dicts into [{field, message}] pairs."""
    details = []
    for error in errors:
        loc = list(error.get("loc", ()))
        if loc and loc[0] in _REQUEST_LOCATIONS:
            loc = loc[1:]
        details.append({
            "field": ".".join(str(part) for part in loc),
            "message": error.get("msg", ""),
        })
    return details


async def feed_error_handler(request: Request, exc: FeedError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message,
                     exc_info=exc.__cause__)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def request_validation_handler(request: Request, exc: RequestValidationError):
    error = ValidationFailedError(data=validation_details(exc.errors()))
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content=InternalError().to_dict())


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(FeedError, feed_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
