# fittrack/core/error_handler_global.py
"""
A global error handling system to catch unhandled exceptions,
log them, and return a user-friendly response.

Dialogue-internal failures never reach this handler; the dialogue engine
routes them to an ERROR state. What arrives here is a malformed request,
a missing identity, or a genuine bug.
"""
import logging
import traceback

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


# Custom Exception Classes
class NetworkError(Exception): pass
class AuthenticationError(Exception): pass
class RateLimitError(Exception): pass
class DatabaseError(Exception): pass
class ValidationError(Exception): pass


class NutritionServiceError(NetworkError):
    """The nutrition lookup service could not be reached or answered with an error."""


class FlowDefinitionError(Exception):
    """A dialogue state table references missing states or loops through actions."""


# In production, we don't want to expose internal error details.
# Overridden from `app.debug` in config at startup.
is_debug_mode = False


async def global_exception_handler(request: Request, exc: Exception):
    """
    Catch-all exception handler for the FastAPI application.
    """
    error_details = traceback.format_exc()

    status_code = 500
    if isinstance(exc, (ValidationError, RateLimitError)):
        status_code = 400
    elif isinstance(exc, AuthenticationError):
        status_code = 401

    if status_code >= 500:
        logger.critical(f"Unhandled exception on {request.url.path}: {exc}", exc_info=exc)
    else:
        logger.warning(f"{type(exc).__name__} on {request.url.path}: {exc}")

    if is_debug_mode:
        response_content = {
            "error": "An internal server error occurred." if status_code >= 500 else str(exc),
            "type": type(exc).__name__,
            "details": str(exc),
            "traceback": error_details.splitlines()
        }
    elif status_code < 500:
        response_content = {"error": str(exc)}
    else:
        response_content = {
            "error": "We're sorry, something went wrong. Please try again later."
        }

    return JSONResponse(
        status_code=status_code,
        content=response_content
    )
