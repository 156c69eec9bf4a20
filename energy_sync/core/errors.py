"""
Error types and FastAPI error handlers
"""

import traceback

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse

from energy_sync.core.config import config
from energy_sync.core.logger import logger


class ErrorResponse(Exception):
    """Custom exception for application errors"""

    def __init__(self, message: str, status_code: int = 400, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class BrokerError(Exception):
    """Base class for message fabric failures"""


class BrokerNotConnectedError(BrokerError):
    """Raised when publishing or consuming without an open channel"""


class UnknownDestinationError(BrokerError):
    """Raised when a destination was not declared in the topology"""


class MalformedEventError(Exception):
    """Raised when a message body cannot be decoded into a known event"""

async def error_response_handler(request: Request, exc: ErrorResponse):
    """Handler for custom ErrorResponse exceptions"""
    metadata = {
        "event": "error_response",
        "status_code": exc.status_code,
        "url": str(request.url),
        "method": request.method,
        **exc.details,
    }

    if config.environment == "development":
        metadata["traceback"] = traceback.format_exc()

    logger.error(f"Error: {exc.message}", metadata=metadata)

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, "details": exc.details},
    )

async def http_exception_handler(request: Request, exc: HTTPException):
    """Handler for FastAPI HTTPException"""
    logger.error(
        f"HTTPException: {exc.detail}",
        metadata={
            "event": "http_exception",
            "status_code": exc.status_code,
            "url": str(request.url),
            "method": request.method,
        },
    )

    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
