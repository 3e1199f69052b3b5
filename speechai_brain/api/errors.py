"""
Exception handlers mapping domain errors to HTTP responses.

Storage and dependency errors carry their status code. Client errors
(4xx) return their message; server-side failures are logged with detail
and answered with a generic message.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..services.exceptions import DependencyError
from ..storage.exceptions import StorageError

logger = logging.getLogger("speechai.api.errors")

GENERIC_STORAGE_MESSAGE = "A storage error occurred while processing the request."


async def storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=exc.status_code, content={"detail": GENERIC_STORAGE_MESSAGE})
    logger.info("%s %s -> %d: %s", request.method, request.url.path, exc.status_code, exc)
    return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})


async def dependency_error_handler(request: Request, exc: DependencyError) -> JSONResponse:
    logger.error("Dependency failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.public_message})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StorageError, storage_error_handler)
    app.add_exception_handler(DependencyError, dependency_error_handler)
