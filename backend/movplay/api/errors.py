"""
Error envelope for every caller-visible failure.

Services raise MovPlayError subclasses; this module turns them into
{"error": {"code": ..., "message": ...}} with the status the class carries.
Request validation failures use the same envelope with status 400.
"""
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from movplay.core.errors import MovPlayError

logger = logging.getLogger(__name__)


def _error(code: str, message: str) -> dict:
    """Standard error envelope."""
    return {"error": {"code": code, "message": message}}


async def movplay_error_handler(request: Request, exc: MovPlayError) -> JSONResponse:
    level = logging.WARNING if exc.status_code >= 500 else logging.INFO
    logger.log(
        level,
        "%s %s -> %s %s: %s",
        request.method,
        request.url.path,
        exc.status_code,
        exc.code,
        exc.message,
    )
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == status.HTTP_401_UNAUTHORIZED else None
    return JSONResponse(
        status_code=exc.status_code,
        content=_error(exc.code, exc.message),
        headers=headers,
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        messages.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
    logger.info("%s %s -> 400 INVALID_INPUT", request.method, request.url.path)
    content = _error("INVALID_INPUT", "Invalid input data. " + "; ".join(messages))
    content["error"]["details"] = [
        {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=content)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(MovPlayError, movplay_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
