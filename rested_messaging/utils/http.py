import logging
from typing import Any, Dict, List

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException


logger = logging.getLogger(__name__)

MISSING_ERROR_TYPES = {"missing", "string_too_short"}


def describe_validation_errors(errors: List[Dict[str, Any]]) -> str:
    missing: List[str] = []
    invalid: List[str] = []
    messages: List[str] = []
    for err in errors:
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        if not loc:
            # model-level rule, e.g. "one of a, b or c"
            messages.append(str(err.get("msg", "Invalid request")).removeprefix("Value error, "))
        elif err.get("type") in MISSING_ERROR_TYPES:
            missing.append(".".join(loc))
        else:
            invalid.append(".".join(loc))
    if missing:
        return "Missing required parameters: " + ", ".join(dict.fromkeys(missing))
    if invalid:
        return "Invalid parameters: " + ", ".join(dict.fromkeys(invalid))
    if messages:
        return messages[0]
    return "Invalid request"


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": describe_validation_errors(list(exc.errors()))})


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


async def guard_requests(request: Request, call_next):
    """Bare OPTIONS get 204; unexpected errors become the 500 body inside the CORS layer."""
    if request.method == "OPTIONS":
        return Response(status_code=204)
    try:
        return await call_next(request)
    except Exception as exc:
        return await unhandled_exception_handler(request, exc)


def install_http_surface(app: FastAPI) -> None:
    """Open CORS, bare OPTIONS answers and the ``{"error": ...}`` error shape."""
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
    app.middleware("http")(guard_requests)
    # added last so it wraps everything and answers CORS preflights itself
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
