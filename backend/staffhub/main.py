import asyncio
import logging
import os
import time
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from staffhub.api.auth import router as auth_router
from staffhub.api.staff import router as staff_router
from staffhub.api.verification import router as verification_router
from staffhub.core.api_response import error_response_payload, get_request_id
from staffhub.core.metrics import increment_counter, prometheus_text
from staffhub.core.settings import get_settings
from staffhub.services.maintenance import run_cleanup_loop

logger = logging.getLogger(__name__)
if not logging.getLogger().handlers:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def _allowed_origins() -> list[str]:
    raw = os.getenv("ALLOWED_ORIGINS", "http://localhost:8081,http://localhost:3000")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


@asynccontextmanager
async def lifespan(_: FastAPI):
    settings = get_settings()
    cleanup_stop_event: asyncio.Event | None = None
    cleanup_task: asyncio.Task | None = None
    if settings.cleanup_enabled:
        cleanup_stop_event = asyncio.Event()
        cleanup_task = asyncio.create_task(run_cleanup_loop(cleanup_stop_event, settings))

    yield

    if cleanup_stop_event is not None:
        cleanup_stop_event.set()
    if cleanup_task is not None:
        try:
            await asyncio.wait_for(cleanup_task, timeout=3)
        except (asyncio.TimeoutError, Exception):
            cleanup_task.cancel()


app = FastAPI(title="StaffHub API", lifespan=lifespan)
app.include_router(auth_router)
app.include_router(staff_router)
app.include_router(verification_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    request.state.request_id = request.headers.get("X-Request-ID") or uuid4().hex
    started_at = time.perf_counter()
    response = await call_next(request)
    response.headers["X-Request-ID"] = request.state.request_id
    if request.url.path != "/metrics/prometheus":
        increment_counter("http_requests_total", method=request.method, status=str(response.status_code))
    logger.info(
        "http_request request_id=%s %s %s -> %s in %.1fms",
        request.state.request_id,
        request.method,
        request.url.path,
        response.status_code,
        (time.perf_counter() - started_at) * 1000,
    )
    return response


def _error(request: Request, status_code: int, code: str, message: str, details=None, headers=None) -> JSONResponse:
    increment_counter("http_errors_total", code=str(status_code), method=request.method)
    return JSONResponse(
        status_code=status_code,
        headers=headers,
        content=error_response_payload(request, code=code, message=message, details=details),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    # Business rejections carry their user-facing message as the detail.
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return _error(request, exc.status_code, f"http_{exc.status_code}", message, exc.detail, exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    fields = [{"loc": list(err.get("loc", ())), "msg": str(err.get("msg", ""))} for err in exc.errors()]
    return _error(request, 422, "validation_error", "Validation error", fields)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error request_id=%s", get_request_id(request), exc_info=exc)
    return _error(request, 500, "internal_error", "Internal server error")


@app.get("/health")
def health(request: Request):
    return {"ok": True, "status": "ok", "request_id": get_request_id(request)}


@app.get("/metrics/prometheus")
def metrics_prometheus():
    return PlainTextResponse(content=prometheus_text(), media_type="text/plain; version=0.0.4; charset=utf-8")
