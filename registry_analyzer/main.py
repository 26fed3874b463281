from contextlib import asynccontextmanager
from time import perf_counter
from typing import Any

from fastapi import FastAPI, Request

from registry_analyzer.core import settings
from registry_analyzer.routers import analysis, ha, system, tool_call
from registry_analyzer.services.log_service import log_http_request, start_log_worker, stop_log_worker


@asynccontextmanager
async def lifespan(_: FastAPI):
    start_log_worker()
    try:
        yield
    finally:
        stop_log_worker()


app = FastAPI(title=settings.APP_NAME, version="0.1.0", lifespan=lifespan)

app.include_router(analysis.router)
app.include_router(tool_call.router)
app.include_router(ha.router)
app.include_router(system.router)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = perf_counter()
    response = await call_next(request)
    if request.url.path != "/health":
        log_http_request(
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round((perf_counter() - started) * 1000, 2),
            client_ip=request.client.host if request.client else None,
        )
    return response


@app.get("/health")
async def health() -> dict[str, Any]:
    with settings.runtime_config_lock:
        return {
            "service": settings.APP_NAME,
            "status": "ok",
            "ha_base_url": settings.HA_BASE_URL,
            "ha_token_set": bool(settings.HA_TOKEN),
        }
