"""
ARCHISHEETS - project manager API for architecture memòries
FastAPI service that keeps browser-side projects in sync with Google Sheets
(master index + one spreadsheet per project) and Google Drive.

Run server:
uvicorn archisheets.main:app --host 0.0.0.0 --port 8000
"""

import logging
import os
import time
import uuid
import contextvars

from fastapi import FastAPI, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from archisheets.routers import projects as projects_router
from archisheets.settings import get_settings

# ========== Request Context for Tracing ==========
request_id_var = contextvars.ContextVar('request_id', default=None)

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# ============================================================================
# FASTAPI APP
# ============================================================================

app = FastAPI(
    title="ARCHISHEETS API",
    description="Sync layer between project memòries, Google Sheets and Google Drive",
    version="1.0",
    docs_url="/docs",
    redoc_url="/redoc"
)


@app.middleware("http")
async def request_tracing_middleware(request, call_next):
    """Add request_id and timing to all requests."""
    request_id = str(uuid.uuid4())[:8]
    request_id_var.set(request_id)
    started = time.time()

    response = await call_next(request)

    latency = time.time() - started
    logger.info(
        "%s %s -> %s (%.2f ms) [%s]",
        request.method,
        request.url.path,
        response.status_code,
        latency * 1000,
        request_id,
    )

    response.headers["X-Request-ID"] = request_id
    return response


ALLOWED_ORIGINS = settings.get_origins_list()

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"}
    )


# ============================================================================
# ENDPOINTS
# ============================================================================

startup_time = time.time()


@app.get("/health")
async def health_check():
    """Liveness probe. Google access is per request, so nothing remote is checked."""
    return {
        "status": "ok",
        "timestamp": time.time(),
        "uptime_seconds": round(time.time() - startup_time, 2),
        "master_sheet_configured": bool(settings.master_sheet_id),
        "version": "1.0",
    }


app.include_router(projects_router.router)


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run("archisheets.main:app", host="0.0.0.0", port=port)
