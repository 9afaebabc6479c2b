from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging
from time import time

from leadsweep import __version__
from leadsweep.core.config import settings
from leadsweep.core.errors import LeadSweepError
from leadsweep.db.base import Base
from leadsweep.db.session import engine
from leadsweep.api.v1.endpoints import batches, estimates, jobs, usage
import leadsweep.models  # noqa: F401  registers every table on Base.metadata

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    version=__version__,
    docs_url="/api/docs",
    openapi_url="/api/openapi.json"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time()
    method = request.method
    path = request.url.path
    client_ip = request.client.host if request.client else "unknown"

    logger.info(f"→ {method} {path} from {client_ip}")
    response = await call_next(request)

    duration = time() - start_time
    if response.status_code == 404:
        logger.warning(f"✗ 404 NOT FOUND: {method} {path} from {client_ip} (duration: {duration:.3f}s)")
    else:
        logger.info(f"← {method} {path} → {response.status_code} (duration: {duration:.3f}s)")
    return response


@app.exception_handler(LeadSweepError)
async def leadsweep_exception_handler(request: Request, exc: LeadSweepError):
    """Configuration, upstream, caller and not-found errors from the pipeline."""
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    else:
        logger.info(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


# Anything unexpected still answers with JSON
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled exception: {exc} for {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"detail": str(exc)})


# Health check endpoint
@app.get("/health")
async def health_check():
    return {"status": "healthy"}


# Include routers
app.include_router(jobs.router, prefix="/api/v1/jobs", tags=["jobs"])
app.include_router(batches.router, prefix="/api/v1/batches", tags=["batches"])
app.include_router(estimates.router, prefix="/api/v1/estimates", tags=["estimates"])
app.include_router(usage.router, prefix="/api/v1", tags=["usage"])


@app.on_event("startup")
async def startup_tasks():
    """Create missing tables and log registered routes."""
    Base.metadata.create_all(bind=engine)
    logger.info("✓ Database tables ready")

    routes = []
    for route in app.routes:
        if hasattr(route, "methods") and hasattr(route, "path"):
            for method in route.methods:
                if method != "HEAD":
                    routes.append(f"  {method:6} {route.path}")
    logger.info("REGISTERED ROUTES:")
    for route in sorted(routes):
        logger.info(route)
