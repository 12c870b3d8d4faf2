from __future__ import annotations
import uuid
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from questboard.config import settings
from questboard.errors import DomainError
from questboard.logging_setup import configure_logging
from questboard.routes.system import router as system_router
from questboard.routes.challenges import router as challenges_router
from questboard.routes.submissions import router as submissions_router
from questboard.routes.progress import router as progress_router
from questboard.routes.badges import router as badges_router
from questboard.routes.raffle import router as raffle_router
from questboard.routes.payments import router as payments_router
from questboard.routes.notifications import router as notifications_router
import structlog

configure_logging()
log = structlog.get_logger()

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    log.info("startup", env=settings.environment, version=settings.app_version, git_sha=settings.git_sha)
    yield
    # Shutdown
    log.info("shutdown")

app = FastAPI(
    title=f"{settings.app_display_name} API",
    version=settings.app_version,
    lifespan=lifespan,
    description=f"{settings.app_display_name} API for monthly teen challenges, badges and the yearly raffle",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.environment == "dev" else settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(system_router)
app.include_router(challenges_router)
app.include_router(submissions_router)
app.include_router(progress_router)
app.include_router(badges_router)
app.include_router(raffle_router)
app.include_router(payments_router)
app.include_router(notifications_router)

@app.exception_handler(DomainError)
async def domain_error(request: Request, exc: DomainError):
    if exc.status_code >= 500:
        log.error("dependency_failed", path=request.url.path, error=exc.message)
    else:
        log.info("request_rejected", path=request.url.path, status=exc.status_code, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

@app.middleware("http")
async def add_request_id(request: Request, call_next):
    rid = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = rid
    structlog.contextvars.bind_contextvars(request_id=rid)
    response: Response = await call_next(request)
    response.headers["X-Request-ID"] = rid
    structlog.contextvars.clear_contextvars()
    return response
