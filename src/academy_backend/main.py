'''
FastAPI application: lifespan, error mapping, CORS and routers.
'''
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from .database.engine import create_all_tables, create_db_engine_and_session_factory, dispose_db_engine
from .common.exceptions import AcademyError
from .common.logger import log
from .common.config import settings
from .api import teachers, students, packages, lessons, reports

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Handles application startup and shutdown events.
    """
    # --- On App Startup ---
    log.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}...")
    create_db_engine_and_session_factory()
    if settings.CREATE_TABLES_ON_STARTUP or settings.TEST_MODE:
        await create_all_tables()

    yield # --- Application is now running ---

    # --- On App Shutdown ---
    log.info("Application lifespan shutdown...")
    await dispose_db_engine()


# ---- CREATING THE APP ----
app = FastAPI(
    title=settings.APP_NAME,
    description=settings.APP_DESCRIPTION,
    version=settings.APP_VERSION,
    lifespan=lifespan
)

# --- Add CORS Middleware ---
origins = [
    # URL of testing frontend
    "http://localhost",
    "http://localhost:3000",
]

# Extend with environment-specific origins
origins.extend(settings.BACKEND_CORS_ORIGINS)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],)
# --- End of CORS Middleware ---

@app.exception_handler(AcademyError)
async def academy_error_handler(request: Request, exc: AcademyError):
    """Renders domain errors as {"detail", "error", ["conflicts"]} with their HTTP status."""
    log.info(f"{request.method} {request.url.path} -> {exc.status_code} {exc.error_kind}: {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

@app.get("/")
async def health_check():
    return {"status": "ok", "message": f"{settings.APP_NAME} is running"}

app.include_router(teachers.router)
app.include_router(students.router)
app.include_router(packages.router)
app.include_router(lessons.router)
app.include_router(reports.router)
