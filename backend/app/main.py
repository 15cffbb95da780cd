import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from app import config
from app.database import engine, Base
from app.errors import AnnotationError
from app.logging_config import setup_logging
from app.routers import annotations, reports, submissions

setup_logging(config.LOG_LEVEL, config.LOG_FILE)
logger = logging.getLogger(__name__)

# 1. Create Database Tables (If they don't exist)
Base.metadata.create_all(bind=engine)

# 2. Initialize App
app = FastAPI(title="Oral Health Screening Backend")

# 3. CORS Configuration (Allow React Frontend)
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# 4. Domain errors carry their own HTTP status
@app.exception_handler(AnnotationError)
async def annotation_error_handler(request: Request, exc: AnnotationError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "retryable": exc.retryable},
    )


# 5. Register Routers
app.include_router(submissions.router)
app.include_router(annotations.router)
app.include_router(reports.router)

# 6. Serve locally stored photos and reports when Supabase is not in use
if not config.is_supabase_configured():
    app.mount("/uploads", StaticFiles(directory=config.UPLOAD_DIR, check_dir=False), name="uploads")


@app.get("/")
def root():
    return {"message": "Screening API is running!"}
