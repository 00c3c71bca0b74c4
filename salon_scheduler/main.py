import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from sqlalchemy.exc import SQLAlchemyError

from salon_scheduler.db.init_db import create_database
from salon_scheduler.db.base import Base
from salon_scheduler.db.session import engine
from salon_scheduler.core.config import settings
from salon_scheduler.core.exceptions import ConflictBookedOutsideRange, SchedulingError
from salon_scheduler.core.logging_config import setup_logging
from salon_scheduler.api.v1.router import api_router
from salon_scheduler.schemas.common import ConflictResponse, ErrorResponse

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: Ensure DB exists and create tables
    setup_logging(settings.LOG_LEVEL)
    if settings.CREATE_DATABASE:
        create_database()
    Base.metadata.create_all(bind=engine)
    logger.info("%s started", settings.PROJECT_NAME)
    yield


from fastapi.middleware.cors import CORSMiddleware

app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)

# Set all CORS enabled origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SchedulingError)
async def scheduling_error_handler(request: Request, exc: SchedulingError):
    logger.warning("%s %s rejected: %s (%s)", request.method, request.url.path, exc.code, exc.message)
    if isinstance(exc, ConflictBookedOutsideRange):
        body = ConflictResponse(error=exc.code, message=exc.message, detail=exc.detail, affected=exc.affected)
    else:
        body = ErrorResponse(error=exc.code, message=exc.message, detail=exc.detail)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Database failure on %s %s", request.method, request.url.path)
    body = ErrorResponse(error="internal", message="An unexpected database error occurred")
    return JSONResponse(status_code=500, content=body.model_dump())


app.include_router(api_router, prefix=settings.API_V1_STR)

@app.get("/")
def read_root():
    return {"Hello": "Salon Scheduler"}
