import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from buildtask.config.settings import settings
from buildtask.database import Base, SessionLocal, engine
from buildtask.exceptions import ReportError
from buildtask.routers import report_catalog, reports
from buildtask.services.report_catalog import ReportTypeService

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Construction Task Tracker Reports")

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Route registration
app.include_router(reports.router)
app.include_router(report_catalog.router)


@app.exception_handler(ReportError)
async def report_error_handler(request: Request, exc: ReportError):
    if exc.status_code >= 500:
        logger.error(f"{exc.kind} on {request.method} {request.url.path}: {exc.message}")
    else:
        logger.warning(f"{exc.kind} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Startup events
@app.on_event("startup")
def startup_event():
    """Create missing tables and the report types backing each report kind"""
    logger.info("Starting reports API...")
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        ReportTypeService(db).ensure_default_types()
    finally:
        db.close()
    logger.info(f"Report artifacts stored under {settings.get_storage_root()}")


@app.get("/")
def read_root():
    return {"message": "Construction Task Tracker Reports API"}

@app.get("/health")
def health():
    return {"status": "ok"}
