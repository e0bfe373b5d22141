import logging.config

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from agora.realtime.managers import shutdown_realtime, startup_realtime
from app.api.metrics import router as metrics_router
from app.api.routes import router as api_router
from app.api.system import uploads_router
from app.api.ws import router as ws_router
from app.config import get_settings
from app.database import engine
from app.models import Base

settings = get_settings()

LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
        }
    },
    "handlers": {
        "default": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
        }
    },
    "root": {
        "handlers": ["default"],
        "level": settings.log_level,
    },
    "loggers": {
        "sqlalchemy.engine": {
            "level": "INFO" if settings.debug else "WARNING",
        },
    },
}


logging.config.dictConfig(LOGGING_CONFIG)

logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name, debug=settings.debug)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[str(origin).rstrip("/") for origin in settings.cors_origins],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", tags=["system"])
@app.get("/api/health", tags=["system"], include_in_schema=False)
def health_check() -> dict[str, str]:
    """Simple health check endpoint."""
    return {"status": "ok", "environment": settings.environment}


@app.on_event("startup")
async def _startup() -> None:
    if settings.database_auto_create:
        Base.metadata.create_all(bind=engine)
    await startup_realtime()
    logger.info("%s started (%s)", settings.app_name, settings.environment)


@app.on_event("shutdown")
async def _shutdown() -> None:
    await shutdown_realtime()


app.include_router(api_router, prefix="/api")
app.include_router(ws_router)
app.include_router(metrics_router)
app.include_router(uploads_router)
