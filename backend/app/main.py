import logging
import logging.config

from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.metrics import router as metrics_router
from app.api.routes import router as api_router
from app.api.ws import router as ws_router
from app.config import Settings, get_settings
from parley.realtime import RelayHub

UPLOAD_CATEGORIES = ("recordings", "images")

logger = logging.getLogger(__name__)


def build_logging_config(level: str = "INFO") -> dict:
    return {
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
            "level": level,
        },
        "loggers": {
            "parley.realtime": {
                "level": level,
            },
            "uvicorn.access": {
                "handlers": ["default"],
                "level": "WARNING",
                "propagate": False,
            },
        },
    }


async def _not_found_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        return PlainTextResponse("404 Not Found", status_code=404)
    return await http_exception_handler(request, exc)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the HTTP application together with its own relay hub."""

    settings = settings or get_settings()

    application = FastAPI(title=settings.app_name, debug=settings.debug)
    application.state.settings = settings
    application.state.relay_hub = RelayHub.from_settings(settings)

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.add_exception_handler(StarletteHTTPException, _not_found_handler)

    @application.get("/health", tags=["system"])
    def health_check() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok", "environment": settings.environment}

    application.include_router(api_router, prefix="/api")
    application.include_router(ws_router)
    application.include_router(metrics_router)

    for category in UPLOAD_CATEGORIES:
        application.mount(
            f"/uploads/{category}",
            StaticFiles(directory=settings.uploads_root / category, check_dir=False),
            name=f"uploads-{category}",
        )

    @application.on_event("startup")
    async def _startup() -> None:
        for category in UPLOAD_CATEGORIES:
            (settings.uploads_root / category).mkdir(parents=True, exist_ok=True)

    return application


_settings = get_settings()
logging.config.dictConfig(build_logging_config(_settings.log_level))

app = create_app(_settings)
