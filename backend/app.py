import logging
import os

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backend.core.datadir import warehouse_location
from backend.core.errors import UploadError
from backend.infrastructure.warehouse import Warehouse, configure_warehouse
from backend.routes import data, upload
from backend.workers.pipeline import reset_pipeline_worker

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    app = FastAPI(title="Preview Financial Upload API", version="0.1.0")

    warehouse = Warehouse(warehouse_location())
    warehouse.initialise()
    configure_warehouse(warehouse)
    reset_pipeline_worker()

    origins_env = os.getenv("API_CORS_ORIGINS", "")
    origins = [origin.strip() for origin in origins_env.split(",") if origin.strip()]
    if not origins:
        origins = ["http://localhost:4321", "http://127.0.0.1:4321"]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(UploadError)
    async def upload_error_handler(request: Request, exc: UploadError) -> JSONResponse:
        error = exc.error
        return JSONResponse(
            status_code=exc.status_code,
            content=jsonable_encoder(
                {
                    "error": error.display_message(),
                    "message": error.message,
                    "details": error.details,
                    "errorSeverity": error.severity.value,
                    "context": error.context,
                }
            ),
        )

    app.include_router(upload.router, prefix="/api")
    app.include_router(data.router, prefix="/api")

    @app.get("/", include_in_schema=False)
    async def root() -> JSONResponse:
        """Provide a lightweight landing page for container checks."""
        return JSONResponse(
            {
                "message": "Preview Financial Upload API",
                "docs": "/docs",
                "health": "/api/data/teams",
            }
        )

    logger.info("Application created with warehouse %s", warehouse.location)
    return app


app = create_app()
