import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from internhours.application import build_services, configure_services
from internhours.core.errors import WorkflowError
from internhours.core.logging_config import setup_logging
from internhours.core.settings import load_settings
from internhours.routes import entries, logbooks, review, students

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    settings = load_settings()
    setup_logging(settings.log_level)

    app = FastAPI(title="Internship Hours API", version="0.1.0")
    configure_services(build_services(settings))

    origins = settings.cors_origins or ["http://localhost:5173", "http://127.0.0.1:5173"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(WorkflowError)
    async def workflow_error_handler(request: Request, exc: WorkflowError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={
                "code": "validation_error",
                "detail": "request body or parameters are invalid",
                "errors": jsonable_encoder(exc.errors()),
            },
        )

    app.include_router(entries.router, prefix="/api")
    app.include_router(students.router, prefix="/api")
    app.include_router(review.router, prefix="/api")
    app.include_router(logbooks.router, prefix="/api")

    @app.get("/", include_in_schema=False)
    async def root() -> JSONResponse:
        """Provide a lightweight landing page for container checks."""
        return JSONResponse(
            {
                "message": "Internship Hours API",
                "docs": "/docs",
            }
        )

    return app


app = create_app()
