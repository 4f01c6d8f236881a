from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from factoring.api.v1 import api_router
from factoring.core.errors import register_exception_handlers
from factoring.core.logging import configure_logging
from factoring.core.settings import settings
from factoring.events import register_event_handlers
from factoring.middlewares.request_context import RequestContextMiddleware


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="Factoring Portal Backend", version="0.1.0")
    register_exception_handlers(app)
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(api_router, prefix="/api/v1")
    register_event_handlers(app)
    return app


app = create_app()
