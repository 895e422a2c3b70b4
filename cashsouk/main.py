from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.middleware import SlowAPIMiddleware

from cashsouk.api.v1 import api_router
from cashsouk.core.errors import register_exception_handlers
from cashsouk.core.health import APP_VERSION
from cashsouk.core.limiter import limiter
from cashsouk.core.logging import configure_logging
from cashsouk.core.response_envelope import register_response_envelope
from cashsouk.core.settings import settings
from cashsouk.events import register_event_handlers
from cashsouk.middlewares.request_context import RequestContextMiddleware
from cashsouk.middlewares.security_headers import SecurityHeadersMiddleware


def create_app() -> FastAPI:
    configure_logging()
    public_docs = settings.environment != "production"
    app = FastAPI(
        title="CashSouk Financing API",
        version=APP_VERSION,
        docs_url="/docs" if public_docs else None,
        redoc_url=None,
        openapi_url="/openapi.json" if public_docs else None,
    )
    register_exception_handlers(app)
    register_response_envelope(app)

    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(SecurityHeadersMiddleware, enable_hsts=settings.enable_hsts)
    # Issuer portal and admin console run on separate origins.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
    )

    app.include_router(api_router, prefix="/api/v1")
    register_event_handlers(app)
    return app


app = create_app()
