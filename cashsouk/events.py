import logging
from pathlib import Path

from fastapi import FastAPI

from cashsouk.core.settings import settings
from cashsouk.db.session import engine

logger = logging.getLogger(__name__)


def _prepare_storage() -> None:
    if settings.storage_provider == "local":
        Path(settings.local_upload_dir).mkdir(parents=True, exist_ok=True)
    elif not settings.gcs_bucket:
        logger.error("STORAGE_PROVIDER=gcs without GCS_BUCKET; document uploads will fail")


def register_event_handlers(app: FastAPI) -> None:
    @app.on_event("startup")
    async def on_startup() -> None:
        _prepare_storage()
        if settings.environment == "production" and settings.secret_key == "change-me":
            logger.warning("SECRET_KEY is the default; local upload URLs can be forged")
        logger.info(
            "cashsouk backend started",
            extra={"fields": {"storage_provider": settings.storage_provider}},
        )

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        await engine.dispose()
        logger.info("cashsouk backend stopped")
