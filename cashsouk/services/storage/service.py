from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date

from cashsouk.core.settings import settings
from cashsouk.schemas.application import (
    DocumentDownloadUrlResponse,
    DocumentUploadUrlRequest,
    DocumentUploadUrlResponse,
)
from cashsouk.services.storage.adapter import GCSStorageAdapter, LocalFileSystemAdapter, StorageAdapter
from cashsouk.services.storage.key_generator import KeyGenerator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StorageError(ValueError):
    code: str
    message: str
    details: dict = field(default_factory=dict)

    def __str__(self) -> str:
        return self.message


def get_storage_adapter() -> StorageAdapter:
    if settings.storage_provider == "gcs":
        if not settings.gcs_bucket:
            raise ValueError("GCS bucket is not configured")
        return GCSStorageAdapter(bucket=settings.gcs_bucket)
    return LocalFileSystemAdapter(
        base_path=settings.local_upload_dir,
        base_url=settings.public_base_url,
        signing_key=settings.secret_key,
    )


def validate_document_upload(content_type: str, file_size: int) -> None:
    allowed = settings.allowed_document_content_types
    if content_type.lower() not in allowed:
        raise StorageError(
            code="invalid_content_type",
            message="Only PDF documents can be uploaded",
            details={"content_type": content_type, "allowed": allowed},
        )
    if file_size > settings.max_document_size_bytes:
        raise StorageError(
            code="file_too_large",
            message=f"File exceeds maximum allowed size of {settings.max_document_size_bytes // (1024 * 1024)} MB",
            details={"file_size": file_size, "max_size": settings.max_document_size_bytes},
        )


def issue_document_upload(
    application_id: str,
    request: DocumentUploadUrlRequest,
    *,
    adapter: StorageAdapter | None = None,
    today: date | None = None,
) -> DocumentUploadUrlResponse:
    validate_document_upload(request.content_type, request.file_size)
    try:
        key = KeyGenerator.generate_document_key(
            application_id, request.file_name, existing_key=request.existing_key, today=today
        )
    except ValueError as exc:
        raise StorageError(code="invalid_document_key", message=str(exc), details={}) from exc
    adapter = adapter or get_storage_adapter()
    expires_in = settings.document_url_expiry_seconds
    signed = adapter.sign_upload(str(key), request.content_type, expires_in=expires_in)
    logger.info(
        "document upload issued",
        extra={"fields": {"application_id": application_id, "key": str(key), "version": key.version}},
    )
    return DocumentUploadUrlResponse(
        upload_url=signed.url,
        key=str(key),
        method=signed.method,
        headers=signed.headers,
        expires_in=expires_in,
    )


def ensure_application_key(application_id: str, object_key: str) -> None:
    parsed = KeyGenerator.parse(object_key)
    if parsed is None or parsed.owner_id != application_id:
        raise StorageError(
            code="invalid_document_key",
            message="Document key does not belong to this application",
            details={"key": object_key},
        )


def delete_document(application_id: str, object_key: str, *, adapter: StorageAdapter | None = None) -> None:
    ensure_application_key(application_id, object_key)
    adapter = adapter or get_storage_adapter()
    adapter.delete_object(object_key)
    logger.info("document deleted", extra={"fields": {"application_id": application_id, "key": object_key}})


def issue_document_download(
    application_id: str, object_key: str, *, adapter: StorageAdapter | None = None
) -> DocumentDownloadUrlResponse:
    ensure_application_key(application_id, object_key)
    adapter = adapter or get_storage_adapter()
    if not adapter.object_exists(object_key):
        raise StorageError(code="document_not_found", message="Document not found", details={"key": object_key})
    expires_in = settings.document_url_expiry_seconds
    signed = adapter.sign_download(object_key, expires_in=expires_in)
    return DocumentDownloadUrlResponse(download_url=signed.url, key=object_key, expires_in=expires_in)
