"""Object storage backends for application documents.

Clients never stream documents through the API; they PUT to and GET from
short-lived signed URLs issued here.
"""

from __future__ import annotations

import hashlib
import hmac
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path, PurePosixPath
from urllib.parse import urlencode

LOCAL_CONTENT_PATH = "/api/v1/uploads/local-content"


@dataclass(frozen=True)
class SignedRequest:
    url: str
    method: str = "PUT"
    headers: dict[str, str] = field(default_factory=dict)


def _local_signature(secret_key: str, object_key: str, expires: int, method: str) -> str:
    message = f"{method.upper()}\n{object_key}\n{expires}".encode("utf-8")
    return hmac.new(secret_key.encode("utf-8"), message, hashlib.sha256).hexdigest()


def verify_local_url_signature(
    secret_key: str, object_key: str, expires: int, signature: str, *, method: str
) -> bool:
    """A local URL is valid for one method until ``expires`` (unix seconds)."""
    if expires < int(time.time()):
        return False
    return hmac.compare_digest(_local_signature(secret_key, object_key, expires, method), signature)


class StorageAdapter(ABC):
    provider = "local"

    @abstractmethod
    def sign_upload(self, object_key: str, content_type: str, *, expires_in: int) -> SignedRequest: ...

    @abstractmethod
    def sign_download(self, object_key: str, *, expires_in: int) -> SignedRequest: ...

    @abstractmethod
    def delete_object(self, object_key: str) -> None: ...

    @abstractmethod
    def object_exists(self, object_key: str) -> bool: ...


class LocalFileSystemAdapter(StorageAdapter):
    """Documents on local disk, served back through the uploads router."""

    provider = "local"

    def __init__(self, base_path: str, base_url: str, *, signing_key: str = "") -> None:
        self.root = Path(base_path)
        self.root.mkdir(parents=True, exist_ok=True)
        self.base_url = base_url.rstrip("/")
        self.signing_key = signing_key

    def resolve_path(self, object_key: str) -> Path:
        """Map a key onto disk, refusing anything that escapes the upload root."""
        key = PurePosixPath(object_key)
        if "\\" in object_key or key.is_absolute() or ".." in key.parts:
            raise ValueError("Invalid object key")
        root = self.root.resolve()
        path = root.joinpath(*key.parts).resolve()
        if root not in path.parents:
            raise ValueError("Invalid object key")
        return path

    def _sign(self, object_key: str, expires_in: int, method: str) -> str:
        expires = int(time.time()) + expires_in
        query = urlencode(
            {
                "key": object_key,
                "expires": expires,
                "signature": _local_signature(self.signing_key, object_key, expires, method),
            }
        )
        return f"{self.base_url}{LOCAL_CONTENT_PATH}?{query}"

    def sign_upload(self, object_key: str, content_type: str, *, expires_in: int) -> SignedRequest:
        return SignedRequest(self._sign(object_key, expires_in, "PUT"), "PUT", {"Content-Type": content_type})

    def sign_download(self, object_key: str, *, expires_in: int) -> SignedRequest:
        return SignedRequest(self._sign(object_key, expires_in, "GET"), "GET")

    def write_file(self, object_key: str, content: bytes) -> None:
        path = self.resolve_path(object_key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)

    def delete_object(self, object_key: str) -> None:
        self.resolve_path(object_key).unlink(missing_ok=True)

    def object_exists(self, object_key: str) -> bool:
        try:
            return self.resolve_path(object_key).is_file()
        except ValueError:
            return False


class GCSStorageAdapter(StorageAdapter):
    """V4 signed URLs against a Cloud Storage bucket (``gcs`` extra)."""

    provider = "gcs"

    def __init__(self, bucket: str) -> None:
        import google.auth
        import google.auth.transport.requests
        from google.cloud import storage

        self.bucket_name = bucket
        self.credentials, _ = google.auth.default()
        self._auth_request = google.auth.transport.requests.Request()
        self._bucket = storage.Client(credentials=self.credentials).bucket(bucket)

    def _signer(self) -> dict:
        if hasattr(self.credentials, "sign_bytes"):
            return {"credentials": self.credentials}
        # Workload identity cannot sign locally; sign through IAM with a fresh token.
        if not self.credentials.valid or not self.credentials.token:
            self.credentials.refresh(self._auth_request)
        email = getattr(self.credentials, "service_account_email", None)
        if not email:
            raise RuntimeError("Signing document URLs needs a service account identity")
        return {"service_account_email": email, "access_token": self.credentials.token}

    def _signed_url(self, object_key: str, method: str, expires_in: int, **options) -> str:
        return self._bucket.blob(object_key).generate_signed_url(
            version="v4",
            expiration=timedelta(seconds=expires_in),
            method=method,
            **options,
            **self._signer(),
        )

    def sign_upload(self, object_key: str, content_type: str, *, expires_in: int) -> SignedRequest:
        url = self._signed_url(object_key, "PUT", expires_in, content_type=content_type)
        return SignedRequest(url, "PUT", {"Content-Type": content_type})

    def sign_download(self, object_key: str, *, expires_in: int) -> SignedRequest:
        url = self._signed_url(
            object_key,
            "GET",
            expires_in,
            response_disposition=f'inline; filename="{PurePosixPath(object_key).name}"',
        )
        return SignedRequest(url, "GET")

    def delete_object(self, object_key: str) -> None:
        self._bucket.blob(object_key).delete()

    def object_exists(self, object_key: str) -> bool:
        return self._bucket.blob(object_key).exists()
