"""Record store protocol used by the edit flow, plus its HTTP implementation."""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from cashsouk.schemas.application import (
    ApplicationDetailResponse,
    ApplicationStatus,
    DocumentUploadUrlResponse,
)
from cashsouk.schemas.contract import ContractDTO
from cashsouk.schemas.invoice import InvoiceDTO
from cashsouk.schemas.product import ProductDTO, ProductListResponse

logger = logging.getLogger(__name__)

DEFAULT_PRODUCT_PAGE_SIZE = 100


class RecordStoreError(Exception):
    """A non-success response from the record store."""

    def __init__(self, code: str, message: str, status_code: int | None = None, details: Any = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details


class RecordStore(Protocol):
    async def get_application(self, application_id: str) -> ApplicationDetailResponse: ...

    async def create_application(self, product_id: str, issuer_organization_id: str) -> ApplicationDetailResponse: ...

    async def update_application_step(
        self,
        application_id: str,
        *,
        step_id: str,
        step_number: int,
        data: dict[str, Any],
        force_rewind_to_step: int | None = None,
    ) -> ApplicationDetailResponse: ...

    async def update_application_status(
        self, application_id: str, status: ApplicationStatus
    ) -> ApplicationDetailResponse: ...

    async def archive_application(self, application_id: str) -> ApplicationDetailResponse: ...

    async def get_products(self, page: int = 1, page_size: int = DEFAULT_PRODUCT_PAGE_SIZE) -> list[ProductDTO]: ...

    async def get_contract(self, contract_id: str) -> ContractDTO: ...

    async def create_contract(self, application_id: str) -> ContractDTO: ...

    async def update_contract(self, contract_id: str, data: dict[str, Any]) -> ContractDTO: ...

    async def create_invoice(self, application_id: str, details: dict[str, Any]) -> InvoiceDTO: ...

    async def update_invoice(self, invoice_id: str, details: dict[str, Any]) -> InvoiceDTO: ...

    async def delete_invoice(self, invoice_id: str) -> None: ...

    def invalidate_application(self, application_id: str) -> None: ...

    def invalidate_contracts(self) -> None: ...


class ObjectStorage(Protocol):
    async def request_upload_url(
        self,
        owner_id: str,
        *,
        file_name: str,
        content_type: str,
        file_size: int,
        existing_key: str | None = None,
    ) -> DocumentUploadUrlResponse: ...

    async def put_object(self, upload: DocumentUploadUrlResponse, content: bytes) -> None: ...

    async def delete_object(self, owner_id: str, key: str) -> None: ...


def unwrap_envelope(response: httpx.Response) -> Any:
    """Return ``data`` from a success envelope or raise ``RecordStoreError``."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if not isinstance(body, dict):
        if response.is_success:
            return body
        raise RecordStoreError("http_error", response.reason_phrase or "Request failed", response.status_code)
    if not response.is_success:
        raise RecordStoreError(
            str(body.get("code") or "http_error"),
            str(body.get("message") or "Request failed"),
            response.status_code,
            body.get("details"),
        )
    return body.get("data")


class HttpRecordStore:
    """Record store backed by the ``/api/v1`` JSON API.

    Application and contract reads are cached per instance until invalidated;
    the product catalog is always fetched fresh so drift is seen immediately.
    """

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client
        self._applications: dict[str, ApplicationDetailResponse] = {}
        self._contracts: dict[str, ContractDTO] = {}

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("record store request failed", extra={"fields": {"method": method, "url": url}})
            raise RecordStoreError("network_error", str(exc) or exc.__class__.__name__) from exc
        return unwrap_envelope(response)

    def _remember(self, data: Any) -> ApplicationDetailResponse:
        application = ApplicationDetailResponse.model_validate(data)
        self._applications[str(application.id)] = application
        return application

    async def get_application(self, application_id: str) -> ApplicationDetailResponse:
        cached = self._applications.get(application_id)
        if cached is not None:
            return cached
        return self._remember(await self._request("GET", f"/applications/{application_id}"))

    async def create_application(self, product_id: str, issuer_organization_id: str) -> ApplicationDetailResponse:
        data = await self._request(
            "POST",
            "/applications",
            json={"product_id": product_id, "issuer_organization_id": issuer_organization_id},
        )
        return self._remember(data)

    async def update_application_step(
        self,
        application_id: str,
        *,
        step_id: str,
        step_number: int,
        data: dict[str, Any],
        force_rewind_to_step: int | None = None,
    ) -> ApplicationDetailResponse:
        payload: dict[str, Any] = {"step_id": step_id, "step_number": step_number, "data": data}
        if force_rewind_to_step is not None:
            payload["force_rewind_to_step"] = force_rewind_to_step
        result = await self._request("PATCH", f"/applications/{application_id}/step", json=payload)
        self.invalidate_application(application_id)
        return ApplicationDetailResponse.model_validate(result)

    async def update_application_status(
        self, application_id: str, status: ApplicationStatus
    ) -> ApplicationDetailResponse:
        result = await self._request(
            "PATCH", f"/applications/{application_id}/status", json={"status": ApplicationStatus(status).value}
        )
        self.invalidate_application(application_id)
        return ApplicationDetailResponse.model_validate(result)

    async def archive_application(self, application_id: str) -> ApplicationDetailResponse:
        result = await self._request("POST", f"/applications/{application_id}/archive")
        self.invalidate_application(application_id)
        return ApplicationDetailResponse.model_validate(result)

    async def get_products(self, page: int = 1, page_size: int = DEFAULT_PRODUCT_PAGE_SIZE) -> list[ProductDTO]:
        data = await self._request("GET", "/products", params={"page": page, "page_size": page_size})
        return ProductListResponse.model_validate(data).products

    async def get_contract(self, contract_id: str) -> ContractDTO:
        cached = self._contracts.get(contract_id)
        if cached is not None:
            return cached
        contract = ContractDTO.model_validate(await self._request("GET", f"/contracts/{contract_id}"))
        self._contracts[contract_id] = contract
        return contract

    async def create_contract(self, application_id: str) -> ContractDTO:
        data = await self._request("POST", "/contracts", json={"application_id": application_id})
        self.invalidate_contracts()
        self.invalidate_application(application_id)
        return ContractDTO.model_validate(data)

    async def update_contract(self, contract_id: str, data: dict[str, Any]) -> ContractDTO:
        result = await self._request("PATCH", f"/contracts/{contract_id}", json=data)
        self.invalidate_contracts()
        return ContractDTO.model_validate(result)

    async def create_invoice(self, application_id: str, details: dict[str, Any]) -> InvoiceDTO:
        data = await self._request("POST", "/invoices", json={"application_id": application_id, "details": details})
        return InvoiceDTO.model_validate(data)

    async def update_invoice(self, invoice_id: str, details: dict[str, Any]) -> InvoiceDTO:
        data = await self._request("PATCH", f"/invoices/{invoice_id}", json={"details": details})
        return InvoiceDTO.model_validate(data)

    async def delete_invoice(self, invoice_id: str) -> None:
        await self._request("DELETE", f"/invoices/{invoice_id}")

    def invalidate_application(self, application_id: str) -> None:
        self._applications.pop(application_id, None)

    def invalidate_contracts(self) -> None:
        self._contracts.clear()


class HttpObjectStorage:
    """Upload URL issuance through the API, direct PUT to the returned URL."""

    def __init__(self, client: httpx.AsyncClient, upload_client: httpx.AsyncClient | None = None) -> None:
        self._client = client
        self._upload_client = upload_client or client

    async def request_upload_url(
        self,
        owner_id: str,
        *,
        file_name: str,
        content_type: str,
        file_size: int,
        existing_key: str | None = None,
    ) -> DocumentUploadUrlResponse:
        payload: dict[str, Any] = {"file_name": file_name, "content_type": content_type, "file_size": file_size}
        if existing_key:
            payload["existing_key"] = existing_key
        response = await self._client.post(f"/applications/{owner_id}/documents/upload-url", json=payload)
        return DocumentUploadUrlResponse.model_validate(unwrap_envelope(response))

    async def put_object(self, upload: DocumentUploadUrlResponse, content: bytes) -> None:
        response = await self._upload_client.request(
            upload.method, upload.upload_url, content=content, headers=upload.headers
        )
        if not response.is_success:
            raise RecordStoreError("upload_failed", "Upload failed", response.status_code)

    async def delete_object(self, owner_id: str, key: str) -> None:
        response = await self._client.request(
            "DELETE", f"/applications/{owner_id}/documents", params={"key": key}
        )
        unwrap_envelope(response)
