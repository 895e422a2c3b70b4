import json
from uuid import uuid4

import httpx
import pytest

from cashsouk.schemas.application import DocumentUploadUrlResponse
from cashsouk.schemas.review import ReviewAction, ReviewSection
from cashsouk.workflow.record_store import HttpObjectStorage, HttpRecordStore, RecordStoreError, unwrap_envelope
from cashsouk.workflow.review_console import HttpReviewClient

from conftest import ORG_ID

APPLICATION_ID = str(uuid4())


def _envelope(data, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, json={"code": "ok", "message": "OK", "data": data, "details": {}})


def _application(**overrides) -> dict:
    payload = {
        "id": APPLICATION_ID,
        "issuer_organization_id": ORG_ID,
        "product_id": str(uuid4()),
        "product_version": 1,
        "status": "DRAFT",
        "last_completed_step": 3,
    }
    payload.update(overrides)
    return payload


class _Recorder:
    def __init__(self, responder) -> None:
        self.requests: list[httpx.Request] = []
        self._responder = responder

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._responder(request)


def _client(responder) -> tuple[httpx.AsyncClient, _Recorder]:
    recorder = _Recorder(responder)
    return httpx.AsyncClient(transport=httpx.MockTransport(recorder), base_url="http://api.test/api/v1"), recorder


def test_unwrap_returns_data() -> None:
    assert unwrap_envelope(_envelope({"a": 1})) == {"a": 1}


def test_unwrap_raises_error_code() -> None:
    response = httpx.Response(
        409,
        json={"code": "product_version_changed", "message": "The product has changed", "data": None, "details": {}},
    )

    with pytest.raises(RecordStoreError) as exc:
        unwrap_envelope(response)

    assert exc.value.code == "product_version_changed"
    assert exc.value.status_code == 409


def test_unwrap_non_json_failure() -> None:
    with pytest.raises(RecordStoreError) as exc:
        unwrap_envelope(httpx.Response(502, text="bad gateway"))

    assert exc.value.code == "http_error"


@pytest.mark.asyncio
async def test_application_reads_are_cached_until_a_write() -> None:
    def responder(request: httpx.Request) -> httpx.Response:
        if request.method == "PATCH":
            return _envelope(_application(last_completed_step=4))
        return _envelope(_application())

    client, recorder = _client(responder)
    store = HttpRecordStore(client)

    first = await store.get_application(APPLICATION_ID)
    await store.get_application(APPLICATION_ID)
    updated = await store.update_application_step(
        APPLICATION_ID, step_id="company_details_1", step_number=4, data={"company_name": "Acme"}
    )
    await store.get_application(APPLICATION_ID)

    methods = [request.method for request in recorder.requests]
    assert methods == ["GET", "PATCH", "GET"]
    assert first.last_completed_step == 3
    assert updated.last_completed_step == 4
    assert json.loads(recorder.requests[1].content) == {
        "step_id": "company_details_1",
        "step_number": 4,
        "data": {"company_name": "Acme"},
    }
    await client.aclose()


@pytest.mark.asyncio
async def test_force_rewind_is_sent_when_given() -> None:
    client, recorder = _client(lambda request: _envelope(_application(last_completed_step=2)))
    store = HttpRecordStore(client)

    await store.update_application_step(
        APPLICATION_ID, step_id="financing_structure_1", step_number=2, data={}, force_rewind_to_step=2
    )

    assert json.loads(recorder.requests[0].content)["force_rewind_to_step"] == 2
    await client.aclose()


@pytest.mark.asyncio
async def test_products_are_always_fetched() -> None:
    catalog = {"products": [], "total": 0, "page": 1, "page_size": 100}
    client, recorder = _client(lambda request: _envelope(catalog))
    store = HttpRecordStore(client)

    await store.get_products()
    await store.get_products()

    assert len(recorder.requests) == 2
    assert recorder.requests[0].url.params["page_size"] == "100"
    await client.aclose()


@pytest.mark.asyncio
async def test_transport_failure_becomes_network_error() -> None:
    def responder(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client, _ = _client(responder)
    store = HttpRecordStore(client)

    with pytest.raises(RecordStoreError) as exc:
        await store.get_application(APPLICATION_ID)

    assert exc.value.code == "network_error"
    await client.aclose()


@pytest.mark.asyncio
async def test_object_storage_puts_to_signed_url() -> None:
    client, recorder = _client(lambda request: httpx.Response(200))
    storage = HttpObjectStorage(client)
    upload = DocumentUploadUrlResponse(
        upload_url="http://files.test/put?sig=1",
        key="applications/a/v1-2026-10-17-c1.pdf",
        headers={"Content-Type": "application/pdf"},
        expires_in=900,
    )

    await storage.put_object(upload, b"%PDF")

    request = recorder.requests[0]
    assert request.method == "PUT"
    assert str(request.url) == "http://files.test/put?sig=1"
    assert request.headers["content-type"] == "application/pdf"
    await client.aclose()


@pytest.mark.asyncio
async def test_failed_put_raises() -> None:
    client, _ = _client(lambda request: httpx.Response(403))
    storage = HttpObjectStorage(client)
    upload = DocumentUploadUrlResponse(upload_url="http://files.test/put", key="k", expires_in=900)

    with pytest.raises(RecordStoreError) as exc:
        await storage.put_object(upload, b"%PDF")

    assert exc.value.code == "upload_failed"
    await client.aclose()


@pytest.mark.asyncio
async def test_review_client_posts_section_action() -> None:
    client, recorder = _client(lambda request: _envelope(None))
    review = HttpReviewClient(client)

    await review.section_action(APPLICATION_ID, ReviewSection.FINANCIAL, ReviewAction.REQUEST_AMENDMENT, "Fix totals")

    request = recorder.requests[0]
    assert request.url.path == f"/api/v1/admin/applications/{APPLICATION_ID}/review/sections/FINANCIAL/request-amendment"
    assert json.loads(request.content) == {"note": "Fix totals"}
    await client.aclose()
