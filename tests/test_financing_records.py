from decimal import Decimal

import pytest

from cashsouk.models.contract import Contract
from cashsouk.models.invoice import Invoice
from cashsouk.schemas.contract import ContractUpdateRequest
from cashsouk.services import contracts, invoices

from conftest import FakeResult, entity_handler, make_application, make_contract, make_invoice


def test_max_financing_is_eighty_percent() -> None:
    assert invoices.max_financing_amount({"value": "1234.56"}) == Decimal("987.65")
    assert invoices.max_financing_amount({"value": ""}) is None


@pytest.mark.asyncio
async def test_invoice_within_facility_is_created(fake_db) -> None:
    contract = make_contract(status="DRAFT", contract_details={"available_facility": "1500"})
    application = make_application(contract_id=contract.id, financing_structure={"structure_type": "new_contract"})
    fake_db.on_execute(entity_handler(Contract, FakeResult(scalar=contract)))
    fake_db.on_execute(entity_handler(Invoice, FakeResult(items=[make_invoice(application=application)])))

    invoice = await invoices.create_invoice(fake_db, application, {"number": "INV-2", "value": "500"}, actor_id=None)

    assert invoice.contract_id == contract.id
    assert invoice.status == "DRAFT"


@pytest.mark.asyncio
async def test_invoice_over_facility_is_refused(fake_db) -> None:
    contract = make_contract(status="DRAFT", contract_details={"available_facility": "1500"})
    application = make_application(contract_id=contract.id, financing_structure={"structure_type": "new_contract"})
    fake_db.on_execute(entity_handler(Contract, FakeResult(scalar=contract)))
    fake_db.on_execute(entity_handler(Invoice, FakeResult(items=[make_invoice(application=application)])))

    with pytest.raises(invoices.InvoiceError) as exc:
        await invoices.create_invoice(fake_db, application, {"number": "INV-2", "value": "600"}, actor_id=None)

    assert exc.value.code == "facility_limit_exceeded"
    assert fake_db.added_of(Invoice) == []


@pytest.mark.asyncio
async def test_invoice_only_structure_detaches_contract(fake_db) -> None:
    application = make_application(
        contract_id=make_contract().id, financing_structure={"structure_type": "invoice_only"}
    )

    invoice = await invoices.create_invoice(fake_db, application, {"value": "100"}, actor_id=None)

    assert invoice.contract_id is None


@pytest.mark.asyncio
async def test_submitted_invoice_is_locked(fake_db) -> None:
    application = make_application()
    invoice = make_invoice(application=application, status="SUBMITTED")

    with pytest.raises(invoices.InvoiceError) as exc:
        await invoices.delete_invoice(fake_db, application, invoice, actor_id=None)

    assert exc.value.code == "invoice_locked"
    assert fake_db.deleted == []


@pytest.mark.asyncio
async def test_contract_is_created_once(fake_db) -> None:
    application = make_application()

    contract = await contracts.create_contract_for_application(fake_db, application, actor_id="user-1")
    fake_db.on_execute(entity_handler(Contract, FakeResult(scalar=contract)))
    again = await contracts.create_contract_for_application(fake_db, application, actor_id="user-1")

    assert application.contract_id == contract.id
    assert again is contract
    assert len(fake_db.added_of(Contract)) == 1


@pytest.mark.asyncio
async def test_approved_contract_is_locked(fake_db) -> None:
    contract = make_contract(status="APPROVED")

    with pytest.raises(contracts.ContractError) as exc:
        await contracts.update_contract(
            fake_db, contract, ContractUpdateRequest(contract_details={"title": "x"}), actor_id=None
        )

    assert exc.value.code == "contract_locked"


def test_invoice_listing_includes_max_financing(client, fake_db) -> None:
    application = make_application()
    invoice = make_invoice(application=application, details={"number": "INV-1", "value": "1000.00"})
    fake_db.on_execute(lambda stmt: FakeResult(scalar=application, items=[invoice]))

    response = client.get("/api/v1/invoices", params={"application_id": str(application.id)})

    assert response.status_code == 200
    listed = response.json()["data"]["invoices"][0]
    assert Decimal(str(listed["max_financing_amount"])) == Decimal("800.00")
