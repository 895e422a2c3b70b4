from uuid import uuid4

import pytest

from cashsouk.api.deps import Actor
from cashsouk.models.application_review import ApplicationReview
from cashsouk.models.audit_log import AuditLog
from cashsouk.models.contract import Contract
from cashsouk.models.product import Product
from cashsouk.schemas.application import ApplicationCreateRequest, ApplicationStatus, ApplicationStepUpdateRequest
from cashsouk.services import applications

from conftest import ORG_ID, FakeResult, entity_handler, make_application, make_contract, make_product


def _step(step_id: str, step_number: int, data=None, force=None) -> ApplicationStepUpdateRequest:
    return ApplicationStepUpdateRequest(
        step_id=step_id, step_number=step_number, data=data or {}, force_rewind_to_step=force
    )


@pytest.fixture
def product() -> Product:
    return make_product()


@pytest.fixture
def db_with_product(fake_db, product):
    fake_db.on_execute(entity_handler(Product, FakeResult(scalar=product)))
    return fake_db


@pytest.mark.asyncio
async def test_step_save_advances_watermark(db_with_product, product) -> None:
    application = make_application(product=product, last_completed_step=4)

    await applications.update_step(
        db_with_product, application, _step("company_details_1", 5, {"company_name": "Acme"}), actor_id="user-1"
    )

    assert application.last_completed_step == 5
    assert application.company_details == {"company_name": "Acme"}
    audit = db_with_product.added_of(AuditLog)[0]
    assert audit.action == "application.step.company_details"


@pytest.mark.asyncio
async def test_saving_earlier_step_keeps_watermark(db_with_product, product) -> None:
    application = make_application(product=product, last_completed_step=6)

    await applications.update_step(db_with_product, application, _step("business_details_1", 6), actor_id=None)
    await applications.update_step(db_with_product, application, _step("company_details_1", 5), actor_id=None)

    assert application.last_completed_step == 6


@pytest.mark.asyncio
async def test_force_rewind_lowers_watermark(db_with_product, product) -> None:
    application = make_application(
        product=product, last_completed_step=7, financing_structure={"structure_type": "new_contract"}
    )

    await applications.update_step(
        db_with_product,
        application,
        _step("financing_structure_1", 2, {"structure_type": "invoice_only"}, force=2),
        actor_id=None,
    )

    assert application.last_completed_step == 2
    assert application.financing_structure == {"structure_type": "invoice_only", "existing_contract_id": None}
    assert application.contract_id is None


@pytest.mark.asyncio
async def test_product_drift_refuses_step_save(fake_db) -> None:
    product = make_product(version=3)
    fake_db.on_execute(entity_handler(Product, FakeResult(scalar=product)))
    application = make_application(product=product, product_version=2, last_completed_step=3)

    with pytest.raises(applications.ApplicationError) as exc:
        await applications.update_step(fake_db, application, _step("company_details_1", 4), actor_id=None)

    assert exc.value.code == "product_version_changed"
    assert application.last_completed_step == 3


@pytest.mark.asyncio
async def test_deleted_product_refuses_step_save(fake_db) -> None:
    application = make_application(last_completed_step=3)

    with pytest.raises(applications.ApplicationError) as exc:
        await applications.update_step(fake_db, application, _step("company_details_1", 4), actor_id=None)

    assert exc.value.code == "product_deleted"


@pytest.mark.asyncio
async def test_unknown_step_id_is_rejected(db_with_product, product) -> None:
    application = make_application(product=product)

    with pytest.raises(applications.ApplicationError) as exc:
        await applications.update_step(db_with_product, application, _step("mystery_step", 2), actor_id=None)

    assert exc.value.code == "invalid_step_id"


@pytest.mark.asyncio
async def test_submitted_application_is_not_editable(db_with_product, product) -> None:
    application = make_application(product=product, status="SUBMITTED")

    with pytest.raises(applications.ApplicationError) as exc:
        await applications.update_step(db_with_product, application, _step("company_details_1", 2), actor_id=None)

    assert exc.value.code == "invalid_status"


@pytest.mark.asyncio
async def test_reusing_contract_requires_approved_contract(db_with_product, product) -> None:
    draft_contract = make_contract(status="DRAFT")
    db_with_product.on_execute(entity_handler(Contract, FakeResult(scalar=draft_contract)))
    application = make_application(product=product)
    data = {"structure_type": "existing_contract", "existing_contract_id": str(draft_contract.id)}

    with pytest.raises(applications.ApplicationError) as exc:
        await applications.update_step(db_with_product, application, _step("financing_structure_1", 2, data), actor_id=None)

    assert exc.value.code == "contract_not_eligible"


@pytest.mark.asyncio
async def test_reusing_approved_contract_links_it(db_with_product, product) -> None:
    approved = make_contract(status="APPROVED")
    db_with_product.on_execute(entity_handler(Contract, FakeResult(scalar=approved)))
    application = make_application(product=product)
    data = {"structure_type": "existing_contract", "existing_contract_id": str(approved.id)}

    await applications.update_step(db_with_product, application, _step("financing_structure_1", 2, data), actor_id=None)

    assert application.contract_id == approved.id
    assert application.last_completed_step == 2


@pytest.mark.asyncio
async def test_submit_creates_review_sections(fake_db) -> None:
    application = make_application(last_completed_step=9)

    await applications.update_status(fake_db, application, ApplicationStatus.SUBMITTED, actor_id="user-1")

    assert application.status == "SUBMITTED"
    assert application.submitted_at is not None
    sections = sorted(row.section for row in fake_db.added_of(ApplicationReview))
    assert sections == ["DOCUMENTS", "FINANCIAL", "JUSTIFICATION"]


@pytest.mark.asyncio
async def test_resubmit_only_after_amendment(fake_db) -> None:
    application = make_application(status="DRAFT")

    with pytest.raises(applications.ApplicationError) as exc:
        await applications.update_status(fake_db, application, ApplicationStatus.RESUBMITTED, actor_id=None)

    assert exc.value.code == "invalid_status_transition"


@pytest.mark.asyncio
async def test_archive_is_idempotent(fake_db) -> None:
    application = make_application(status="ARCHIVED")

    assert await applications.archive_application(fake_db, application, actor_id=None) is application
    assert fake_db.added == []


@pytest.mark.asyncio
async def test_archive_refuses_reviewed_application(fake_db) -> None:
    application = make_application(status="APPROVED")

    with pytest.raises(applications.ApplicationError):
        await applications.archive_application(fake_db, application, actor_id=None)


@pytest.mark.asyncio
async def test_create_application_snapshots_product_version(db_with_product, product, issuer) -> None:
    product.version = 4

    application = await applications.create_application(
        db_with_product, issuer, ApplicationCreateRequest(product_id=product.id, issuer_organization_id=ORG_ID)
    )

    assert application.product_version == 4
    assert application.last_completed_step == 1
    assert application.financing_type == {"product_id": str(product.id)}


@pytest.mark.asyncio
async def test_create_application_for_foreign_org_is_forbidden(fake_db, issuer) -> None:
    with pytest.raises(applications.ApplicationError) as exc:
        await applications.create_application(
            fake_db, issuer, ApplicationCreateRequest(product_id=uuid4(), issuer_organization_id="org-2")
        )

    assert exc.value.code == "forbidden"


@pytest.mark.asyncio
async def test_detail_flags_version_mismatch(fake_db) -> None:
    product = make_product(version=3)
    fake_db.on_execute(entity_handler(Product, FakeResult(scalar=product)))
    application = make_application(product=product, product_version=2)

    detail = await applications.application_detail(fake_db, application)

    assert detail.is_version_mismatch is True
    assert detail.latest_product_version == 3
    assert detail.product_deleted is False


@pytest.mark.asyncio
async def test_detail_flags_deleted_product(fake_db) -> None:
    application = make_application()

    detail = await applications.application_detail(fake_db, application)

    assert detail.product_deleted is True
    assert detail.is_version_mismatch is False


@pytest.mark.asyncio
async def test_foreign_application_is_forbidden(fake_db) -> None:
    application = make_application(issuer_organization_id="org-2")
    fake_db.on_execute(lambda stmt: FakeResult(scalar=application))

    with pytest.raises(applications.ApplicationError) as exc:
        await applications.get_application_for_actor(fake_db, Actor(user_id="u", org_ids=frozenset({ORG_ID})), application.id)

    assert exc.value.code == "forbidden"
