"""Reports and commit hooks for the steps whose protocol the host depends on."""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from cashsouk.schemas.application import FinancingStructureType
from cashsouk.workflow.record_store import ObjectStorage, RecordStore
from cashsouk.workflow.step_runtime import Invalid, StepCommitError, StepReport, Valid
from cashsouk.workflow.structure_filter import StructureChoice
from cashsouk.workflow.uploads import SupportingDocumentsForm


def financing_structure_report(choice: StructureChoice | None, persisted: Any = None) -> StepReport:
    """Report a structure pick; existing contracts need a contract chosen."""
    if choice is None:
        return StepReport(data={}, validity=Invalid("Choose a financing structure"))
    validity = Valid()
    if choice.structure_type is FinancingStructureType.EXISTING_CONTRACT and not choice.existing_contract_id:
        validity = Invalid("Choose an approved contract")
    return StepReport(
        data=choice.to_payload(),
        validity=validity,
        dirty=choice != StructureChoice.parse(persisted),
        structure=choice,
    )


def declarations_report(declarations: Sequence[Mapping[str, Any]], checked: Sequence[bool]) -> StepReport:
    """Stored as ``{"declarations": [{"checked": bool}, ...]}`` in config order."""
    flags = [bool(checked[index]) if index < len(checked) else False for index in range(len(declarations))]
    validity = Valid() if flags and all(flags) else Invalid("Please check all declarations to continue")
    return StepReport(data={"declarations": [{"checked": flag} for flag in flags]}, validity=validity)


def contract_details_report(
    store: RecordStore,
    application_id: str,
    *,
    contract_details: Mapping[str, Any],
    customer_details: Mapping[str, Any],
    required_fields: Sequence[str] = (),
) -> StepReport:
    """The commit hook creates the contract on first need and writes its details."""
    missing = [name for name in required_fields if not contract_details.get(name)]

    async def commit() -> dict[str, Any]:
        if missing:
            raise StepCommitError("Contract details are incomplete", reason=", ".join(missing))
        contract = await store.create_contract(application_id)
        await store.update_contract(
            str(contract.id),
            {"contract_details": dict(contract_details), "customer_details": dict(customer_details)},
        )
        return {"contract_id": str(contract.id)}

    return StepReport(data={}, commit=commit)


def supporting_documents_report(
    form: SupportingDocumentsForm, storage: ObjectStorage, application_id: str
) -> StepReport:
    validity = Valid() if form.all_files_uploaded else Invalid("Not all files are uploaded")

    async def commit() -> dict[str, Any]:
        return await form.commit(storage, application_id)

    return StepReport(data=form.to_payload(), validity=validity, dirty=bool(form.selected), commit=commit)
