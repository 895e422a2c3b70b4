import pytest

from cashsouk.schemas.application import FinancingStructureType
from cashsouk.workflow.step_catalog import StepDefinition, build_step_key_map
from cashsouk.workflow.structure_filter import StructureChoice, filter_workflow, resolve_effective_structure

from conftest import FULL_WORKFLOW_KEYS, workflow_of


def _workflow(*keys):
    definitions = [StepDefinition.from_dict(step) for step in workflow_of(*keys)]
    return definitions, build_step_key_map(definitions)


@pytest.mark.parametrize(
    "structure",
    [FinancingStructureType.INVOICE_ONLY, FinancingStructureType.EXISTING_CONTRACT],
)
def test_contractless_structures_drop_contract_details(structure) -> None:
    workflow, step_key_map = _workflow(*FULL_WORKFLOW_KEYS)

    filtered = filter_workflow(workflow, StructureChoice(structure), step_key_map)

    assert [step.id for step in filtered] == [step.id for step in workflow if step.id != "contract_details_1"]
    assert filter_workflow(filtered, StructureChoice(structure), step_key_map) == filtered


@pytest.mark.parametrize("structure", [None, FinancingStructureType.NEW_CONTRACT])
def test_new_contract_or_unresolved_keeps_every_step(structure) -> None:
    workflow, step_key_map = _workflow(*FULL_WORKFLOW_KEYS)

    filtered = filter_workflow(workflow, structure, step_key_map)

    assert filtered == workflow
    assert filtered is not workflow


def test_filter_uses_authored_map_over_ids() -> None:
    workflow = [
        StepDefinition(id="a", name="Type"),
        StepDefinition(id="b", name="Structure"),
        StepDefinition(id="c", name="Terms"),
    ]
    step_key_map = {"a": "financing_type", "b": "financing_structure", "c": "contract_details"}

    filtered = filter_workflow(workflow, FinancingStructureType.INVOICE_ONLY, step_key_map)

    assert [step.id for step in filtered] == ["a", "b"]


def test_parse_drops_contract_id_unless_reusing_contract() -> None:
    choice = StructureChoice.parse({"structure_type": "invoice_only", "existing_contract_id": "abc"})
    reuse = StructureChoice.parse({"structure_type": "existing_contract", "existing_contract_id": "abc"})

    assert choice == StructureChoice(FinancingStructureType.INVOICE_ONLY)
    assert reuse.existing_contract_id == "abc"
    assert StructureChoice.parse({"structure_type": "lease"}) is None
    assert StructureChoice.parse(None) is None


def test_session_override_wins_over_persisted_structure() -> None:
    persisted = {"structure_type": "new_contract"}
    override = StructureChoice(FinancingStructureType.INVOICE_ONLY)

    assert resolve_effective_structure(persisted, override) is override
    assert resolve_effective_structure(persisted, None) == StructureChoice(FinancingStructureType.NEW_CONTRACT)
