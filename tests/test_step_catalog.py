import pytest

from cashsouk.workflow.step_catalog import (
    MergePolicy,
    StepDefinition,
    StepKey,
    build_step_key_map,
    legacy_step_key,
    resolve_step_key,
    step_key_from_id,
)


def test_step_key_from_id_strips_numeric_suffix() -> None:
    assert step_key_from_id("company_details_1") is StepKey.COMPANY_DETAILS
    assert step_key_from_id("review_and_submit_12") is StepKey.REVIEW_AND_SUBMIT
    assert step_key_from_id("step-7") is None
    assert step_key_from_id(None) is None


def test_legacy_titles_resolve_to_keys() -> None:
    assert legacy_step_key("Review & Submit") is StepKey.REVIEW_AND_SUBMIT
    assert legacy_step_key("Supporting Documents") is StepKey.SUPPORTING_DOCUMENTS
    assert legacy_step_key("Something Else") is None


def test_build_step_key_map_prefers_explicit_config() -> None:
    workflow = [
        StepDefinition(id="s1", name="Whatever", config={"step_key": "declarations"}),
        StepDefinition(id="invoice_details_1", name="Invoices"),
        StepDefinition(id="s3", name="Business Details"),
        StepDefinition(id="s4", name="Unknown"),
    ]

    assert build_step_key_map(workflow) == {
        "s1": "declarations",
        "invoice_details_1": "invoice_details",
        "s3": "business_details",
    }


def test_resolve_step_key_reads_authored_map_first() -> None:
    workflow = [StepDefinition(id="x"), StepDefinition(id="y")]

    assert resolve_step_key(2, workflow, step_key_map={"y": "declarations"}) is StepKey.DECLARATIONS


def test_resolve_step_key_out_of_range_is_unmapped() -> None:
    workflow = [StepDefinition(id="financing_type_1")]

    assert resolve_step_key(4, workflow, step_key_map={}) is None


def test_resolve_step_key_falls_back_to_populated_columns() -> None:
    workflow = [StepDefinition(id="a"), StepDefinition(id="b")]
    data = {"financing_type": {"product_id": "p"}, "financing_structure": {"structure_type": "invoice_only"}}

    assert resolve_step_key(2, workflow, step_key_map={}, application_data=data) is StepKey.FINANCING_STRUCTURE


def test_merge_policies() -> None:
    payload = {"a": 1, "b": 2}

    assert MergePolicy.MERGE.apply(StepKey.COMPANY_DETAILS, payload, {"b": 3}) == {"a": 1, "b": 3}
    assert MergePolicy.MERGE.apply(StepKey.COMPANY_DETAILS, payload, None) == payload
    assert MergePolicy.REPLACE.apply(StepKey.SUPPORTING_DOCUMENTS, payload, {"categories": []}) == {
        "supporting_documents": {"categories": []}
    }
    assert MergePolicy.DISCARD.apply(StepKey.CONTRACT_DETAILS, payload, {"contract_id": "c"}) == {}
    with pytest.raises(TypeError):
        MergePolicy.MERGE.apply(StepKey.COMPANY_DETAILS, payload, ["not", "a", "mapping"])
