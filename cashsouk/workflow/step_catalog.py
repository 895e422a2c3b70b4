"""Canonical workflow steps and the rules for resolving a product step to one.

A product's workflow is an ordered list of step definitions ``{id, name, config}``.
Each product version carries an authored ``step_key_map`` (step definition id to
canonical key). Resolution consults that table first; the column and legacy-name
heuristics only cover definitions that predate the table.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Mapping, Sequence


class StepKey(str, Enum):
    FINANCING_TYPE = "financing_type"
    FINANCING_STRUCTURE = "financing_structure"
    CONTRACT_DETAILS = "contract_details"
    INVOICE_DETAILS = "invoice_details"
    COMPANY_DETAILS = "company_details"
    BUSINESS_DETAILS = "business_details"
    SUPPORTING_DOCUMENTS = "supporting_documents"
    DECLARATIONS = "declarations"
    REVIEW_AND_SUBMIT = "review_and_submit"


CANONICAL_STEP_KEYS: tuple[StepKey, ...] = tuple(StepKey)


class MergePolicy(str, Enum):
    """How a step's commit result combines with the payload it reported."""

    MERGE = "merge"  # commit result keys overlay the reported payload
    REPLACE = "replace"  # commit result becomes the payload, wrapped under the step key
    DISCARD = "discard"  # nothing is persisted on the application row

    def apply(self, key: StepKey, payload: Mapping[str, Any], committed: Any) -> dict[str, Any]:
        if self is MergePolicy.DISCARD:
            return {}
        if committed is None:
            return dict(payload)
        if self is MergePolicy.REPLACE:
            return {key.value: committed}
        if not isinstance(committed, Mapping):
            raise TypeError(f"Step {key.value} must commit a mapping to be merged")
        return {**payload, **committed}


@dataclass(frozen=True)
class StepSpec:
    key: StepKey
    title: str
    description: str
    merge_policy: MergePolicy = MergePolicy.MERGE
    data_column: str | None = None

    @property
    def persists_to_application(self) -> bool:
        return self.merge_policy is not MergePolicy.DISCARD


STEP_SPECS: dict[StepKey, StepSpec] = {
    StepKey.FINANCING_TYPE: StepSpec(
        StepKey.FINANCING_TYPE,
        "Financing Type",
        "Choose the type of financing that best suits your business needs",
        data_column="financing_type",
    ),
    StepKey.FINANCING_STRUCTURE: StepSpec(
        StepKey.FINANCING_STRUCTURE,
        "Financing Structure",
        "Define the structure of your financing",
        data_column="financing_structure",
    ),
    # Contract and invoice data live in their own records.
    StepKey.CONTRACT_DETAILS: StepSpec(
        StepKey.CONTRACT_DETAILS,
        "Contract Details",
        "Review and confirm contract terms",
        merge_policy=MergePolicy.DISCARD,
    ),
    StepKey.INVOICE_DETAILS: StepSpec(
        StepKey.INVOICE_DETAILS,
        "Invoice Details",
        "Provide invoice information",
        merge_policy=MergePolicy.DISCARD,
    ),
    StepKey.COMPANY_DETAILS: StepSpec(
        StepKey.COMPANY_DETAILS,
        "Company Details",
        "Review and confirm your company details are accurate",
        data_column="company_details",
    ),
    StepKey.BUSINESS_DETAILS: StepSpec(
        StepKey.BUSINESS_DETAILS,
        "Business Details",
        "Tell us about your business",
        data_column="business_details",
    ),
    StepKey.SUPPORTING_DOCUMENTS: StepSpec(
        StepKey.SUPPORTING_DOCUMENTS,
        "Supporting Documents",
        "Upload required documents",
        merge_policy=MergePolicy.REPLACE,
        data_column="supporting_documents",
    ),
    StepKey.DECLARATIONS: StepSpec(
        StepKey.DECLARATIONS,
        "Declarations",
        "Please read and accept all declarations to continue",
        data_column="declarations",
    ),
    StepKey.REVIEW_AND_SUBMIT: StepSpec(
        StepKey.REVIEW_AND_SUBMIT,
        "Review And Submit",
        "Review your application and submit",
        merge_policy=MergePolicy.DISCARD,
    ),
}


@dataclass(frozen=True)
class StepDefinition:
    """One authored step of a product workflow."""

    id: str
    name: str = ""
    config: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "StepDefinition":
        return cls(
            id=str(raw.get("id") or ""),
            name=str(raw.get("name") or ""),
            config=dict(raw.get("config") or {}),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "config": dict(self.config)}


_LEGACY_SUFFIX = re.compile(r"_\d+$")
_NAME_SEPARATORS = re.compile(r"[\s\-]+")


def parse_step_key(value: Any) -> StepKey | None:
    try:
        return StepKey(value)
    except ValueError:
        return None


def step_key_from_id(step_id: str | None) -> StepKey | None:
    """Match ids authored as ``<key>_<n>``, e.g. ``company_details_1``."""
    if not step_id:
        return None
    return parse_step_key(_LEGACY_SUFFIX.sub("", step_id.strip()))


def legacy_step_key(name: str | None) -> StepKey | None:
    """Match steps authored under the old scheme, keyed by display title."""
    if not name:
        return None
    normalized = _NAME_SEPARATORS.sub("_", name.strip().lower().replace("&", " and ")).strip("_")
    return parse_step_key(_LEGACY_SUFFIX.sub("", normalized))


def build_step_key_map(workflow: Iterable[StepDefinition]) -> dict[str, str]:
    """Author the step id to canonical key table stored with a product version.

    Explicit ``config.step_key`` wins; otherwise the id, then the display name,
    is matched against the canonical keys. Unmatched definitions are left out.
    """
    mapping: dict[str, str] = {}
    for definition in workflow:
        key = parse_step_key(definition.config.get("step_key")) if definition.config else None
        key = key or step_key_from_id(definition.id) or legacy_step_key(definition.name)
        if key is not None and definition.id:
            mapping[definition.id] = key.value
    return mapping


def mapped_step_key(definition: StepDefinition, step_key_map: Mapping[str, str]) -> StepKey | None:
    key = parse_step_key(step_key_map.get(definition.id))
    if key is not None:
        return key
    return step_key_from_id(definition.id) or legacy_step_key(definition.name)


def infer_step_key_from_data(position: int, application_data: Mapping[str, Any]) -> StepKey | None:
    """Guess a step key from which step data columns are populated.

    Walks the canonical sequence keeping keys whose column holds data and picks
    the ``position``-th one.
    """
    populated = [
        key
        for key in CANONICAL_STEP_KEYS
        if STEP_SPECS[key].data_column and application_data.get(STEP_SPECS[key].data_column)
    ]
    if 1 <= position <= len(populated):
        return populated[position - 1]
    return None


def resolve_step_key(
    position: int,
    workflow: Sequence[StepDefinition],
    *,
    step_key_map: Mapping[str, str],
    application_data: Mapping[str, Any] | None = None,
) -> StepKey | None:
    """Resolve a 1-based position in the effective workflow to a step key.

    Returns ``None`` for an unmapped step; callers render a placeholder with
    all transitions disabled.
    """
    definition = workflow[position - 1] if 1 <= position <= len(workflow) else None
    if definition is not None:
        key = parse_step_key(step_key_map.get(definition.id)) or step_key_from_id(definition.id)
        if key is not None:
            return key
    if position > 1 and application_data:
        key = infer_step_key_from_data(position, application_data)
        if key is not None:
            return key
    if definition is not None:
        return legacy_step_key(definition.name)
    return None


def step_spec(key: StepKey | None) -> StepSpec | None:
    return STEP_SPECS.get(key) if key is not None else None
