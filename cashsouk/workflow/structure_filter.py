"""Effective workflow derivation from the issuer's financing structure choice."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from cashsouk.schemas.application import FinancingStructureType
from cashsouk.workflow.step_catalog import StepDefinition, StepKey, mapped_step_key

# Structures that reuse an approved contract or skip contracts entirely.
CONTRACTLESS_STRUCTURES = frozenset(
    {FinancingStructureType.EXISTING_CONTRACT, FinancingStructureType.INVOICE_ONLY}
)


@dataclass(frozen=True)
class StructureChoice:
    structure_type: FinancingStructureType
    existing_contract_id: str | None = None

    @classmethod
    def parse(cls, raw: Any) -> "StructureChoice | None":
        if isinstance(raw, StructureChoice):
            return raw
        if not isinstance(raw, Mapping):
            return None
        try:
            structure_type = FinancingStructureType(raw.get("structure_type"))
        except ValueError:
            return None
        contract_id = raw.get("existing_contract_id")
        if structure_type is not FinancingStructureType.EXISTING_CONTRACT:
            contract_id = None
        return cls(structure_type, str(contract_id) if contract_id else None)

    def to_payload(self) -> dict[str, Any]:
        return {
            "structure_type": self.structure_type.value,
            "existing_contract_id": self.existing_contract_id,
        }


def resolve_effective_structure(
    persisted: Any, override: StructureChoice | None
) -> StructureChoice | None:
    """An in-session override wins over the persisted value."""
    if override is not None:
        return override
    return StructureChoice.parse(persisted)


def filter_workflow(
    workflow: Sequence[StepDefinition],
    structure: StructureChoice | FinancingStructureType | None,
    step_key_map: Mapping[str, str],
) -> list[StepDefinition]:
    """Drop steps that do not apply to ``structure``.

    Unresolved structure returns the full list so the issuer sees every nominal
    step before choosing. Pure and idempotent.
    """
    structure_type = structure.structure_type if isinstance(structure, StructureChoice) else structure
    if structure_type is None or structure_type not in CONTRACTLESS_STRUCTURES:
        return list(workflow)
    return [
        definition
        for definition in workflow
        if mapped_step_key(definition, step_key_map) is not StepKey.CONTRACT_DETAILS
    ]
