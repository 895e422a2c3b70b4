"""What a step hands the host: its data, validity, dirty flag and commit hook.

Steps report a ``StepReport`` on every change. The host never reaches into a
step; it only reads the report. A step signals a validation stop by raising
``StepCommitError`` from its commit hook after showing its own message.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping, Union

from cashsouk.workflow.structure_filter import StructureChoice

# Transport-only fields of the loosely-typed payload some steps still emit.
CONTROL_FIELDS = frozenset(
    {
        "isValid",
        "hasPendingChanges",
        "saveFunction",
        "structureChanged",
        "areAllFilesUploaded",
        "areAllDeclarationsChecked",
        "isDeclarationConfirmed",
        "autofillContract",
    }
)

CommitHook = Callable[[], Awaitable[Any]]


class StepCommitError(Exception):
    """Raised by a step's commit hook when its data cannot be committed.

    The step has already told the user why; the host stops without a toast.
    """

    def __init__(self, message: str = "Step data is incomplete", *, reason: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.reason = reason


@dataclass(frozen=True)
class Valid:
    is_valid = True


@dataclass(frozen=True)
class Invalid:
    reason: str
    is_valid = False


Validity = Union[Valid, Invalid]


def strip_control_fields(payload: Any) -> Any:
    if not isinstance(payload, Mapping):
        return payload
    return {key: value for key, value in payload.items() if key not in CONTROL_FIELDS}


@dataclass(frozen=True)
class StepReport:
    data: Mapping[str, Any] = field(default_factory=dict)
    validity: Validity = field(default_factory=Valid)
    dirty: bool = True
    commit: CommitHook | None = None
    structure: StructureChoice | None = None
    structure_changed: bool | None = None

    @property
    def is_valid(self) -> bool:
        return self.validity.is_valid

    async def run_commit(self) -> Any:
        if self.commit is None:
            return None
        return await self.commit()

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any] | None) -> "StepReport":
        """Adapt the loosely-typed ``onDataChange`` payload into a report."""
        if payload is None:
            return cls(data={}, dirty=False)
        raw = dict(payload)
        validity: Validity = Valid()
        if raw.get("isValid") is False:
            validity = Invalid("Step reported invalid data")
        elif raw.get("areAllFilesUploaded") is False:
            validity = Invalid("Not all files are uploaded")
        elif raw.get("areAllDeclarationsChecked") is False:
            validity = Invalid("Not all declarations are checked")
        elif raw.get("isDeclarationConfirmed") is False:
            validity = Invalid("Declaration is not confirmed")
        dirty = raw.get("hasPendingChanges")
        commit = raw.get("saveFunction")
        if commit is not None and not callable(commit):
            commit = None
        structure_changed = raw.get("structureChanged")
        return cls(
            data=strip_control_fields(raw),
            validity=validity,
            dirty=True if dirty is None else bool(dirty),
            commit=commit,
            structure=StructureChoice.parse(raw),
            structure_changed=None if structure_changed is None else bool(structure_changed),
        )
