"""Edit flow host: step position, watermark, drift block and the save transaction.

The host is driven by three kinds of input: a step position change (from the
URL), a step report (from the active step), and explicit user actions (save
and continue, back, leave, restart). Every transition runs to completion
before the next one is handled.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

from cashsouk.schemas.application import ApplicationDetailResponse, ApplicationStatus
from cashsouk.schemas.product import ProductDTO
from cashsouk.workflow.navigation import FIRST_EDITABLE_STEP, evaluate_navigation, max_allowed_step
from cashsouk.workflow.record_store import RecordStore, RecordStoreError
from cashsouk.workflow.step_catalog import (
    StepDefinition,
    StepKey,
    StepSpec,
    mapped_step_key,
    resolve_step_key,
    step_spec,
)
from cashsouk.workflow.step_runtime import StepCommitError, StepReport, strip_control_fields
from cashsouk.workflow.structure_filter import (
    StructureChoice,
    filter_workflow,
    resolve_effective_structure,
)
from cashsouk.workflow.surfaces import LIST_URL, NEW_APPLICATION_URL, Navigator, Notifier, edit_url

logger = logging.getLogger(__name__)

SAVE_FAILED_MESSAGE = "Failed to save. Please try again."
SAVED_MESSAGE = "Saved successfully"
SUBMITTED_MESSAGE = "Application submitted"
NOT_FOUND_MESSAGE = "Application not found or access denied"
RESTART_FAILED_MESSAGE = "Unable to restart. Please try again."


class BlockReason(str, Enum):
    PRODUCT_DELETED = "PRODUCT_DELETED"
    PRODUCT_VERSION_CHANGED = "PRODUCT_VERSION_CHANGED"


class SaveOutcome(str, Enum):
    SAVED = "saved"
    ADVANCED = "advanced"  # nothing to write, position moved on
    SUBMITTED = "submitted"
    IGNORED = "ignored"
    BLOCKED = "blocked"
    INVALID = "invalid"
    STOPPED = "stopped"  # the step refused to commit
    FAILED = "failed"


@dataclass(frozen=True)
class HostState:
    current_step: int | None
    last_completed_step: int
    workflow_length: int
    block_reason: BlockReason | None


class ApplicationEditFlow:
    def __init__(
        self,
        application_id: str,
        *,
        store: RecordStore,
        notifier: Notifier,
        navigator: Navigator,
    ) -> None:
        self.application_id = application_id
        self.store = store
        self.notifier = notifier
        self.navigator = navigator

        self.application: ApplicationDetailResponse | None = None
        self.product: ProductDTO | None = None
        self.current_step: int | None = None
        self.block_reason: BlockReason | None = None
        self.report: StepReport | None = None
        self.dirty = False
        self.saving = False
        self.structure_override: StructureChoice | None = None
        self.exempt_step: int | None = None
        self.pending_leave: str | None = None
        self.leave_prompt_open = False

    # -- derived state -----------------------------------------------------

    @property
    def last_completed_step(self) -> int:
        if self.application is None:
            return 1
        return self.application.last_completed_step or 1

    @property
    def step_key_map(self) -> dict[str, str]:
        return dict(self.product.step_key_map) if self.product is not None else {}

    @property
    def full_workflow(self) -> list[StepDefinition]:
        if self.product is None:
            return []
        return [StepDefinition.from_dict(raw) for raw in self.product.workflow]

    @property
    def persisted_structure(self) -> StructureChoice | None:
        if self.application is None:
            return None
        return StructureChoice.parse(self.application.financing_structure)

    @property
    def effective_structure(self) -> StructureChoice | None:
        persisted = self.application.financing_structure if self.application is not None else None
        return resolve_effective_structure(persisted, self.structure_override)

    @property
    def workflow(self) -> list[StepDefinition]:
        return filter_workflow(self.full_workflow, self.effective_structure, self.step_key_map)

    @property
    def current_definition(self) -> StepDefinition | None:
        workflow = self.workflow
        if self.current_step is None or not 1 <= self.current_step <= len(workflow):
            return None
        return workflow[self.current_step - 1]

    @property
    def current_step_key(self) -> StepKey | None:
        if self.current_step is None:
            return None
        data = self.application.model_dump() if self.application is not None else None
        return resolve_step_key(
            self.current_step, self.workflow, step_key_map=self.step_key_map, application_data=data
        )

    @property
    def current_spec(self) -> StepSpec | None:
        return step_spec(self.current_step_key)

    @property
    def is_unmapped(self) -> bool:
        return self.current_step is not None and self.current_spec is None

    @property
    def is_blocked(self) -> bool:
        return self.block_reason is not None

    @property
    def can_navigate(self) -> bool:
        return not self.is_blocked and not self.saving and not self.is_unmapped

    @property
    def can_save(self) -> bool:
        if not self.can_navigate or self.current_step is None:
            return False
        if self.report is None:
            return self.current_step <= self.last_completed_step or self.current_step_key is StepKey.REVIEW_AND_SUBMIT
        return self.report.is_valid

    def state(self) -> HostState:
        return HostState(self.current_step, self.last_completed_step, len(self.workflow), self.block_reason)

    # -- loading and navigation ------------------------------------------

    async def load(self, requested_step: int | None = None) -> bool:
        try:
            self.application = await self.store.get_application(self.application_id)
        except RecordStoreError:
            logger.warning(
                "application load failed", exc_info=True, extra={"fields": {"application_id": self.application_id}}
            )
            self.notifier.error(NOT_FOUND_MESSAGE)
            self.navigator.push(LIST_URL)
            return False
        await self.on_step_change(requested_step)
        return True

    async def on_step_change(self, requested_step: int | None) -> None:
        """Re-check product drift, then apply the navigation guard."""
        if self.is_blocked and self.current_step is not None:
            return
        await self.refresh_block_reason()
        exempt, self.exempt_step = self.exempt_step, None
        decision = evaluate_navigation(
            requested_step,
            last_completed_step=self.last_completed_step,
            workflow_length=len(self.workflow),
            exempt_step=exempt,
        )
        if decision.redirected:
            if decision.notice:
                self.notifier.error(decision.notice)
            self.navigator.replace(edit_url(self.application_id, decision.step))
        if decision.step != self.current_step:
            self.report = None
            self.dirty = False
        self.current_step = decision.step

    async def refresh_block_reason(self) -> BlockReason | None:
        """Compare the application's product snapshot with the live catalog.

        Only ever moves towards blocked; a restart is the way out.
        """
        products = await self.store.get_products()
        product_id = self._product_id()
        product = next((item for item in products if str(item.id) == product_id), None)
        if product is not None:
            self.product = product
        if self.block_reason is not None or self.application is None:
            return self.block_reason
        if product is None:
            self.block_reason = BlockReason.PRODUCT_DELETED
        elif product.version != self.application.product_version:
            self.block_reason = BlockReason.PRODUCT_VERSION_CHANGED
        if self.block_reason is not None:
            logger.info(
                "application blocked by product drift",
                extra={"fields": {"application_id": self.application_id, "reason": self.block_reason.value}},
            )
        return self.block_reason

    def _product_id(self) -> str | None:
        if self.application is None:
            return None
        if self.application.product_id is not None:
            return str(self.application.product_id)
        financing_type = self.application.financing_type or {}
        product_id = financing_type.get("product_id")
        return str(product_id) if product_id else None

    # -- step reports --------------------------------------------------

    def on_data_change(self, report: StepReport | Mapping[str, Any] | None) -> None:
        if self.saving:
            return
        if not isinstance(report, StepReport):
            report = StepReport.from_payload(report)
        self.report = report
        self.dirty = report.dirty
        if report.structure is not None and self.current_step_key is StepKey.FINANCING_STRUCTURE:
            self.structure_override = report.structure

    # -- save and continue ---------------------------------------------

    async def save_and_continue(self) -> SaveOutcome:
        if self.saving:
            return SaveOutcome.IGNORED
        if self.is_blocked:
            return SaveOutcome.BLOCKED
        if self.application is None or self.current_step is None or self.current_spec is None:
            return SaveOutcome.IGNORED
        report = self.report
        if report is None:
            # No report since the step opened: nothing new to persist.
            if self.current_spec.key is StepKey.REVIEW_AND_SUBMIT:
                report = StepReport(data={}, dirty=False)
            elif self.current_step <= self.last_completed_step:
                return self._skip_to(self.current_step + 1)
            else:
                return SaveOutcome.INVALID
        if not report.is_valid:
            return SaveOutcome.INVALID

        self.saving = True
        try:
            return await self._run_save(report)
        except StepCommitError as exc:
            logger.info("step commit stopped", extra={"fields": {"step": self.current_step, "reason": exc.reason}})
            return SaveOutcome.STOPPED
        except Exception:
            logger.warning(
                "save and continue failed",
                exc_info=True,
                extra={"fields": {"application_id": self.application_id, "step": self.current_step}},
            )
            self.notifier.error(SAVE_FAILED_MESSAGE)
            return SaveOutcome.FAILED
        finally:
            self.saving = False

    async def _run_save(self, report: StepReport) -> SaveOutcome:
        spec = self.current_spec
        definition = self.current_definition
        current = self.current_step
        committed = await report.run_commit()
        payload = strip_control_fields(spec.merge_policy.apply(spec.key, report.data, committed))
        step_id = definition.id if definition is not None else spec.key.value

        if spec.key is StepKey.FINANCING_STRUCTURE:
            return await self._save_structure(report, step_id, payload)

        await self.store.update_application_step(
            self.application_id, step_id=step_id, step_number=current, data=payload
        )
        if spec.key is StepKey.REVIEW_AND_SUBMIT:
            status = (
                ApplicationStatus.RESUBMITTED
                if self.application.status == ApplicationStatus.AMENDMENT_REQUESTED.value
                else ApplicationStatus.SUBMITTED
            )
            await self.store.update_application_status(self.application_id, status)
            self.dirty = False
            self.store.invalidate_application(self.application_id)
            self.notifier.success(SUBMITTED_MESSAGE)
            self.navigator.push(LIST_URL)
            return SaveOutcome.SUBMITTED
        await self._advance(current + 1)
        return SaveOutcome.SAVED

    async def _save_structure(self, report: StepReport, step_id: str, payload: dict[str, Any]) -> SaveOutcome:
        persisted = self.persisted_structure
        chosen = report.structure or self.structure_override or StructureChoice.parse(payload)
        if report.structure_changed is not None:
            changed = report.structure_changed
        else:
            changed = chosen != persisted
        if not changed:
            self.structure_override = None
            return self._skip_to(self.current_step + 1)

        if chosen is not None:
            payload = chosen.to_payload()
        workflow = filter_workflow(self.full_workflow, chosen, self.step_key_map)
        position = next(
            (
                index
                for index, definition in enumerate(workflow, start=1)
                if mapped_step_key(definition, self.step_key_map) is StepKey.FINANCING_STRUCTURE
            ),
            self.current_step,
        )
        await self.store.update_application_step(
            self.application_id,
            step_id=step_id,
            step_number=position,
            data=payload,
            force_rewind_to_step=position if persisted is not None else None,
        )
        self.store.invalidate_contracts()
        await self._advance(position + 1)
        self.structure_override = None
        return SaveOutcome.SAVED

    def _skip_to(self, target: int) -> SaveOutcome:
        self.dirty = False
        self.exempt_step = target
        self.navigator.push(edit_url(self.application_id, target))
        self.current_step = target
        self.report = None
        return SaveOutcome.ADVANCED

    async def _advance(self, target: int) -> None:
        self.dirty = False
        self.store.invalidate_application(self.application_id)
        self.application = await self.store.get_application(self.application_id)
        self.exempt_step = target
        self.navigator.push(edit_url(self.application_id, target))
        self.current_step = target
        self.report = None
        self.notifier.success(SAVED_MESSAGE)

    # -- leaving ---------------------------------------------------------

    def before_unload(self) -> bool:
        """True when the browser should ask before unloading the page."""
        return self.dirty and not self.saving

    def intercept_navigation(self, url: str) -> bool:
        """Hold a link click or browser back while there are unsaved changes."""
        if not self.dirty:
            return False
        self.pending_leave = url
        self.leave_prompt_open = True
        return True

    def confirm_leave(self) -> None:
        url = self.pending_leave
        self.dirty = False
        self.leave_prompt_open = False
        self.pending_leave = None
        if url is not None:
            self.navigator.push(url)

    def cancel_leave(self) -> None:
        self.leave_prompt_open = False
        self.pending_leave = None

    def go_back(self) -> None:
        if self.is_blocked or self.saving or self.current_step is None:
            return
        if self.current_step <= FIRST_EDITABLE_STEP:
            target = LIST_URL
        else:
            target = edit_url(self.application_id, self.current_step - 1)
        if self.intercept_navigation(target):
            return
        self.navigator.push(target)

    @property
    def max_allowed_step(self) -> int:
        return max_allowed_step(self.last_completed_step)

    # -- restart -----------------------------------------------------------

    async def restart_application(self) -> ApplicationDetailResponse | None:
        """Archive this application and start over on the live product."""
        if self.application is None:
            return None
        try:
            await self.store.archive_application(self.application_id)
            if self.block_reason is BlockReason.PRODUCT_DELETED or self.product is None:
                self.navigator.push(NEW_APPLICATION_URL)
                return None
            fresh = await self.store.create_application(
                str(self.product.id), self.application.issuer_organization_id
            )
        except Exception:
            logger.warning("restart failed", exc_info=True, extra={"fields": {"application_id": self.application_id}})
            self.notifier.error(RESTART_FAILED_MESSAGE)
            return None
        self.dirty = False
        self.navigator.replace(edit_url(str(fresh.id)))
        return fresh
