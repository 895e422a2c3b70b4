"""Admin side of review: section, item and application actions over the API."""

from __future__ import annotations

import logging
from typing import Protocol

import httpx

from cashsouk.schemas.review import (
    ApplicationReviewResponse,
    ReviewAction,
    ReviewItemType,
    ReviewSection,
    ReviewStatus,
)
from cashsouk.services.review_state import (
    ReviewNoteRequired,
    can_approve_application,
    normalize_note,
    section_statuses,
)
from cashsouk.workflow.record_store import unwrap_envelope
from cashsouk.workflow.surfaces import Notifier

logger = logging.getLogger(__name__)

_ACTION_PATHS = {
    ReviewAction.APPROVE: "approve",
    ReviewAction.REJECT: "reject",
    ReviewAction.REQUEST_AMENDMENT: "request-amendment",
}

_ACTION_MESSAGES = {
    ReviewAction.APPROVE: "approved",
    ReviewAction.REJECT: "rejected",
    ReviewAction.REQUEST_AMENDMENT: "sent back for amendment",
}


class ReviewClient(Protocol):
    async def get_review(self, application_id: str) -> ApplicationReviewResponse: ...

    async def section_action(
        self, application_id: str, section: ReviewSection, action: ReviewAction, note: str | None
    ) -> None: ...

    async def item_action(
        self,
        application_id: str,
        item_type: ReviewItemType,
        item_id: str,
        action: ReviewAction,
        note: str | None,
    ) -> None: ...

    async def application_action(self, application_id: str, action: ReviewAction, note: str | None) -> None: ...


class HttpReviewClient:
    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    def _base(self, application_id: str) -> str:
        return f"/admin/applications/{application_id}/review"

    async def get_review(self, application_id: str) -> ApplicationReviewResponse:
        response = await self._client.get(self._base(application_id))
        return ApplicationReviewResponse.model_validate(unwrap_envelope(response))

    async def section_action(
        self, application_id: str, section: ReviewSection, action: ReviewAction, note: str | None
    ) -> None:
        url = f"{self._base(application_id)}/sections/{section.value}/{_ACTION_PATHS[action]}"
        unwrap_envelope(await self._client.post(url, json={"note": note}))

    async def item_action(
        self,
        application_id: str,
        item_type: ReviewItemType,
        item_id: str,
        action: ReviewAction,
        note: str | None,
    ) -> None:
        url = f"{self._base(application_id)}/items/{_ACTION_PATHS[action]}"
        body = {"item_type": item_type.value, "item_id": item_id, "note": note}
        unwrap_envelope(await self._client.post(url, json=body))

    async def application_action(self, application_id: str, action: ReviewAction, note: str | None) -> None:
        url = f"{self._base(application_id)}/{_ACTION_PATHS[action]}"
        unwrap_envelope(await self._client.post(url, json={"note": note}))


class ReviewConsole:
    """Review state for one application as the admin sees it.

    Remarks are checked here before any request is made; the server checks
    again. ``can_approve`` only drives what is offered.
    """

    def __init__(self, application_id: str, *, client: ReviewClient, notifier: Notifier) -> None:
        self.application_id = application_id
        self.client = client
        self.notifier = notifier
        self.review: ApplicationReviewResponse | None = None

    async def refresh(self) -> ApplicationReviewResponse:
        self.review = await self.client.get_review(self.application_id)
        return self.review

    def section_status(self, section: ReviewSection) -> ReviewStatus:
        if self.review is None:
            return ReviewStatus.PENDING
        return self.statuses()[section]

    def statuses(self) -> dict[ReviewSection, ReviewStatus]:
        rows = self.review.sections if self.review is not None else []
        return section_statuses((row.section, row.status) for row in rows)

    def item_status(self, item_type: ReviewItemType, item_id: str) -> ReviewStatus:
        for item in self.review.items if self.review is not None else []:
            if item.item_type == item_type.value and item.item_id == item_id:
                return ReviewStatus(item.status)
        return ReviewStatus.PENDING

    @property
    def can_approve(self) -> bool:
        if self.review is None:
            return False
        return can_approve_application(self.review.application_status, self.statuses())

    def _remark(self, action: ReviewAction, note: str | None) -> str | None:
        try:
            return normalize_note(action, note)
        except ReviewNoteRequired as exc:
            self.notifier.error(str(exc))
            raise

    async def act_on_section(self, section: ReviewSection, action: ReviewAction, note: str | None = None) -> None:
        remark = self._remark(action, note)
        await self.client.section_action(self.application_id, section, action, remark)
        self.notifier.success(f"{section.value.title()} section {_ACTION_MESSAGES[action]}")
        await self.refresh()

    async def act_on_item(
        self, item_type: ReviewItemType, item_id: str, action: ReviewAction, note: str | None = None
    ) -> None:
        remark = self._remark(action, note)
        await self.client.item_action(self.application_id, item_type, item_id, action, remark)
        self.notifier.success(f"{item_type.value.title()} {_ACTION_MESSAGES[action]}")
        await self.refresh()

    async def act_on_application(self, action: ReviewAction, note: str | None = None) -> None:
        remark = self._remark(action, note)
        if action is ReviewAction.APPROVE and not self.can_approve:
            self.notifier.error("All sections must be approved first")
            return
        await self.client.application_action(self.application_id, action, remark)
        self.notifier.success(f"Application {_ACTION_MESSAGES[action]}")
        await self.refresh()

    async def approve_section(self, section: ReviewSection) -> None:
        await self.act_on_section(section, ReviewAction.APPROVE)

    async def reject_section(self, section: ReviewSection, note: str | None) -> None:
        await self.act_on_section(section, ReviewAction.REJECT, note)

    async def request_amendment_section(self, section: ReviewSection, note: str | None) -> None:
        await self.act_on_section(section, ReviewAction.REQUEST_AMENDMENT, note)

    async def approve_item(self, item_type: ReviewItemType, item_id: str) -> None:
        await self.act_on_item(item_type, item_id, ReviewAction.APPROVE)

    async def reject_item(self, item_type: ReviewItemType, item_id: str, note: str | None) -> None:
        await self.act_on_item(item_type, item_id, ReviewAction.REJECT, note)

    async def request_amendment_item(self, item_type: ReviewItemType, item_id: str, note: str | None) -> None:
        await self.act_on_item(item_type, item_id, ReviewAction.REQUEST_AMENDMENT, note)
