"""Review transition rules shared by the review service and the admin console.

Nothing here touches the database; callers pass in the statuses they read.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from cashsouk.schemas.application import ApplicationStatus
from cashsouk.schemas.review import ReviewAction, ReviewItemType, ReviewScope, ReviewSection, ReviewStatus

REVIEW_SECTIONS: tuple[ReviewSection, ...] = tuple(ReviewSection)

REVIEWABLE_APPLICATION_STATUSES = frozenset(
    {ApplicationStatus.SUBMITTED, ApplicationStatus.UNDER_REVIEW, ApplicationStatus.RESUBMITTED}
)

ACTION_STATUS: dict[ReviewAction, ReviewStatus] = {
    ReviewAction.APPROVE: ReviewStatus.APPROVED,
    ReviewAction.REJECT: ReviewStatus.REJECTED,
    ReviewAction.REQUEST_AMENDMENT: ReviewStatus.AMENDMENT_REQUESTED,
}

NOTE_REQUIRED_ACTIONS = frozenset({ReviewAction.REJECT, ReviewAction.REQUEST_AMENDMENT})

# Section each item type is reviewed under.
ITEM_SECTIONS: dict[ReviewItemType, ReviewSection] = {
    ReviewItemType.INVOICE: ReviewSection.FINANCIAL,
    ReviewItemType.DOCUMENT: ReviewSection.DOCUMENTS,
}


class ReviewNoteRequired(ValueError):
    def __init__(self, action: ReviewAction) -> None:
        super().__init__(f"A remark is required to {action.value.lower().replace('_', ' ')}")
        self.action = action


def normalize_note(action: ReviewAction, note: str | None) -> str | None:
    """Trim the remark; raise when the action needs one and it is blank."""
    cleaned = note.strip() if note else ""
    if action in NOTE_REQUIRED_ACTIONS and not cleaned:
        raise ReviewNoteRequired(action)
    return cleaned or None


def event_type(scope: ReviewScope, action: ReviewAction) -> str:
    return f"{scope.value}_{ACTION_STATUS[action].value}"


def document_item_key(category: str, index: int, name: str) -> str:
    """Stable id of a supporting document inside the application's JSON blob."""
    return f"doc:{category}:{index}:{name}"


def iter_document_items(supporting_documents: Any) -> list[tuple[str, Mapping[str, Any]]]:
    """List ``(item key, document)`` for every uploaded supporting document."""
    if isinstance(supporting_documents, Mapping):
        supporting_documents = supporting_documents.get("supporting_documents", supporting_documents)
    if not isinstance(supporting_documents, Mapping):
        return []
    items = []
    for category in supporting_documents.get("categories") or []:
        category_name = str(category.get("name") or "")
        for index, document in enumerate(category.get("documents") or []):
            if not (document.get("file") or {}).get("s3_key"):
                continue
            items.append((document_item_key(category_name, index, str(document.get("title") or "")), document))
    return items


def section_statuses(rows: Iterable[tuple[str, str]]) -> dict[ReviewSection, ReviewStatus]:
    statuses = {section: ReviewStatus.PENDING for section in REVIEW_SECTIONS}
    for section, status in rows:
        statuses[ReviewSection(section)] = ReviewStatus(status)
    return statuses


def all_sections_approved(statuses: Mapping[ReviewSection, ReviewStatus]) -> bool:
    return all(statuses.get(section) == ReviewStatus.APPROVED for section in REVIEW_SECTIONS)


def is_reviewable(application_status: str) -> bool:
    return application_status in {status.value for status in REVIEWABLE_APPLICATION_STATUSES}


def can_approve_application(application_status: str, statuses: Mapping[ReviewSection, ReviewStatus]) -> bool:
    return is_reviewable(application_status) and all_sections_approved(statuses)
