"""Sequential document uploads for the supporting documents step."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from cashsouk.workflow.record_store import ObjectStorage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PendingUpload:
    slot: tuple[int, int]  # (category index, document index)
    file_name: str
    content_type: str
    content: bytes
    existing_key: str | None = None

    @property
    def file_size(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class UploadedDocument:
    slot: tuple[int, int]
    file_name: str
    key: str
    replaced_key: str | None = None


class UploadFailed(Exception):
    """An upload in a batch failed; earlier uploads in the batch are kept."""

    def __init__(self, upload: PendingUpload, completed: Sequence[UploadedDocument], cause: Exception) -> None:
        super().__init__(f"Upload of {upload.file_name} failed")
        self.upload = upload
        self.completed = list(completed)
        self.cause = cause


async def upload_documents(
    storage: ObjectStorage, owner_id: str, uploads: Sequence[PendingUpload]
) -> list[UploadedDocument]:
    """Upload one file at a time so a failure names exactly which file failed."""
    completed: list[UploadedDocument] = []
    for upload in uploads:
        try:
            issued = await storage.request_upload_url(
                owner_id,
                file_name=upload.file_name,
                content_type=upload.content_type,
                file_size=upload.file_size,
                existing_key=upload.existing_key,
            )
            await storage.put_object(issued, upload.content)
        except Exception as exc:
            logger.warning(
                "document upload failed",
                extra={"fields": {"owner_id": owner_id, "file_name": upload.file_name, "completed": len(completed)}},
            )
            raise UploadFailed(upload, completed, exc) from exc
        replaced = upload.existing_key if upload.existing_key and upload.existing_key != issued.key else None
        if replaced:
            try:
                await storage.delete_object(owner_id, replaced)
            except Exception:
                # Old object stays behind; the new key is already recorded.
                logger.warning("old document delete failed", extra={"fields": {"key": replaced}})
        completed.append(UploadedDocument(upload.slot, upload.file_name, issued.key, replaced))
    return completed


@dataclass
class SupportingDocumentsForm:
    """Slots of the supporting documents step, built from the step config.

    ``config.categories`` is ``[{name, documents: [{title}]}]``. The committed
    payload keeps that shape and adds ``file: {file_name, s3_key}`` to each
    filled slot.
    """

    categories: list[dict[str, Any]]
    files: dict[tuple[int, int], dict[str, str]] = field(default_factory=dict)
    selected: dict[tuple[int, int], PendingUpload] = field(default_factory=dict)

    @classmethod
    def from_config(cls, config: Mapping[str, Any], saved: Any = None) -> "SupportingDocumentsForm":
        categories = [dict(category) for category in (config.get("categories") or [])]
        form = cls(categories)
        if isinstance(saved, Mapping):
            saved = saved.get("supporting_documents", saved)
        if not isinstance(saved, Mapping):
            return form
        names = [category.get("name") for category in categories]
        for saved_category in saved.get("categories") or []:
            if saved_category.get("name") not in names:
                continue
            category_index = names.index(saved_category.get("name"))
            titles = [doc.get("title") for doc in categories[category_index].get("documents") or []]
            for saved_document in saved_category.get("documents") or []:
                file = saved_document.get("file") or {}
                if saved_document.get("title") in titles and file.get("s3_key") and file.get("file_name"):
                    slot = (category_index, titles.index(saved_document["title"]))
                    form.files[slot] = {"file_name": file["file_name"], "s3_key": file["s3_key"]}
        return form

    def select(self, slot: tuple[int, int], file_name: str, content_type: str, content: bytes) -> None:
        existing = self.files.get(slot, {}).get("s3_key")
        self.selected[slot] = PendingUpload(slot, file_name, content_type, content, existing)

    @property
    def all_files_uploaded(self) -> bool:
        for category_index, category in enumerate(self.categories):
            for document_index, _ in enumerate(category.get("documents") or []):
                slot = (category_index, document_index)
                if slot not in self.files and slot not in self.selected:
                    return False
        return True

    def to_payload(self) -> dict[str, Any]:
        categories = []
        for category_index, category in enumerate(self.categories):
            documents = []
            for document_index, document in enumerate(category.get("documents") or []):
                entry: dict[str, Any] = {"title": document.get("title")}
                file = self.files.get((category_index, document_index))
                if file:
                    entry["file"] = dict(file)
                documents.append(entry)
            categories.append({"name": category.get("name"), "documents": documents})
        return {"categories": categories}

    async def commit(self, storage: ObjectStorage, owner_id: str) -> dict[str, Any]:
        uploads = [self.selected[slot] for slot in sorted(self.selected)]
        try:
            uploaded = await upload_documents(storage, owner_id, uploads)
        except UploadFailed as exc:
            self._record(exc.completed)
            raise
        self._record(uploaded)
        return self.to_payload()

    def _record(self, uploaded: Sequence[UploadedDocument]) -> None:
        for document in uploaded:
            self.files[document.slot] = {"file_name": document.file_name, "s3_key": document.key}
            self.selected.pop(document.slot, None)
