from dataclasses import dataclass
from datetime import date
from pathlib import PurePosixPath
import re
import secrets
import string

_KEY_PATTERN = re.compile(
    r"^applications/(?P<owner>[^/]+)/v(?P<version>\d+)-(?P<day>\d{4}-\d{2}-\d{2})-"
    r"(?P<cuid>[a-z0-9]+)\.(?P<ext>[A-Za-z0-9]+)$"
)
_CUID_ALPHABET = string.ascii_lowercase + string.digits


@dataclass(frozen=True)
class DocumentKey:
    owner_id: str
    version: int
    day: date
    cuid: str
    extension: str

    def __str__(self) -> str:
        return (
            f"applications/{self.owner_id}/v{self.version}-{self.day.isoformat()}-"
            f"{self.cuid}.{self.extension}"
        )


class KeyGenerator:
    @staticmethod
    def _extension(filename: str) -> str:
        ext = PurePosixPath(filename.replace("\\", "/")).suffix.lstrip(".").lower()
        ext = re.sub(r"[^a-z0-9]", "", ext)
        if not ext:
            raise ValueError("File name must have an extension")
        return ext

    @staticmethod
    def _cuid() -> str:
        return "c" + "".join(secrets.choice(_CUID_ALPHABET) for _ in range(24))

    @staticmethod
    def parse(object_key: str) -> DocumentKey | None:
        match = _KEY_PATTERN.match(object_key or "")
        if not match:
            return None
        return DocumentKey(
            owner_id=match.group("owner"),
            version=int(match.group("version")),
            day=date.fromisoformat(match.group("day")),
            cuid=match.group("cuid"),
            extension=match.group("ext").lower(),
        )

    @staticmethod
    def generate_document_key(
        owner_id: str, filename: str, *, existing_key: str | None = None, today: date | None = None
    ) -> DocumentKey:
        """Key for an application document.

        A re-upload over ``existing_key`` keeps its cuid and bumps the version.
        """
        day = today or date.today()
        extension = KeyGenerator._extension(filename)
        if existing_key:
            previous = KeyGenerator.parse(existing_key)
            if previous is None:
                raise ValueError("Existing key is not a document key")
            if previous.owner_id != owner_id:
                raise ValueError("Existing key belongs to another application")
            return DocumentKey(owner_id, previous.version + 1, day, previous.cuid, extension)
        return DocumentKey(owner_id, 1, day, KeyGenerator._cuid(), extension)
