"""User-facing surfaces the edit flow drives: toasts and URL navigation."""

from __future__ import annotations

from typing import Protocol

LIST_URL = "/applications"
NEW_APPLICATION_URL = "/applications/new"


def edit_url(application_id: str, step: int | None = None) -> str:
    base = f"/applications/edit/{application_id}"
    return base if step is None else f"{base}?step={step}"


class Notifier(Protocol):
    def success(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...


class Navigator(Protocol):
    def push(self, url: str) -> None: ...

    def replace(self, url: str) -> None: ...

