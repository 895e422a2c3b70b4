import contextvars

# Per-request identifiers stamped onto every log line.
_request_id: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default="-")
_actor_id: contextvars.ContextVar[str] = contextvars.ContextVar("actor_id", default="-")
_application_id: contextvars.ContextVar[str] = contextvars.ContextVar("application_id", default="-")


def set_request_id(request_id: str) -> None:
    _request_id.set(request_id)


def get_request_id() -> str:
    return _request_id.get()


def set_actor_id(actor_id: str) -> None:
    _actor_id.set(actor_id)


def get_actor_id() -> str:
    return _actor_id.get()


def set_application_id(application_id: str) -> None:
    """Tag the rest of the request with the application being worked on."""
    _application_id.set(application_id)


def get_application_id() -> str:
    return _application_id.get()


def clear_context() -> None:
    for var in (_request_id, _actor_id, _application_id):
        var.set("-")
