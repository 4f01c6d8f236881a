import contextvars

_company_id: contextvars.ContextVar[str] = contextvars.ContextVar("company_id", default="-")
_request_id: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default="-")


def set_company_id(company_id: str) -> None:
    _company_id.set(company_id)


def get_company_id() -> str:
    return _company_id.get()


def set_request_id(request_id: str) -> None:
    _request_id.set(request_id)


def get_request_id() -> str:
    return _request_id.get()


def clear_context() -> None:
    _company_id.set("-")
    _request_id.set("-")
