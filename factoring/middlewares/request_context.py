import re
from uuid import uuid4

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from factoring.core import context

_COMPANY_PATH = re.compile(
    r"/c/([0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12})(?:/|$)"
)


def company_id_from_path(path: str) -> str | None:
    match = _COMPANY_PATH.search(path)
    return match.group(1).lower() if match else None


class RequestContextMiddleware:
    """Attach request_id and company_id to context vars for logging/traceability."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = dict(scope.get("headers", []))
        request_id = headers.get(b"x-request-id", b"").decode() or str(uuid4())

        context.clear_context()
        context.set_request_id(request_id)
        company_id = company_id_from_path(scope.get("path", ""))
        if company_id:
            context.set_company_id(company_id)

        async def send_with_request_id(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers_list = list(message.get("headers", []))
                headers_list.append((b"x-request-id", request_id.encode()))
                message["headers"] = headers_list
            await send(message)

        await self.app(scope, receive, send_with_request_id)
