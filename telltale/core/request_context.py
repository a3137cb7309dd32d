"""Ambient request context.

Host middleware sets the request being served; captured events copy
whatever is current. Outside a request, events describe the process.
"""

import locale
import sys
from contextvars import ContextVar, Token

from .models import RequestContext
from .user_context import runtime_user_agent

_current_request: ContextVar[RequestContext | None] = ContextVar(
    "telltale_request_context", default=None
)


def set_request_context(context: RequestContext) -> Token[RequestContext | None]:
    return _current_request.set(context)


def reset_request_context(token: Token[RequestContext | None]) -> None:
    _current_request.reset(token)


def process_environment() -> dict[str, str]:
    language = locale.getlocale()[0] or "unknown"
    return {
        "userAgent": runtime_user_agent(),
        "language": language,
        "platform": sys.platform,
    }


def current_request_context() -> RequestContext:
    context = _current_request.get()
    if context is not None:
        return context
    return RequestContext(
        url=sys.argv[0] if sys.argv else "",
        method="GET",
        query_string="",
        env=process_environment(),
    )
