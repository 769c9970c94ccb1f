from __future__ import annotations

from collections.abc import Awaitable, Callable

from fastapi import Request
from starlette.responses import Response

from company_os.core.context import reset_current_user_id, set_current_user_id


async def user_context_middleware(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    # Authentication fills the user in; nothing leaks between requests.
    token = set_current_user_id(None)
    try:
        return await call_next(request)
    finally:
        reset_current_user_id(token)
