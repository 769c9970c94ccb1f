from __future__ import annotations

from contextvars import ContextVar
from typing import Final

_CURRENT_USER_ID: Final[ContextVar[str | None]] = ContextVar(
    "current_user_id",
    default=None,
)


def set_current_user_id(user_id: str | None) -> object:
    return _CURRENT_USER_ID.set(user_id)


def get_current_user_id() -> str | None:
    return _CURRENT_USER_ID.get()


def reset_current_user_id(token: object) -> None:
    _CURRENT_USER_ID.reset(token)
