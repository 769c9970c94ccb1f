from __future__ import annotations

from typing import Generic, TypeVar

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select, Update

from company_os.core.context import get_current_user_id
from company_os.models.base import SoftDeleteMixin, UserScopedBase

ModelT = TypeVar("ModelT", bound=UserScopedBase)


class UserContextMissingError(RuntimeError):
    pass


class UserScopedRepository(Generic[ModelT]):
    """Data access for one table, always filtered to a single user.

    Soft-deletable models are additionally filtered to active rows, so
    callers never spell out ``deleted_at IS NULL`` themselves.
    """

    def __init__(self, session: AsyncSession, model: type[ModelT], *, user_id: str | None = None) -> None:
        self.session = session
        self.model = model
        self._user_id = user_id

    @property
    def user_id(self) -> str:
        user_id = self._user_id or get_current_user_id()
        if not user_id:
            raise UserContextMissingError("User context is missing from the current request")
        return user_id

    @property
    def soft_deletes(self) -> bool:
        return issubclass(self.model, SoftDeleteMixin)

    def _scope(self, stmt: Select | Update, *, include_deleted: bool = False):
        stmt = stmt.where(self.model.user_id == self.user_id)
        if self.soft_deletes and not include_deleted:
            stmt = stmt.where(self.model.active_clause())
        return stmt

    def _scoped_select(self, *, include_deleted: bool = False) -> Select[tuple[ModelT]]:
        return self._scope(select(self.model), include_deleted=include_deleted)

    def _scoped_update(self) -> Update:
        return self._scope(update(self.model))

    async def create(self, **values: object) -> ModelT:
        payload = dict(values)
        payload["user_id"] = self.user_id
        instance = self.model(**payload)
        self.session.add(instance)
        await self.session.flush()
        await self.session.refresh(instance)
        return instance

    async def get(self, entity_id: object) -> ModelT | None:
        result = await self.session.execute(
            self._scoped_select().where(self.model.id == entity_id)
        )
        return result.scalar_one_or_none()

    async def list(self, *, limit: int = 100, offset: int = 0) -> list[ModelT]:
        result = await self.session.execute(
            self._scoped_select().limit(limit).offset(offset)
        )
        return list(result.scalars().all())
