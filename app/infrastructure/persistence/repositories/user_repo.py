"""User repository. Interface methods return application DTOs."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.application.dtos.user import UserResult, UserUpsert
from app.infrastructure.persistence.models.user import User
from app.infrastructure.persistence.repositories.base import BaseRepository
from app.shared.utils.datetime import ensure_utc

logger = logging.getLogger(__name__)

_UPDATABLE = frozenset(
    {"external_user_id", "email", "first_name", "last_name", "avatar_url", "platform_role", "metadata"}
)


def _user_to_result(u: User) -> UserResult:
    """Map ORM User to application UserResult."""
    return UserResult(
        id=u.id,
        external_user_id=u.external_user_id,
        email=u.email,
        first_name=u.first_name,
        last_name=u.last_name,
        avatar_url=u.avatar_url,
        platform_role=u.platform_role,
        metadata=dict(u.metadata_ or {}),
        deleted_at=ensure_utc(u.deleted_at),
    )


class UserRepository(BaseRepository[User]):
    """User repository keyed by internal id, identity-provider subject, or email."""

    def __init__(self, db: AsyncSession) -> None:
        super().__init__(db, User)

    async def get_by_id(self, user_id: str) -> UserResult | None:
        user = await self.get_entity_by_id(user_id)
        return _user_to_result(user) if user else None

    async def get_by_external_id(self, external_user_id: str) -> UserResult | None:
        user = await self.get_one_by(external_user_id=external_user_id)
        return _user_to_result(user) if user else None

    async def get_by_email(self, email: str) -> UserResult | None:
        user = await self.get_one_by(email=email)
        return _user_to_result(user) if user else None

    async def create_user(self, data: UserUpsert) -> UserResult:
        """Create a user; a concurrent insert of the same subject or email returns that row.

        An email match with a different subject is relinked to the new subject.
        """
        user = User(
            external_user_id=data.external_user_id,
            email=data.email,
            first_name=data.first_name,
            last_name=data.last_name,
            avatar_url=data.avatar_url,
            metadata_=dict(data.metadata),
        )
        try:
            async with self.db.begin_nested():
                created = await self.create(user)
            return _user_to_result(created)
        except IntegrityError:
            existing = await self.get_one_by(external_user_id=data.external_user_id, include_deleted=True)
            if existing is not None:
                return _user_to_result(existing)
            by_email = await self.get_one_by(email=data.email, include_deleted=True)
            if by_email is None:
                raise
            logger.info("Relinking user %s to subject %s (email conflict)", by_email.id, data.external_user_id)
            updated = await self.update_fields(by_email, external_user_id=data.external_user_id)
            return _user_to_result(updated)

    async def update_user(self, user_id: str, **fields: Any) -> UserResult | None:
        unknown = set(fields) - _UPDATABLE
        if unknown:
            raise ValueError(f"Cannot update user fields: {sorted(unknown)}")
        user = await self.get_entity_by_id(user_id)
        if user is None:
            return None
        if "metadata" in fields:
            fields["metadata_"] = fields.pop("metadata")
        updated = await self.update_fields(user, **fields)
        return _user_to_result(updated)

    async def upsert_by_external_id(self, data: UserUpsert) -> UserResult:
        """Create or refresh the user from identity-provider data."""
        user = await self.get_one_by(external_user_id=data.external_user_id)
        if user is None:
            return await self.create_user(data)
        updated = await self.update_fields(
            user,
            email=data.email or user.email,
            first_name=data.first_name,
            last_name=data.last_name,
            avatar_url=data.avatar_url,
            metadata_=dict(data.metadata),
        )
        return _user_to_result(updated)

    async def soft_delete_by_external_id(self, external_user_id: str) -> bool:
        user = await self.get_one_by(external_user_id=external_user_id)
        if user is None:
            return False
        await self.soft_delete(user)
        return True
