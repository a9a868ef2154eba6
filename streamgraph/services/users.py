"""
User operations.

Account creation here only seeds users; credentials and sessions belong
to the identity layer. Usernames and emails are unique (case-insensitive,
stored lowercased).
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any

from ..errors import ConflictError, NotFoundError
from ..models import EntityKind, validate_id
from ..store import translate_store_errors
from .base import ServiceBase
from .inputs import RegisterUserInput, parse_input

logger = logging.getLogger(__name__)


class UserService(ServiceBase):
    """Seeding users and reading channel profiles."""

    async def register_user(
        self,
        username: str,
        fullname: str,
        email: str,
        avatar: str | None = None,
        cover_image: str | None = None,
    ) -> dict[str, Any]:
        """Create a user.

        Raises:
            InvalidArgumentError: If the input is invalid
            ConflictError: If the username or email is already taken
        """
        data = parse_input(
            RegisterUserInput,
            username=username,
            fullname=fullname,
            email=email,
            avatar=avatar,
            cover_image=cover_image,
        )

        with translate_store_errors("register user"):
            try:
                user = await self.store.create_entity(
                    kind=EntityKind.USER,
                    owner_id=None,
                    payload=data.model_dump(),
                )
            except sqlite3.IntegrityError as e:
                taken = "username" if "username" in str(e) else "email"
                raise ConflictError(
                    f"A user with this {taken} already exists",
                    details={"field": taken},
                ) from e

        logger.info("User registered", extra={"user_id": user.entity_id})
        return user.to_document()

    async def get_channel_profile(
        self,
        channel_id: str,
        actor_id: str | None = None,
    ) -> dict[str, Any]:
        """Public channel profile with subscriber counts.

        Args:
            channel_id: Channel (user) identifier
            actor_id: Populate is_subscribed for this actor

        Raises:
            InvalidArgumentError: If an identifier is malformed
            NotFoundError: If the channel does not exist
        """
        channel_id = validate_id(channel_id, "channel_id")
        if actor_id is not None:
            actor_id = validate_id(actor_id, "actor_id")

        profile = await self.composer.channel_profile(channel_id, actor_id)
        if profile is None:
            raise NotFoundError("Channel not found", EntityKind.USER.value, channel_id)
        return profile
