"""
Subscription operations.

A subscription is an edge from a user (the subscriber) to another user's
channel. Subscribing is a toggle; nobody subscribes to themselves.
"""

from __future__ import annotations

from typing import Any

from ..models import EdgeKind, EdgeTarget, EntityKind
from ..relations import OwnershipGuard, RelationToggleEngine, ToggleResult
from ..store import EntityStore
from ..views.composer import ViewComposer
from ..views.pagination import PageResult
from .base import ServiceBase


class SubscriptionService(ServiceBase):
    """Toggling subscriptions and listing subscribers and channels."""

    def __init__(
        self,
        store: EntityStore,
        composer: ViewComposer,
        guard: OwnershipGuard,
        toggle: RelationToggleEngine,
    ) -> None:
        super().__init__(store, composer, guard)
        self.toggle = toggle

    async def toggle_subscription(self, actor_id: str, channel_id: str) -> ToggleResult:
        """Subscribe to or unsubscribe from a channel.

        Raises:
            InvalidArgumentError: If an identifier is malformed or the
                actor targets their own channel
            NotFoundError: If the channel does not exist
        """
        return await self.toggle.toggle_edge(
            actor_id, EdgeTarget.channel(channel_id), EdgeKind.SUBSCRIPTION
        )

    async def get_channel_subscribers(
        self,
        channel_id: str,
        page: Any = None,
        limit: Any = None,
    ) -> PageResult[dict[str, Any]]:
        """List the profiles of a channel's subscribers.

        Raises:
            InvalidArgumentError: If the channel id is malformed
            NotFoundError: If the channel does not exist
        """
        channel = await self._load(EntityKind.USER, channel_id, "channel_id")
        return await self.composer.channel_subscribers(
            channel.entity_id, self.composer.page_request(page, limit)
        )

    async def get_subscribed_channels(
        self,
        subscriber_id: str,
        page: Any = None,
        limit: Any = None,
    ) -> PageResult[dict[str, Any]]:
        """List the channels a user subscribes to.

        Raises:
            InvalidArgumentError: If the subscriber id is malformed
            NotFoundError: If the subscriber does not exist
        """
        subscriber = await self._load(EntityKind.USER, subscriber_id, "subscriber_id")
        return await self.composer.subscribed_channels(
            subscriber.entity_id, self.composer.page_request(page, limit)
        )
