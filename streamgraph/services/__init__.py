"""
Feature services: the operation surface of StreamGraph.

Each service takes an explicit actor_id wherever an actor is involved
and raises StreamGraphError subclasses only.
"""

from .comments import CommentService
from .likes import LikeService
from .playlists import PlaylistService
from .posts import PostService
from .subscriptions import SubscriptionService
from .users import UserService
from .videos import VideoService

__all__ = [
    "CommentService",
    "LikeService",
    "PlaylistService",
    "PostService",
    "SubscriptionService",
    "UserService",
    "VideoService",
]
