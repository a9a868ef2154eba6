"""
Integration tests for the feature services.

Tests cover:
- Like and subscription toggles (including concurrent toggles)
- Paged views with live aggregates
- Owner-gated mutations and reads
- Cascading deletes and media cleanup
- Reconciliation of failed cascades
"""

import asyncio
import sqlite3
import uuid

import pytest

from streamgraph.errors import (
    ConflictError,
    InternalError,
    InvalidArgumentError,
    NotFoundError,
    UnauthorizedError,
)


def _missing_id() -> str:
    return str(uuid.uuid4())


class TestLikes:
    """Tests for LikeService."""

    @pytest.mark.asyncio
    async def test_toggle_video_like_twice(self, platform, alice, publish):
        """First toggle likes, second toggle unlikes."""
        video = await publish(alice)

        first = await platform.likes.toggle_video_like(alice["id"], video["id"])
        assert first.edge_now_exists is True
        second = await platform.likes.toggle_video_like(alice["id"], video["id"])
        assert second.edge_now_exists is False

    @pytest.mark.asyncio
    async def test_like_missing_video(self, platform, alice):
        with pytest.raises(NotFoundError):
            await platform.likes.toggle_video_like(alice["id"], _missing_id())

    @pytest.mark.asyncio
    async def test_like_malformed_id(self, platform, alice):
        with pytest.raises(InvalidArgumentError):
            await platform.likes.toggle_video_like(alice["id"], "not-an-id")
        with pytest.raises(InvalidArgumentError):
            await platform.likes.toggle_video_like("", _missing_id())

    @pytest.mark.asyncio
    async def test_like_counts_are_live(self, platform, alice, bob, publish):
        """Like counts always equal the current number of likes."""
        video = await publish(alice)
        await platform.likes.toggle_video_like(alice["id"], video["id"])
        await platform.likes.toggle_video_like(bob["id"], video["id"])

        page = await platform.videos.list_videos(actor_id=bob["id"])
        assert page.items[0]["likes"] == 2
        assert page.items[0]["is_liked"] is True

        await platform.likes.toggle_video_like(bob["id"], video["id"])
        page = await platform.videos.list_videos(actor_id=bob["id"])
        assert page.items[0]["likes"] == 1
        assert page.items[0]["is_liked"] is False

    @pytest.mark.asyncio
    async def test_gathered_toggles_alternate(self, platform, alice, publish):
        """Toggles issued together on one loop alternate and leave no like."""
        video = await publish(alice)
        results = await asyncio.gather(
            *[platform.likes.toggle_video_like(alice["id"], video["id"]) for _ in range(4)]
        )
        assert sum(r.edge_now_exists for r in results) == 2

        detail = await platform.videos.get_video_by_id(video["id"], alice["id"])
        assert detail["likes"] == 0
        assert detail["is_liked"] is False

    @pytest.mark.asyncio
    async def test_liked_videos(self, platform, alice, bob, publish):
        liked = await publish(alice, title="Liked")
        await publish(alice, title="Not liked")
        await platform.likes.toggle_video_like(bob["id"], liked["id"])

        page = await platform.likes.get_liked_videos(bob["id"])
        assert [v["title"] for v in page.items] == ["Liked"]
        assert page.items[0]["owner"]["username"] == "alice"

    @pytest.mark.asyncio
    async def test_comment_and_post_likes(self, platform, alice, bob, publish):
        video = await publish(alice)
        comment = await platform.comments.add_comment(bob["id"], video["id"], "Great")
        post = await platform.posts.create_post(alice["id"], "Hello")

        assert (await platform.likes.toggle_comment_like(alice["id"], comment["id"])).edge_now_exists
        assert (await platform.likes.toggle_post_like(bob["id"], post["id"])).edge_now_exists

        comments = await platform.comments.get_video_comments(video["id"], actor_id=alice["id"])
        assert comments.items[0]["likes"] == 1
        assert comments.items[0]["is_liked"] is True

        posts = await platform.posts.get_user_posts(alice["id"])
        assert posts.items[0]["likes"] == 1


class TestSubscriptions:
    """Tests for SubscriptionService."""

    @pytest.mark.asyncio
    async def test_subscribe_and_list(self, platform, alice, bob):
        result = await platform.subscriptions.toggle_subscription(bob["id"], alice["id"])
        assert result.edge_now_exists

        subscribers = await platform.subscriptions.get_channel_subscribers(alice["id"])
        assert [s["username"] for s in subscribers.items] == ["bob"]
        assert "email" not in subscribers.items[0]

        channels = await platform.subscriptions.get_subscribed_channels(bob["id"])
        assert [c["username"] for c in channels.items] == ["alice"]
        assert channels.items[0]["subscribers"] == 1

    @pytest.mark.asyncio
    async def test_self_subscription_rejected(self, platform, alice):
        with pytest.raises(InvalidArgumentError):
            await platform.subscriptions.toggle_subscription(alice["id"], alice["id"])

    @pytest.mark.asyncio
    async def test_subscribe_missing_channel(self, platform, alice):
        with pytest.raises(NotFoundError):
            await platform.subscriptions.toggle_subscription(alice["id"], _missing_id())

    @pytest.mark.asyncio
    async def test_empty_subscriber_list(self, platform, alice):
        """No subscribers is an empty page, not an error."""
        page = await platform.subscriptions.get_channel_subscribers(alice["id"])
        assert page.items == []
        assert page.total == 0

    @pytest.mark.asyncio
    async def test_channel_profile(self, platform, alice, bob):
        await platform.subscriptions.toggle_subscription(bob["id"], alice["id"])

        profile = await platform.users.get_channel_profile(alice["id"], actor_id=bob["id"])
        assert profile["subscribers"] == 1
        assert profile["subscribed_to"] == 0
        assert profile["is_subscribed"] is True
        assert "email" not in profile

        anonymous = await platform.users.get_channel_profile(alice["id"])
        assert anonymous["is_subscribed"] is False

        with pytest.raises(NotFoundError):
            await platform.users.get_channel_profile(_missing_id())


class TestVideos:
    """Tests for VideoService."""

    @pytest.mark.asyncio
    async def test_invalid_pagination_uses_defaults(self, platform, alice, publish):
        """page=0, limit=-5 executes as page=1, limit=10."""
        for i in range(12):
            await publish(alice, title=f"Video {i}")

        page = await platform.videos.list_videos(page=0, limit=-5)
        assert (page.page, page.limit, page.skip) == (1, 10, 0)
        assert len(page.items) == 10
        assert page.total == 12
        assert page.has_more

    @pytest.mark.asyncio
    async def test_page_beyond_sqlite_range(self, platform, alice, publish):
        """A huge page number is an empty page, not a crash."""
        await publish(alice)

        page = await platform.videos.list_videos(page=10**18, limit=10)
        assert page.items == []
        assert page.total == 1
        assert not page.has_more

    @pytest.mark.asyncio
    async def test_search_and_sort(self, platform, alice, bob, publish):
        await publish(alice, title="Cooking pasta")
        await publish(alice, title="Gardening")
        liked = await publish(bob, title="PASTA sauce")
        await platform.likes.toggle_video_like(alice["id"], liked["id"])

        page = await platform.videos.list_videos(query="pasta", sort_by="likes", sort_type="desc")
        assert [v["title"] for v in page.items] == ["PASTA sauce", "Cooking pasta"]

        own = await platform.videos.list_videos(user_id=alice["id"], sort_by="title", sort_type="asc")
        assert [v["title"] for v in own.items] == ["Cooking pasta", "Gardening"]

    @pytest.mark.asyncio
    async def test_unknown_sort_field(self, platform):
        with pytest.raises(InvalidArgumentError):
            await platform.videos.list_videos(sort_by="video_file")

    @pytest.mark.asyncio
    async def test_publish_stores_media(self, platform, media_store, alice, publish):
        video = await publish(alice)
        assert video["owner"] == alice["id"]
        assert video["views"] == 0
        assert video["is_published"] is True
        assert media_store.contains(video["video_file"])
        assert media_store.contains(video["thumbnail"])

    @pytest.mark.asyncio
    async def test_publish_requires_fields(self, platform, media_store, alice):
        with pytest.raises(InvalidArgumentError):
            await platform.videos.publish_video(alice["id"], "", "desc", b"v", b"t")
        assert media_store.object_count == 0

    @pytest.mark.asyncio
    async def test_publish_upload_failure(self, platform, media_store, alice, publish):
        media_store.fail_uploads = True
        with pytest.raises(InternalError):
            await publish(alice)
        assert (await platform.videos.list_videos()).total == 0

    @pytest.mark.asyncio
    async def test_publish_store_failure_discards_media(
        self, platform, media_store, alice, publish, monkeypatch
    ):
        """Uploads are deleted again when the video cannot be stored."""

        async def failing_create(**kwargs):
            raise sqlite3.OperationalError("disk I/O error")

        monkeypatch.setattr(platform.store, "create_entity", failing_create)
        with pytest.raises(InternalError):
            await publish(alice)
        assert media_store.object_count == 0

    @pytest.mark.asyncio
    async def test_get_video_counts_views(self, platform, alice, bob, publish):
        video = await publish(alice)
        await platform.videos.get_video_by_id(video["id"])
        detail = await platform.videos.get_video_by_id(video["id"], bob["id"])
        assert detail["views"] == 2
        assert detail["owner"]["username"] == "alice"
        assert detail["comments"] == 0

    @pytest.mark.asyncio
    async def test_unpublished_video_hidden(self, platform, alice, bob, publish):
        video = await publish(alice)
        toggled = await platform.videos.toggle_publish_status(alice["id"], video["id"])
        assert toggled["is_published"] is False

        assert (await platform.videos.list_videos()).items == []
        with pytest.raises(NotFoundError):
            await platform.videos.get_video_by_id(video["id"], bob["id"])
        assert (await platform.videos.get_video_by_id(video["id"], alice["id"]))["id"] == video["id"]

        everything = await platform.videos.list_videos(
            user_id=alice["id"], published_only=False, actor_id=alice["id"]
        )
        assert everything.total == 1

    @pytest.mark.asyncio
    async def test_unpublished_hidden_from_other_lists(self, platform, alice, bob, publish):
        """Non-owners never see unpublished videos in list views."""
        secret = await publish(alice, title="Secret")
        await publish(bob, title="Draft")
        await platform.likes.toggle_video_like(bob["id"], secret["id"])
        await platform.videos.toggle_publish_status(alice["id"], secret["id"])
        drafts = await platform.videos.list_videos(user_id=bob["id"])
        await platform.videos.toggle_publish_status(bob["id"], drafts.items[0]["id"])

        as_bob = await platform.videos.list_videos(published_only=False, actor_id=bob["id"])
        assert [v["title"] for v in as_bob.items] == ["Draft"]

        anonymous = await platform.videos.list_videos(published_only=False)
        assert anonymous.items == []

        liked = await platform.likes.get_liked_videos(bob["id"])
        assert liked.items == []

        # the like survives and shows again once republished
        await platform.videos.toggle_publish_status(alice["id"], secret["id"])
        liked = await platform.likes.get_liked_videos(bob["id"])
        assert [v["title"] for v in liked.items] == ["Secret"]

    @pytest.mark.asyncio
    async def test_toggle_publish_owner_only(self, platform, alice, bob, publish):
        video = await publish(alice)
        with pytest.raises(UnauthorizedError):
            await platform.videos.toggle_publish_status(bob["id"], video["id"])

    @pytest.mark.asyncio
    async def test_update_replaces_thumbnail(self, platform, media_store, alice, publish):
        video = await publish(alice)
        updated = await platform.videos.update_video(
            alice["id"], video["id"], title="Renamed", thumbnail=b"new image"
        )
        assert updated["title"] == "Renamed"
        assert updated["description"] == video["description"]
        assert updated["thumbnail"] != video["thumbnail"]
        assert media_store.contains(updated["thumbnail"])
        assert video["thumbnail"] in media_store.deleted

    @pytest.mark.asyncio
    async def test_update_thumbnail_cleanup_failure_is_recorded(
        self, platform, media_store, alice, publish
    ):
        """A stuck old thumbnail does not fail the update."""
        video = await publish(alice)
        media_store.fail_deletes = True
        await platform.videos.update_video(alice["id"], video["id"], thumbnail=b"new")

        stats = await platform.store.get_stats()
        assert stats["pending_reconciliations"] == 1

    @pytest.mark.asyncio
    async def test_non_owner_update_unauthorized_regardless_of_payload(
        self, platform, alice, bob, publish
    ):
        video = await publish(alice)
        with pytest.raises(UnauthorizedError):
            await platform.videos.update_video(bob["id"], video["id"], title="")
        with pytest.raises(UnauthorizedError):
            await platform.videos.delete_video(bob["id"], video["id"])

    @pytest.mark.asyncio
    async def test_delete_video_cascades(self, platform, media_store, alice, bob, publish):
        """Deleting a video with 3 comments and 5 likes removes all 8."""
        video = await publish(alice)
        fans = [
            await platform.users.register_user(f"fan{i}", f"Fan {i}", f"fan{i}@example.com")
            for i in range(5)
        ]
        for fan in fans:
            await platform.likes.toggle_video_like(fan["id"], video["id"])
        for text in ("one", "two", "three"):
            await platform.comments.add_comment(bob["id"], video["id"], text)

        report = await platform.videos.delete_video(alice["id"], video["id"])
        assert report.children_removed == 3
        assert report.edges_removed == 5
        assert sorted(report.media_released) == sorted([video["video_file"], video["thumbnail"]])

        comments = await platform.comments.get_video_comments(video["id"])
        assert comments.items == []
        stats = await platform.store.get_stats()
        assert stats["comment"] == 0
        assert stats["like_edges"] == 0
        assert media_store.object_count == 0

        with pytest.raises(NotFoundError):
            await platform.videos.get_video_by_id(video["id"])

    @pytest.mark.asyncio
    async def test_delete_missing_video(self, platform, alice, publish):
        """Deleting a nonexistent video, or deleting twice, is NotFound."""
        with pytest.raises(NotFoundError):
            await platform.videos.delete_video(alice["id"], _missing_id())

        video = await publish(alice)
        await platform.videos.delete_video(alice["id"], video["id"])
        with pytest.raises(NotFoundError):
            await platform.videos.delete_video(alice["id"], video["id"])

    @pytest.mark.asyncio
    async def test_delete_removes_playlist_entries(self, platform, alice, bob, publish):
        video = await publish(alice)
        playlist = await platform.playlists.create_playlist(bob["id"], "Saved")
        await platform.playlists.add_video_to_playlist(bob["id"], playlist["id"], video["id"])

        report = await platform.videos.delete_video(alice["id"], video["id"])
        assert report.entries_removed == 1

        kept = await platform.playlists.get_playlist_by_id(bob["id"], playlist["id"])
        assert kept["videos"] == []


class TestReconciliation:
    """Tests for cascade failures and reconciliation."""

    @pytest.mark.asyncio
    async def test_media_failure_recorded_and_reconciled(
        self, platform, media_store, alice, publish
    ):
        video = await publish(alice)
        media_store.fail_deletes = True

        with pytest.raises(InternalError) as exc_info:
            await platform.videos.delete_video(alice["id"], video["id"])
        entry_id = exc_info.value.reconciliation_id
        assert entry_id is not None

        # the database side is complete
        with pytest.raises(NotFoundError):
            await platform.videos.get_video_by_id(video["id"], alice["id"])

        entry = await platform.store.get_reconciliation(entry_id)
        assert entry.stage == "media"
        assert {p["locator"] for p in entry.pending} == {video["video_file"], video["thumbnail"]}

        still_failing = await platform.cascade.reconcile_pending()
        assert still_failing.remaining == 1

        media_store.fail_deletes = False
        summary = await platform.cascade.reconcile_pending()
        assert summary.resolved == 1
        assert summary.remaining == 0
        assert media_store.object_count == 0

        entry = await platform.store.get_reconciliation(entry_id)
        assert entry.resolved_at is not None
        assert entry.attempts == 2

    @pytest.mark.asyncio
    async def test_store_failure_recorded_and_reconciled(
        self, platform, media_store, alice, publish, monkeypatch
    ):
        """A failed store cascade is rerun by reconciliation."""
        video = await publish(alice)
        original = platform.store.run_cascade
        calls = []

        async def flaky_cascade(*args, **kwargs):
            calls.append(args)
            if len(calls) == 1:
                raise sqlite3.OperationalError("database is locked")
            return await original(*args, **kwargs)

        monkeypatch.setattr(platform.store, "run_cascade", flaky_cascade)

        with pytest.raises(InternalError) as exc_info:
            await platform.videos.delete_video(alice["id"], video["id"])
        entry = await platform.store.get_reconciliation(exc_info.value.reconciliation_id)
        assert entry.stage == "store"

        # nothing was deleted
        assert (await platform.videos.list_videos()).total == 1

        summary = await platform.cascade.reconcile_pending()
        assert summary.resolved == 1
        assert (await platform.videos.list_videos()).total == 0
        assert media_store.object_count == 0


class TestComments:
    """Tests for CommentService."""

    @pytest.mark.asyncio
    async def test_add_and_list(self, platform, alice, bob, publish):
        video = await publish(alice)
        await platform.comments.add_comment(bob["id"], video["id"], "First")
        await platform.comments.add_comment(alice["id"], video["id"], "Second")

        first_page = await platform.comments.get_video_comments(video["id"], page=1, limit=1)
        assert len(first_page.items) == 1
        assert first_page.total == 2
        assert first_page.has_more

        page = await platform.comments.get_video_comments(video["id"], limit=10)
        by_content = {c["content"]: c for c in page.items}
        assert set(by_content) == {"First", "Second"}
        assert by_content["First"]["owner"]["username"] == "bob"
        assert by_content["Second"]["video"] == video["id"]

    @pytest.mark.asyncio
    async def test_comment_on_missing_video(self, platform, alice):
        with pytest.raises(NotFoundError):
            await platform.comments.add_comment(alice["id"], _missing_id(), "Hello?")

    @pytest.mark.asyncio
    async def test_blank_comment(self, platform, alice, publish):
        video = await publish(alice)
        with pytest.raises(InvalidArgumentError):
            await platform.comments.add_comment(alice["id"], video["id"], "  ")

    @pytest.mark.asyncio
    async def test_blank_comment_on_missing_video(self, platform, alice):
        """Invalid content is reported before the video is looked up."""
        with pytest.raises(InvalidArgumentError):
            await platform.comments.add_comment(alice["id"], _missing_id(), "")

    @pytest.mark.asyncio
    async def test_update_by_non_owner(self, platform, alice, bob, publish):
        """A non-owner cannot edit someone else's comment."""
        video = await publish(alice)
        comment = await platform.comments.add_comment(alice["id"], video["id"], "Mine")

        with pytest.raises(UnauthorizedError):
            await platform.comments.update_comment(bob["id"], comment["id"], "Hijacked")

        updated = await platform.comments.update_comment(alice["id"], comment["id"], "Edited")
        assert updated["content"] == "Edited"

    @pytest.mark.asyncio
    async def test_delete_comment_removes_likes(self, platform, alice, bob, publish):
        video = await publish(alice)
        comment = await platform.comments.add_comment(alice["id"], video["id"], "Mine")
        await platform.likes.toggle_comment_like(bob["id"], comment["id"])

        report = await platform.comments.delete_comment(alice["id"], comment["id"])
        assert report.edges_removed == 1
        assert (await platform.store.get_stats())["like_edges"] == 0

        with pytest.raises(NotFoundError):
            await platform.comments.delete_comment(alice["id"], comment["id"])


class TestPosts:
    """Tests for PostService."""

    @pytest.mark.asyncio
    async def test_post_lifecycle(self, platform, alice, bob):
        post = await platform.posts.create_post(alice["id"], "Hello world")
        assert post["owner"] == alice["id"]

        with pytest.raises(UnauthorizedError):
            await platform.posts.update_post(bob["id"], post["id"], "")

        updated = await platform.posts.update_post(alice["id"], post["id"], "Hello again")
        assert updated["content"] == "Hello again"

        await platform.likes.toggle_post_like(bob["id"], post["id"])
        report = await platform.posts.delete_post(alice["id"], post["id"])
        assert report.edges_removed == 1
        assert (await platform.posts.get_user_posts(alice["id"])).items == []

    @pytest.mark.asyncio
    async def test_posts_of_missing_user(self, platform):
        with pytest.raises(NotFoundError):
            await platform.posts.get_user_posts(_missing_id())

    @pytest.mark.asyncio
    async def test_blank_post_by_missing_user(self, platform):
        """Invalid content is reported before the author is looked up."""
        with pytest.raises(InvalidArgumentError):
            await platform.posts.create_post(_missing_id(), "   ")


class TestPlaylists:
    """Tests for PlaylistService."""

    @pytest.mark.asyncio
    async def test_blank_name_rejected(self, platform, alice):
        with pytest.raises(InvalidArgumentError):
            await platform.playlists.create_playlist(alice["id"], name="", description="")

    @pytest.mark.asyncio
    async def test_private_read(self, platform, alice, bob):
        """Only the owner can read a playlist by id."""
        playlist = await platform.playlists.create_playlist(alice["id"], "Mine")
        with pytest.raises(UnauthorizedError):
            await platform.playlists.get_playlist_by_id(bob["id"], playlist["id"])

        own = await platform.playlists.get_playlist_by_id(alice["id"], playlist["id"])
        assert own["name"] == "Mine"

    @pytest.mark.asyncio
    async def test_missing_playlist_is_not_found(self, platform, bob):
        """Existence is checked before ownership."""
        with pytest.raises(NotFoundError):
            await platform.playlists.get_playlist_by_id(bob["id"], _missing_id())

    @pytest.mark.asyncio
    async def test_entries(self, platform, alice, bob, publish):
        first = await publish(bob, title="First")
        second = await publish(bob, title="Second")
        playlist = await platform.playlists.create_playlist(alice["id"], "Mix", "Favourites")

        await platform.playlists.add_video_to_playlist(alice["id"], playlist["id"], first["id"])
        doc = await platform.playlists.add_video_to_playlist(
            alice["id"], playlist["id"], second["id"]
        )
        assert [v["title"] for v in doc["videos"]] == ["First", "Second"]

        with pytest.raises(InvalidArgumentError):
            await platform.playlists.add_video_to_playlist(alice["id"], playlist["id"], first["id"])
        with pytest.raises(UnauthorizedError):
            await platform.playlists.add_video_to_playlist(bob["id"], playlist["id"], first["id"])
        with pytest.raises(NotFoundError):
            await platform.playlists.add_video_to_playlist(
                alice["id"], playlist["id"], _missing_id()
            )

        doc = await platform.playlists.remove_video_from_playlist(
            alice["id"], playlist["id"], first["id"]
        )
        assert [v["title"] for v in doc["videos"]] == ["Second"]
        with pytest.raises(InvalidArgumentError):
            await platform.playlists.remove_video_from_playlist(
                alice["id"], playlist["id"], first["id"]
            )

    @pytest.mark.asyncio
    async def test_update_and_delete(self, platform, alice, publish):
        video = await publish(alice)
        playlist = await platform.playlists.create_playlist(alice["id"], "Old")
        await platform.playlists.add_video_to_playlist(alice["id"], playlist["id"], video["id"])

        updated = await platform.playlists.update_playlist(alice["id"], playlist["id"], name="New")
        assert updated["name"] == "New"
        assert len(updated["videos"]) == 1

        report = await platform.playlists.delete_playlist(alice["id"], playlist["id"])
        assert report.entries_removed == 1
        assert (await platform.playlists.get_user_playlists(alice["id"])).items == []
        # the video is untouched
        assert (await platform.videos.list_videos()).total == 1


class TestUsers:
    """Tests for UserService."""

    @pytest.mark.asyncio
    async def test_duplicate_username(self, platform, alice):
        with pytest.raises(ConflictError) as exc_info:
            await platform.users.register_user("ALICE", "Other", "other@example.com")
        assert exc_info.value.details["field"] == "username"

    @pytest.mark.asyncio
    async def test_duplicate_email(self, platform, alice):
        with pytest.raises(ConflictError) as exc_info:
            await platform.users.register_user("alice2", "Other", "Alice@Example.com")
        assert exc_info.value.details["field"] == "email"

    @pytest.mark.asyncio
    async def test_invalid_registration(self, platform):
        with pytest.raises(InvalidArgumentError):
            await platform.users.register_user("", "Nobody", "nobody@example.com")
