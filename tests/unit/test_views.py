"""
Unit tests for the aggregated read views.

Run against an in-memory SQLite database; users and videos are created
directly in the store through the conftest factories.
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from core.exceptions import NotFoundError, ValidationError
from core.models import (
    Comment,
    Like,
    Playlist,
    PlaylistVideo,
    Tweet,
    WatchHistoryEntry,
    new_id,
)
from services import views
from services.toggle import SUBSCRIPTION, TWEET_LIKE, VIDEO_LIKE, toggle_relation


async def _count(session, model, *criteria):
    result = await session.execute(select(func.count()).select_from(model).where(*criteria))
    return result.scalar_one()


@pytest.mark.unit
class TestVideoListing:
    async def test_pagination_metadata(self, session, make_user, make_video):
        owner = await make_user("alice")
        for _ in range(25):
            await make_video(owner.id)

        first = await views.list_videos(session, page=1, limit=10)
        last = await views.list_videos(session, page=3, limit=10)

        assert len(first["docs"]) == 10
        assert first["total_docs"] == 25
        assert first["total_pages"] == 3
        assert first["has_next_page"] is True
        assert first["has_prev_page"] is False
        assert first["next_page"] == 2
        assert first["prev_page"] is None
        assert first["paging_counter"] == 1

        assert len(last["docs"]) == 5
        assert last["has_next_page"] is False
        assert last["prev_page"] == 2
        assert last["paging_counter"] == 21

    async def test_empty_listing_has_one_page(self, session):
        result = await views.list_videos(session)

        assert result["docs"] == []
        assert result["total_docs"] == 0
        assert result["total_pages"] == 1
        assert result["has_next_page"] is False

    async def test_default_sort_is_newest_first(self, session, make_user, make_video):
        owner = await make_user("alice")
        older = await make_video(owner.id, title="older")
        newer = await make_video(owner.id, title="newer")

        result = await views.list_videos(session)

        assert [doc["id"] for doc in result["docs"]] == [newer.id, older.id]

    async def test_sort_by_views_ascending(self, session, make_user, make_video):
        owner = await make_user("alice")
        popular = await make_video(owner.id, views=100)
        quiet = await make_video(owner.id, views=1)

        result = await views.list_videos(session, sort_by="views", sort_type="asc")

        assert [doc["id"] for doc in result["docs"]] == [quiet.id, popular.id]

    async def test_invalid_sort_field_rejected(self, session):
        with pytest.raises(ValidationError):
            await views.list_videos(session, sort_by="password_hash")

    async def test_unpublished_videos_are_hidden(self, session, make_user, make_video):
        owner = await make_user("alice")
        await make_video(owner.id, is_published=False)
        visible = await make_video(owner.id)

        result = await views.list_videos(session)

        assert [doc["id"] for doc in result["docs"]] == [visible.id]

    async def test_search_matches_title_and_description(self, session, make_user, make_video):
        owner = await make_user("alice")
        by_title = await make_video(owner.id, title="Cooking pasta")
        by_description = await make_video(owner.id, description="how to cook PASTA fast")
        await make_video(owner.id, title="Gardening")

        result = await views.list_videos(session, query="pasta")

        assert {doc["id"] for doc in result["docs"]} == {by_title.id, by_description.id}

    async def test_search_wildcards_are_plain_text(self, session, make_user, make_video):
        owner = await make_user("alice")
        await make_video(owner.id, title="cats")
        await make_video(owner.id, title="dogs")

        assert (await views.list_videos(session, query="%"))["total_docs"] == 0
        assert (await views.list_videos(session, query="_"))["total_docs"] == 0

        discounted = await make_video(owner.id, title="50% off")
        result = await views.list_videos(session, query="%")

        assert [doc["id"] for doc in result["docs"]] == [discounted.id]

    async def test_owner_filter(self, session, make_user, make_video):
        alice = await make_user("alice")
        bob = await make_user("bob")
        mine = await make_video(alice.id)
        await make_video(bob.id)

        result = await views.list_videos(session, owner_id=alice.id)

        assert [doc["id"] for doc in result["docs"]] == [mine.id]

    async def test_owner_summary_is_flattened(self, session, make_user, make_video):
        owner = await make_user("alice", avatar_url="/media/image/alice.png")
        await make_video(owner.id)

        doc = (await views.list_videos(session))["docs"][0]

        assert doc["owner"] == {
            "id": owner.id,
            "username": "alice",
            "full_name": "Alice",
            "avatar_url": "/media/image/alice.png",
        }

    async def test_video_without_owner_is_kept_with_empty_summary(self, session, make_video):
        orphan = await make_video(new_id())

        result = await views.list_videos(session)

        assert [doc["id"] for doc in result["docs"]] == [orphan.id]
        assert result["docs"][0]["owner"] == {}


@pytest.mark.unit
class TestVideoDetail:
    async def test_each_fetch_counts_one_view(self, session, make_user, make_video):
        owner = await make_user("alice")
        viewer = await make_user("bob")
        video = await make_video(owner.id)

        for expected in (1, 2, 3):
            detail = await views.get_video_detail(session, video.id, viewer.id)
            assert detail["views"] == expected

    async def test_watch_history_records_video_once(self, session, make_user, make_video):
        owner = await make_user("alice")
        viewer = await make_user("bob")
        video = await make_video(owner.id)

        for _ in range(3):
            await views.get_video_detail(session, video.id, viewer.id)

        assert await _count(session, WatchHistoryEntry, WatchHistoryEntry.user_id == viewer.id) == 1

    async def test_anonymous_view_counts_but_has_no_history(self, session, make_user, make_video):
        owner = await make_user("alice")
        video = await make_video(owner.id)

        detail = await views.get_video_detail(session, video.id, None)

        assert detail["views"] == 1
        assert detail["is_liked"] is False
        assert detail["owner"]["is_subscribed"] is False
        assert await _count(session, WatchHistoryEntry) == 0

    async def test_like_and_subscription_fields(self, session, make_user, make_video):
        owner = await make_user("alice")
        viewer = await make_user("bob")
        video = await make_video(owner.id)
        await toggle_relation(session, VIDEO_LIKE, video.id, viewer.id)
        await toggle_relation(session, SUBSCRIPTION, owner.id, viewer.id)

        detail = await views.get_video_detail(session, video.id, viewer.id)

        assert detail["likes_count"] == 1
        assert detail["is_liked"] is True
        assert detail["owner"]["id"] == owner.id
        assert detail["owner"]["subscribers_count"] == 1
        assert detail["owner"]["is_subscribed"] is True

    async def test_missing_video(self, session):
        with pytest.raises(NotFoundError):
            await views.get_video_detail(session, new_id(), None)

    async def test_unpublished_video_visible_to_owner_only(self, session, make_user, make_video):
        owner = await make_user("alice")
        viewer = await make_user("bob")
        video = await make_video(owner.id, is_published=False)

        with pytest.raises(NotFoundError):
            await views.get_video_detail(session, video.id, viewer.id)

        detail = await views.get_video_detail(session, video.id, owner.id)
        assert detail["is_published"] is False


@pytest.mark.unit
class TestCommentsAndTweets:
    async def test_comment_listing(self, session, make_user, make_video):
        owner = await make_user("alice")
        commenter = await make_user("bob")
        video = await make_video(owner.id)
        base = datetime(2024, 1, 2, tzinfo=timezone.utc)
        for i in range(3):
            session.add(
                Comment(
                    content=f"comment {i}",
                    owner_id=commenter.id,
                    video_id=video.id,
                    created_at=base + timedelta(minutes=i),
                )
            )
        await session.commit()

        result = await views.list_video_comments(session, video.id, page=1, limit=2)

        assert result["total_docs"] == 3
        assert [doc["content"] for doc in result["docs"]] == ["comment 2", "comment 1"]
        assert result["docs"][0]["owner"]["username"] == "bob"
        assert result["docs"][0]["likes_count"] == 0
        assert result["docs"][0]["is_liked"] is False

    async def test_comments_of_missing_video(self, session):
        with pytest.raises(NotFoundError):
            await views.list_video_comments(session, new_id())

    async def test_tweet_like_scenario(self, session, make_user):
        u1 = await make_user("alice")
        u2 = await make_user("bob")
        tweet = Tweet(content="hello", owner_id=u1.id)
        session.add(tweet)
        await session.commit()

        tweets = await views.list_user_tweets(session, u1.id, u2.id)
        assert len(tweets) == 1
        assert tweets[0]["likes_count"] == 0
        assert tweets[0]["is_liked"] is False

        await toggle_relation(session, TWEET_LIKE, tweet.id, u2.id)
        tweets = await views.list_user_tweets(session, u1.id, u2.id)
        assert tweets[0]["likes_count"] == 1
        assert tweets[0]["is_liked"] is True

        await toggle_relation(session, TWEET_LIKE, tweet.id, u2.id)
        tweets = await views.list_user_tweets(session, u1.id, u2.id)
        assert tweets[0]["likes_count"] == 0
        assert tweets[0]["is_liked"] is False


@pytest.mark.unit
class TestSubscriptionViews:
    async def test_subscriber_scenario(self, session, make_user):
        u1 = await make_user("alice")
        u2 = await make_user("bob")

        await toggle_relation(session, SUBSCRIPTION, u1.id, u2.id)
        subscribers = await views.list_channel_subscribers(session, u1.id)
        assert len(subscribers) == 1
        assert subscribers[0]["id"] == u2.id
        assert subscribers[0]["subscribers_count"] == 0
        assert subscribers[0]["subscribed_to"] is False

        await toggle_relation(session, SUBSCRIPTION, u2.id, u1.id)
        subscribers = await views.list_channel_subscribers(session, u1.id)
        assert subscribers[0]["subscribers_count"] == 1
        assert subscribers[0]["subscribed_to"] is True

    async def test_subscribed_channels_with_latest_video(self, session, make_user, make_video):
        viewer = await make_user("viewer")
        busy = await make_user("busy")
        quiet = await make_user("quiet")
        utc = timezone.utc
        await make_video(busy.id, title="first", created_at=datetime(2024, 1, 1, tzinfo=utc))
        latest = await make_video(busy.id, title="second", created_at=datetime(2024, 2, 1, tzinfo=utc))
        await make_video(
            busy.id, title="draft", created_at=datetime(2024, 3, 1, tzinfo=utc), is_published=False
        )
        await make_video(quiet.id, is_published=False)

        await toggle_relation(session, SUBSCRIPTION, busy.id, viewer.id)
        await toggle_relation(session, SUBSCRIPTION, quiet.id, viewer.id)

        channels = {c["username"]: c for c in await views.list_subscribed_channels(session, viewer.id)}

        assert set(channels) == {"busy", "quiet"}
        assert channels["busy"]["latest_video"]["id"] == latest.id
        assert channels["busy"]["latest_video"]["title"] == "second"
        assert channels["quiet"]["latest_video"] is None


@pytest.mark.unit
class TestPlaylistViews:
    async def test_detail_keeps_insertion_order_and_totals(self, session, make_user, make_video):
        owner = await make_user("alice")
        first = await make_video(owner.id, views=5)
        second = await make_video(owner.id, views=7)
        playlist = Playlist(owner_id=owner.id, name="Favourites")
        session.add(playlist)
        await session.commit()

        # Newer video added first
        session.add(PlaylistVideo(playlist_id=playlist.id, video_id=second.id))
        await session.commit()
        session.add(PlaylistVideo(playlist_id=playlist.id, video_id=first.id))
        await session.commit()

        detail = await views.get_playlist_detail(session, playlist.id)

        assert detail["video_count"] == 2
        assert detail["total_views"] == 12
        assert detail["owner"]["username"] == "alice"
        assert [video["id"] for video in detail["videos"]] == [second.id, first.id]
        assert "video_public_id" not in detail["videos"][0]

    async def test_user_playlists(self, session, make_user, make_video):
        owner = await make_user("alice")
        video = await make_video(owner.id, views=3)
        empty = Playlist(owner_id=owner.id, name="Empty")
        full = Playlist(owner_id=owner.id, name="Full")
        session.add_all([empty, full])
        await session.commit()
        session.add(PlaylistVideo(playlist_id=full.id, video_id=video.id))
        await session.commit()

        playlists = {p["name"]: p for p in await views.list_user_playlists(session, owner.id)}

        assert playlists["Empty"]["video_count"] == 0
        assert playlists["Empty"]["total_views"] == 0
        assert playlists["Full"]["video_count"] == 1
        assert playlists["Full"]["total_views"] == 3

    async def test_missing_playlist(self, session):
        with pytest.raises(NotFoundError):
            await views.get_playlist_detail(session, new_id())


@pytest.mark.unit
class TestDashboardViews:
    async def test_channel_stats_all_zero(self, session, make_user):
        owner = await make_user("alice")

        stats = await views.get_channel_stats(session, owner.id)

        assert stats == {
            "total_views": 0,
            "total_likes": 0,
            "total_videos": 0,
            "total_subscribers": 0,
        }

    async def test_channel_stats(self, session, make_user, make_video):
        owner = await make_user("alice")
        fan = await make_user("bob")
        other = await make_user("carol")
        video = await make_video(owner.id, views=10)
        await make_video(owner.id, views=5, is_published=False)
        foreign = await make_video(other.id, views=99)

        await toggle_relation(session, VIDEO_LIKE, video.id, fan.id)
        await toggle_relation(session, VIDEO_LIKE, video.id, other.id)
        await toggle_relation(session, VIDEO_LIKE, foreign.id, fan.id)
        await toggle_relation(session, SUBSCRIPTION, owner.id, fan.id)

        stats = await views.get_channel_stats(session, owner.id)

        assert stats == {
            "total_views": 15,
            "total_likes": 2,
            "total_videos": 2,
            "total_subscribers": 1,
        }

    async def test_channel_videos_include_unpublished(self, session, make_user, make_video):
        owner = await make_user("alice")
        draft = await make_video(owner.id, is_published=False)
        live = await make_video(owner.id)

        videos = await views.list_channel_videos(session, owner.id)

        assert [v["id"] for v in videos] == [live.id, draft.id]
        assert all(v["likes_count"] == 0 for v in videos)

    async def test_liked_videos_and_history(self, session, make_user, make_video):
        owner = await make_user("alice")
        viewer = await make_user("bob")
        first = await make_video(owner.id)
        second = await make_video(owner.id)

        await views.get_video_detail(session, second.id, viewer.id)
        await views.get_video_detail(session, first.id, viewer.id)
        await views.get_video_detail(session, second.id, viewer.id)
        await toggle_relation(session, VIDEO_LIKE, first.id, viewer.id)

        history = await views.get_watch_history(session, viewer.id)
        liked = await views.list_liked_videos(session, viewer.id)

        assert [v["id"] for v in history] == [second.id, first.id]
        assert [v["id"] for v in liked] == [first.id]
        assert liked[0]["owner"]["username"] == "alice"
        assert await _count(session, Like, Like.liked_by == viewer.id) == 1
