"""Tests for src/adapter/mapping.py — conversions between post shapes."""

from datetime import date

from blogstore.adapter.mapping import (
    draft_to_local,
    draft_to_remote,
    local_to_post,
    local_to_remote_insert,
    remote_to_post,
    update_to_local,
    update_to_remote,
)
from blogstore.posts.models import (
    DEFAULT_READ_TIME,
    LocalPost,
    PostDraft,
    PostUpdate,
    RemotePostRow,
)


class TestToCanonical:
    def test_local_to_post(self):
        local = LocalPost.model_validate(
            {
                "id": 1,
                "title": "T",
                "slug": "t",
                "content": "c",
                "date": "2024-01-01",
                "readTime": "3 min",
            }
        )
        post = local_to_post(local)
        assert post.read_time == "3 min"
        assert post.created_at is None

    def test_remote_null_image_becomes_empty(self):
        row = RemotePostRow(id=1, title="T", slug="t", content="c", date=date(2024, 1, 1))
        assert remote_to_post(row).image == ""


class TestFromCanonical:
    def test_draft_defaults_read_time(self):
        draft = PostDraft(title="T", content="c")
        assert draft_to_local(draft).read_time == DEFAULT_READ_TIME
        assert draft_to_remote(draft).read_time == DEFAULT_READ_TIME

    def test_draft_keeps_read_time(self):
        draft = PostDraft(title="T", content="c", read_time="9 min")
        assert draft_to_remote(draft).read_time == "9 min"

    def test_update_carries_only_set_fields(self):
        update = PostUpdate(title="New", excerpt=None)
        assert update_to_local(update).model_dump(exclude_unset=True) == {"title": "New"}
        assert update_to_remote(update).model_dump(exclude_unset=True) == {"title": "New"}

    def test_update_read_time_lands_under_local_alias(self):
        patch = update_to_local(PostUpdate(read_time="4 min"))
        assert patch.model_dump(by_alias=True, exclude_unset=True) == {"readTime": "4 min"}


class TestMigrationPayload:
    def test_computes_missing_read_time(self):
        local = LocalPost(
            id=1, title="T", slug="t", content="word " * 300, date=date(2024, 1, 1)
        )
        assert local_to_remote_insert(local).read_time == "2 min read"

    def test_keeps_existing_read_time(self):
        local = LocalPost(
            id=1, title="T", slug="t", content="c", date=date(2024, 1, 1), read_time="1 min"
        )
        assert local_to_remote_insert(local).read_time == "1 min"
