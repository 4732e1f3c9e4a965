"""Unit tests for the entry model and identity derivation."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from rss_ingest.core.models import FeedDescriptor, FeedEntry, identity


class TestIdentity:
    """Tests for identity priority guid > url > title+timestamp."""

    def test_guid_wins(self):
        entry = FeedEntry(feed_id="f", title="T", url="https://e/1", guid="abc")
        assert identity(entry) == "guid:abc"

    def test_empty_guid_falls_back_to_url(self):
        entry = FeedEntry(feed_id="f", title="T", url="https://e/1", guid="")
        assert identity(entry) == "url:https://e/1"

    def test_title_and_timestamp_fallback(self):
        published = datetime(2024, 10, 21, 7, 28, tzinfo=timezone.utc)
        entry = FeedEntry(feed_id="f", title="Hello", published_at=published)
        assert identity(entry) == f"title:Hello@{int(published.timestamp())}"

    def test_title_without_date_uses_zero(self):
        entry = FeedEntry(feed_id="f", title="Hello")
        assert identity(entry) == "title:Hello@0"

    def test_identity_ignores_other_fields(self):
        a = FeedEntry(feed_id="f", title="Old title", url="https://e/1", guid="g")
        b = FeedEntry(feed_id="f", title="New title", url="https://e/2", guid="g", summary="changed")
        assert identity(a) == identity(b)
        assert a != b

    def test_property_matches_function(self):
        entry = FeedEntry(feed_id="f", url="https://e/1")
        assert entry.identity == identity(entry)


class TestImmutability:
    """Entries and descriptors are frozen."""

    def test_entry_is_frozen(self):
        entry = FeedEntry(feed_id="f", title="T")
        with pytest.raises(ValidationError):
            entry.title = "changed"

    def test_descriptor_is_frozen(self):
        feed = FeedDescriptor(id="f", title="T", url="https://e/feed")
        with pytest.raises(ValidationError):
            feed.url = "https://other/feed"

    def test_entry_round_trips_through_json(self):
        published = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        entry = FeedEntry(feed_id="f", title="T", guid="g", published_at=published)
        restored = FeedEntry.model_validate(entry.model_dump(mode="json"))
        assert restored == entry
