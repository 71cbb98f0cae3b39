"""Tests for the record, mutation and snapshot models."""

from datetime import datetime, timezone

from offline_sync.sync.schemas import (
    CachedRecord,
    CacheSnapshot,
    LinkedRecord,
    MutationType,
    PendingMutation,
    SyncResult,
)


class TestCachedRecord:
    """Projection and normalization of cached records."""

    def test_transcripts_are_projected_away(self):
        """Transcript fields never reach the cache."""
        record = CachedRecord.model_validate(
            {
                "Id": 1,
                "Title": "Keynote",
                "FullTranscript": "x" * 5000,
                "Transcript": "y" * 5000,
            }
        )

        stored = record.to_storage()
        assert "FullTranscript" not in stored
        assert "Transcript" not in stored
        assert stored["Title"] == "Keynote"

    def test_unknown_fields_are_kept(self):
        """Extra remote columns survive a storage round trip."""
        record = CachedRecord.model_validate({"Id": 1, "Language": "en"})

        assert record.to_storage()["Language"] == "en"

    def test_hashtags_string_is_split(self):
        """Comma separated hashtags become a list."""
        record = CachedRecord.model_validate({"Id": 1, "Hashtags": "ai, python ,,ml"})

        assert record.hashtags == ["ai", "python", "ml"]

    def test_linked_records_are_normalized(self):
        """Plain names and null lists turn into linked records."""
        record = CachedRecord.model_validate(
            {
                "Id": 1,
                "Persons": ["Ada Lovelace", {"Id": 7, "Title": "Alan Turing"}],
                "Companies": None,
            }
        )

        assert [p.display_name for p in record.persons] == ["Ada Lovelace", "Alan Turing"]
        assert record.companies == []

    def test_linked_record_falls_back_to_name(self):
        """Entities without a Title are displayed by name."""
        assert LinkedRecord(name="Grace Hopper").display_name == "Grace Hopper"

    def test_naive_publish_time_is_utc(self):
        """Naive timestamps are read as UTC."""
        record = CachedRecord.model_validate({"Id": 1, "PublishedAt": "2024-02-01T10:00:00"})

        assert record.published_at == datetime(2024, 2, 1, 10, 0, tzinfo=timezone.utc)

    def test_with_changes_keeps_identity(self):
        """Applying changes never alters the record id."""
        record = CachedRecord.model_validate({"Id": 3, "Title": "Old", "Watched": False})

        changed = record.with_changes({"Title": "New", "Watched": True, "Id": 99})

        assert changed.id == 3
        assert changed.title == "New"
        assert changed.watched is True
        assert record.title == "Old"

    def test_serialized_size_grows_with_content(self):
        """Size estimate follows the JSON length."""
        small = CachedRecord.model_validate({"Id": 1, "Description": "a"})
        large = CachedRecord.model_validate({"Id": 1, "Description": "a" * 1000})

        assert large.serialized_size() - small.serialized_size() == 999


class TestPendingMutation:
    """Wire format of queued mutations."""

    def test_to_wire_uses_endpoint_names(self):
        """Mutations serialize with the sync endpoint's field names."""
        mutation = PendingMutation(
            id="mutation_1_abc",
            type=MutationType.UPDATE,
            target_id=5,
            payload={"Watched": True},
            timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )

        wire = mutation.to_wire()

        assert wire["videoId"] == 5
        assert wire["data"] == {"Watched": True}
        assert wire["retryCount"] == 0
        assert wire["type"] == "UPDATE"

    def test_naive_timestamp_is_utc(self):
        """Naive timestamps are read as UTC."""
        mutation = PendingMutation(
            id="m", type=MutationType.DELETE, target_id=1, timestamp=datetime(2024, 1, 1)
        )

        assert mutation.timestamp.tzinfo is timezone.utc


class TestSnapshotAndResult:
    """Sync endpoint responses."""

    def test_snapshot_parses_epoch_millis(self):
        """The snapshot timestamp arrives in epoch milliseconds."""
        snapshot = CacheSnapshot.model_validate(
            {"videos": [{"Id": 1}], "timestamp": 1704067200000, "totalAvailable": 10}
        )

        assert snapshot.timestamp == datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert snapshot.total_available == 10
        assert snapshot.videos[0].id == 1

    def test_sync_result_aliases(self):
        """Sync summaries serialize in camelCase."""
        result = SyncResult(videos_updated=2, mutations_synced=1)

        dumped = result.model_dump(by_alias=True)

        assert dumped["videosUpdated"] == 2
        assert dumped["mutationsSynced"] == 1
        assert dumped["errors"] == []
