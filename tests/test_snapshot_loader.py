import hashlib
import json
from datetime import datetime, timedelta, timezone

import pytest

from coursecatalog.core.errors import SnapshotFormatError, SnapshotNotFoundError
from coursecatalog.services.snapshot import checksum, load_snapshot, parse_timestamp, parse_timestamps


def test_first_existing_path_wins(tmp_path, snapshot_data, write_snapshot):
    second = write_snapshot(snapshot_data, tmp_path / "second.json")
    third = write_snapshot({**snapshot_data, "version": "9.9.9"}, tmp_path / "third.json")

    loaded = load_snapshot([tmp_path / "missing.json", second, third])

    assert loaded.path == second
    assert loaded.version == "1.0.0"


def test_checksum_is_sha256_prefix_of_raw_text(snapshot_data, write_snapshot):
    path = write_snapshot(snapshot_data)
    raw = path.read_text(encoding="utf-8")

    loaded = load_snapshot([path])

    assert loaded.checksum == hashlib.sha256(raw.encode("utf-8")).hexdigest()[:16]
    assert loaded.checksum == checksum(raw)
    assert len(loaded.checksum) == 16


def test_timestamps_are_parsed_on_every_array(snapshot_data, write_snapshot):
    snapshot_data["lessons"][0]["updatedAt"] = "2024-04-01T08:00:00Z"
    loaded = load_snapshot([write_snapshot(snapshot_data)])

    created = loaded.data["courses"][0]["createdAt"]
    assert created == datetime(2024, 3, 5, 14, 30, tzinfo=timezone.utc)
    assert loaded.data["lessons"][0]["updatedAt"] == datetime(2024, 4, 1, 8, 0, tzinfo=timezone.utc)
    # Non-timestamp fields are left alone.
    assert loaded.data["courses"][0]["title"] == "Florida Real Estate 14-Hour CE"


def test_no_candidate_path_raises_not_found(tmp_path):
    with pytest.raises(SnapshotNotFoundError) as exc:
        load_snapshot([tmp_path / "a.json", tmp_path / "b.json"])
    assert "a.json" in str(exc.value)
    assert exc.value.stage == "LOAD"


def test_non_object_snapshot_is_rejected(tmp_path):
    path = tmp_path / "catalogSnapshot.json"
    path.write_text(json.dumps([1, 2, 3]), encoding="utf-8")
    with pytest.raises(SnapshotFormatError):
        load_snapshot([path])


def test_invalid_json_is_rejected(tmp_path):
    path = tmp_path / "catalogSnapshot.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(SnapshotFormatError):
        load_snapshot([path])


class TestParseTimestamp:
    def test_offset_is_preserved_as_same_instant(self):
        parsed = parse_timestamp("2024-03-05T09:30:00-05:00")
        assert parsed == datetime(2024, 3, 5, 14, 30, tzinfo=timezone.utc)
        assert parsed.utcoffset() == timedelta(hours=-5)

    def test_naive_string_is_taken_as_utc(self):
        assert parse_timestamp("2024-03-05T14:30:00").tzinfo is not None

    def test_epoch_milliseconds(self):
        assert parse_timestamp(0) == datetime(1970, 1, 1, tzinfo=timezone.utc)

    def test_unparseable_value_is_returned_untouched(self):
        assert parse_timestamp("yesterday") == "yesterday"
        assert parse_timestamp(None) is None

    def test_parse_timestamps_does_not_mutate_input(self):
        record = {"id": "x", "createdAt": "2024-01-01T00:00:00Z"}
        out = parse_timestamps(record)
        assert isinstance(out["createdAt"], datetime)
        assert record["createdAt"] == "2024-01-01T00:00:00Z"
