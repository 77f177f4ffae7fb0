"""Unit tests for the stored document codec."""

import json

import pytest

from yield_history.domain.models import SeriesRecord
from yield_history.services.history.codec import decode_records, encode_records, point_from_dict


class TestCodec:
    def test_document_layout_uses_api_field_names(self, points, clock):
        record = SeriesRecord("pool-a", tuple(points(1)), clock.now)

        document = json.loads(encode_records({"pool-a": record}))

        assert set(document) == {"pool-a"}
        assert document["pool-a"]["id"] == "pool-a"
        assert document["pool-a"]["fetchedAt"] == "2024-06-01T12:00:00+00:00"
        assert set(document["pool-a"]["points"][0]) == {"timestamp", "tvlUsd", "apy", "apyBase", "apyReward"}

    def test_malformed_record_is_dropped_alone(self, points, clock):
        good = encode_records({"pool-a": SeriesRecord("pool-a", tuple(points(2)), clock.now)})
        document = json.loads(good)
        document["pool-b"] = {"id": "pool-b", "points": []}  # no fetchedAt

        records = decode_records(json.dumps(document))

        assert list(records) == ["pool-a"]

    def test_empty_and_garbage_documents(self):
        assert decode_records(None) == {}
        assert decode_records("") == {}
        assert decode_records("[1, 2]") == {}
        assert decode_records("{oops") == {}

    def test_point_values_are_sanitized(self):
        point = point_from_dict({"timestamp": "2024-06-01T00:00:00.000Z", "tvlUsd": "12.5", "apy": float("nan")})

        assert point.tvl_usd == 12.5
        assert point.apy == 0.0
        assert point.apy_base is None

    def test_point_without_timestamp_is_skipped(self):
        assert point_from_dict({"apy": 1.0}) is None

    @pytest.mark.parametrize("timestamp", ["1700000000", 1700000000, "yesterday"])
    def test_point_with_unparseable_timestamp_is_skipped(self, timestamp):
        assert point_from_dict({"timestamp": timestamp, "tvlUsd": 1.0, "apy": 1.0}) is None

    def test_stored_point_with_bad_timestamp_is_dropped(self, points, clock):
        document = json.loads(encode_records({"pool-a": SeriesRecord("pool-a", tuple(points(2)), clock.now)}))
        document["pool-a"]["points"].append({"timestamp": "1700000000", "tvlUsd": 1.0, "apy": 1.0})

        records = decode_records(json.dumps(document))

        assert len(records["pool-a"].points) == 2
