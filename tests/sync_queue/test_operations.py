"""
Tests for sync_queue/operations.py - payload encoding and queue statistics.
"""

import json
from dataclasses import dataclass
from datetime import datetime, timezone

import pytest
from pydantic import BaseModel

from sync_queue.operations import (
    PayloadEncodingError,
    encode_payload,
    get_failed_items,
    get_stats,
)


class TestEncodePayload:
    def test_dict_becomes_json(self):
        assert json.loads(encode_payload({"title": "Leg Day"})) == {"title": "Leg Day"}

    def test_none_becomes_empty_object(self):
        assert encode_payload(None) == "{}"

    def test_json_text_passes_through(self):
        assert encode_payload('{"title":"Leg Day"}') == '{"title":"Leg Day"}'

    def test_utf8_bytes_decoded(self):
        assert encode_payload('{"title": "Día de pierna"}'.encode("utf-8")) == '{"title": "Día de pierna"}'

    def test_pydantic_model(self):
        class Metric(BaseModel):
            weight: float
            unit: str

        assert json.loads(encode_payload(Metric(weight=80.5, unit="kg"))) == {"weight": 80.5, "unit": "kg"}

    def test_dataclass(self):
        @dataclass
        class Profile:
            name: str
            height_cm: int

        assert json.loads(encode_payload(Profile("Sam", 180))) == {"name": "Sam", "height_cm": 180}

    def test_datetimes_encoded_as_iso8601(self):
        when = datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)
        assert json.loads(encode_payload({"at": when})) == {"at": "2024-01-15T10:00:00+00:00"}

    def test_invalid_json_text_rejected(self):
        with pytest.raises(PayloadEncodingError):
            encode_payload("{not json")

    def test_invalid_utf8_rejected(self):
        with pytest.raises(PayloadEncodingError):
            encode_payload(b"\xff\xfe")

    def test_unserializable_object_rejected(self):
        with pytest.raises(PayloadEncodingError):
            encode_payload({"x": object()})


class TestStats:
    def test_empty_queue(self, store, fake_clock):
        assert get_stats(store, clock=fake_clock) == {
            'pending': 0, 'waiting': 0, 'failed': 0, 'total': 0,
        }

    def test_counts_each_state(self, store, make_item, fake_clock):
        store.save(make_item(entity_id="ready"))
        store.save(make_item(entity_id="waiting", retry_count=1, next_attempt_at=fake_clock() + 60))
        store.save(make_item(entity_id="failed", retry_count=5))

        assert get_stats(store, clock=fake_clock) == {
            'pending': 1, 'waiting': 1, 'failed': 1, 'total': 3,
        }

    def test_get_failed_items(self, store, make_item):
        store.save(make_item(entity_id="ready"))
        store.save(make_item(entity_id="failed", retry_count=5, last_error="boom"))

        failed = get_failed_items(store)

        assert [i.entity_id for i in failed] == ["failed"]
        assert failed[0].last_error == "boom"
