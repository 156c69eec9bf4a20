"""Unit tests for sync event models"""
import json
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from energy_sync.core.errors import MalformedEventError
from energy_sync.events.models import (
    DeviceCreated,
    DeviceDeleted,
    EventType,
    ProjectionAction,
    UserCreated,
    UserDeleted,
    UserUpdated,
    build_event,
    decode_envelope,
    parse_event,
    parse_measurement,
)


class TestBuildEvent:
    """Events are built per type with the matching payload shape"""

    def test_user_created(self):
        event = build_event(EventType.USER_CREATED, {
            "id": 1, "role": "client", "name": "Ana", "email": "ana@example.com", "avatar_url": None,
        })

        assert isinstance(event, UserCreated)
        assert event.entity_id == 1
        assert event.action == ProjectionAction.CREATE
        assert event.timestamp.tzinfo is not None

    def test_accepts_plain_string_type(self):
        event = build_event("DEVICE_DELETED", {"id": 9})

        assert isinstance(event, DeviceDeleted)
        assert event.action == ProjectionAction.DELETE

    def test_user_deleted_carries_only_id(self):
        event = build_event(EventType.USER_DELETED, {"id": 3})

        assert isinstance(event, UserDeleted)
        assert json.loads(event.to_message())["data"] == {"id": 3}

    def test_device_payload_shape_is_enforced(self):
        with pytest.raises(ValidationError):
            build_event(EventType.DEVICE_CREATED, {"id": 7})

    def test_unknown_type_is_rejected(self):
        with pytest.raises(ValueError):
            build_event("ORDER_CREATED", {"id": 1})

    def test_events_are_immutable(self):
        event = build_event(EventType.USER_DELETED, {"id": 3})

        with pytest.raises(ValidationError):
            event.timestamp = datetime.now(timezone.utc)


class TestWireFormat:
    """Message bodies are UTF-8 JSON of {type, data, timestamp}"""

    def test_to_message_envelope(self):
        event = build_event(EventType.DEVICE_CREATED, {"id": 7, "name": "Heat pump", "max_consumption": 2.5})

        body = json.loads(event.to_message().decode("utf-8"))

        assert set(body) == {"type", "data", "timestamp"}
        assert body["type"] == "DEVICE_CREATED"
        assert body["data"] == {"id": 7, "name": "Heat pump", "max_consumption": 2.5}

    def test_parse_event_checks_tag_before_payload(self):
        envelope = decode_envelope(b'{"type": "USER_UPDATED", "data": {"id": 5, "name": "New"}}')

        event = parse_event(envelope)

        assert isinstance(event, UserUpdated)
        assert event.data.name == "New"
        assert event.action == ProjectionAction.UPDATE

    def test_parse_event_ignores_unknown_payload_fields(self):
        envelope = decode_envelope(
            b'{"type": "DEVICE_CREATED", "data": {"id": 7, "name": "Oven", "max_consumption": 1, "image_url": "x"}}'
        )

        event = parse_event(envelope)

        assert isinstance(event, DeviceCreated)
        assert event.data.max_consumption == 1.0

    @pytest.mark.parametrize("body", [
        b"not json",
        b"\xff\xfe",
        b"[1, 2]",
        b'{"data": {"id": 1}}',
        b'{"type": 5, "data": {"id": 1}}',
    ])
    def test_decode_envelope_rejects_garbage(self, body):
        with pytest.raises(MalformedEventError):
            decode_envelope(body)

    def test_parse_event_rejects_unknown_type(self):
        with pytest.raises(MalformedEventError):
            parse_event({"type": "USER_RENAMED", "data": {"id": 1}})

    def test_parse_event_rejects_bad_payload(self):
        with pytest.raises(MalformedEventError):
            parse_event({"type": "USER_CREATED", "data": {"name": "no id"}})


class TestMeasurement:
    """Raw samples from the measurement queue"""

    def test_parse_measurement(self):
        measurement = parse_measurement(
            b'{"deviceId": 7, "measurement_value": 0.2, "timestamp": "2025-11-17T14:10:00.000Z"}'
        )

        assert measurement.device_id == 7
        assert measurement.measurement_value == pytest.approx(0.2)
        assert measurement.timestamp == datetime(2025, 11, 17, 14, 10, tzinfo=timezone.utc)

    def test_missing_timestamp_defaults_to_now(self):
        measurement = parse_measurement(b'{"deviceId": 7, "measurement_value": 0.2}')

        assert measurement.timestamp.tzinfo is not None

    def test_missing_value_is_malformed(self):
        with pytest.raises(MalformedEventError):
            parse_measurement(b'{"deviceId": 7}')

    @pytest.mark.parametrize("value", ["NaN", "Infinity", "-Infinity"])
    def test_non_finite_value_is_malformed(self, value):
        with pytest.raises(MalformedEventError):
            parse_measurement(f'{{"deviceId": 7, "measurement_value": {value}}}'.encode())

    def test_device_id_beyond_int64_is_malformed(self):
        with pytest.raises(MalformedEventError):
            parse_measurement(b'{"deviceId": 9223372036854775808, "measurement_value": 0.2}')


class TestIdBounds:
    """Entity ids must fit a BSON int64"""

    def test_largest_int64_is_accepted(self):
        event = build_event(EventType.USER_DELETED, {"id": 2**63 - 1})

        assert event.entity_id == 2**63 - 1

    @pytest.mark.parametrize("entity_id", [2**63, 100000000000000000000, -1])
    def test_out_of_range_id_is_rejected(self, entity_id):
        with pytest.raises(MalformedEventError):
            parse_event({"type": "USER_CREATED", "data": {"id": entity_id, "role": "client"}})

    def test_non_finite_max_consumption_is_rejected(self):
        envelope = decode_envelope(
            b'{"type": "DEVICE_CREATED", "data": {"id": 7, "name": "Oven", "max_consumption": NaN}}'
        )

        with pytest.raises(MalformedEventError):
            parse_event(envelope)
