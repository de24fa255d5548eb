"""Tests for the hub message subset and the cast filter."""

from ingest.hub.messages import (
    HUB_EVENT_TYPE_MERGE_MESSAGE,
    MESSAGE_TYPE_CAST_ADD,
    HubEvent,
    SubscribeRequest,
    cast_add_event,
    extract_cast,
    is_cast_add,
)
from ingest.types import CastEvent


def _merge_event(message_type: int, fid: int = 7):
    event = HubEvent()
    event.type = HUB_EVENT_TYPE_MERGE_MESSAGE
    data = event.merge_message_body.message.data
    data.type = message_type
    data.fid = fid
    return event


class TestFilter:
    def test_accepts_cast_add(self):
        assert is_cast_add(cast_add_event(fid=7)) is True

    def test_rejects_other_message_types(self):
        # 3 is REACTION_ADD on the hub
        assert is_cast_add(_merge_event(3)) is False

    def test_rejects_other_event_types(self):
        event = cast_add_event(fid=7)
        event.type = 2
        assert is_cast_add(event) is False

    def test_rejects_merge_without_body(self):
        event = HubEvent()
        event.type = HUB_EVENT_TYPE_MERGE_MESSAGE
        assert is_cast_add(event) is False

    def test_rejects_message_without_data(self):
        event = HubEvent()
        event.type = HUB_EVENT_TYPE_MERGE_MESSAGE
        event.merge_message_body.message.SetInParent()
        assert is_cast_add(event) is False


class TestExtractCast:
    def test_maps_fid_and_receipt_time(self):
        cast = extract_cast(cast_add_event(fid=1234, timestamp=99), observed_at_ms=555)
        assert cast == CastEvent(subject_id=1234, observed_at_ms=555)

    def test_returns_none_for_non_casts(self):
        assert extract_cast(_merge_event(3), observed_at_ms=555) is None


class TestWireFormat:
    def test_hub_event_round_trips_through_bytes(self):
        raw = cast_add_event(fid=42, event_id=9).SerializeToString()

        decoded = HubEvent.FromString(raw)

        assert decoded.id == 9
        assert decoded.merge_message_body.message.data.fid == 42
        assert decoded.merge_message_body.message.data.type == MESSAGE_TYPE_CAST_ADD

    def test_subscribe_request_event_types(self):
        request = SubscribeRequest()
        request.event_types.extend([HUB_EVENT_TYPE_MERGE_MESSAGE])
        decoded = SubscribeRequest.FromString(request.SerializeToString())
        assert list(decoded.event_types) == [1]
