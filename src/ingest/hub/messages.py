"""
Minimal hub protobuf schema.

Only the fields the ingest path reads are declared. Unknown fields in
hub responses are skipped by the protobuf parser, so this subset decodes
full hub events.
"""

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory

from ingest.types import CastEvent

# HubEventType
HUB_EVENT_TYPE_MERGE_MESSAGE = 1

# MessageType
MESSAGE_TYPE_CAST_ADD = 1

SUBSCRIBE_METHOD = "/HubService/Subscribe"

_FILE_NAME = "ingest_hub_subset.proto"

_INT32 = descriptor_pb2.FieldDescriptorProto.TYPE_INT32
_UINT32 = descriptor_pb2.FieldDescriptorProto.TYPE_UINT32
_UINT64 = descriptor_pb2.FieldDescriptorProto.TYPE_UINT64
_MESSAGE = descriptor_pb2.FieldDescriptorProto.TYPE_MESSAGE
_OPTIONAL = descriptor_pb2.FieldDescriptorProto.LABEL_OPTIONAL
_REPEATED = descriptor_pb2.FieldDescriptorProto.LABEL_REPEATED


def _add_message(file_proto, name: str, fields: list[tuple]) -> None:
    message = file_proto.message_type.add(name=name)
    for field_name, number, field_type, label, type_name in fields:
        field = message.field.add(
            name=field_name, number=number, type=field_type, label=label
        )
        if type_name:
            field.type_name = type_name


def _build_file() -> descriptor_pb2.FileDescriptorProto:
    file_proto = descriptor_pb2.FileDescriptorProto(name=_FILE_NAME, syntax="proto3")
    _add_message(file_proto, "MessageData", [
        ("type", 1, _INT32, _OPTIONAL, None),
        ("fid", 2, _UINT64, _OPTIONAL, None),
        ("timestamp", 3, _UINT32, _OPTIONAL, None),
    ])
    _add_message(file_proto, "Message", [
        ("data", 1, _MESSAGE, _OPTIONAL, ".MessageData"),
    ])
    _add_message(file_proto, "MergeMessageBody", [
        ("message", 1, _MESSAGE, _OPTIONAL, ".Message"),
    ])
    _add_message(file_proto, "HubEvent", [
        ("type", 1, _INT32, _OPTIONAL, None),
        ("id", 2, _UINT64, _OPTIONAL, None),
        ("merge_message_body", 3, _MESSAGE, _OPTIONAL, ".MergeMessageBody"),
    ])
    _add_message(file_proto, "SubscribeRequest", [
        ("event_types", 1, _INT32, _REPEATED, None),
    ])
    return file_proto


_pool = descriptor_pool.DescriptorPool()
_pool.Add(_build_file())

MessageData = message_factory.GetMessageClass(_pool.FindMessageTypeByName("MessageData"))
Message = message_factory.GetMessageClass(_pool.FindMessageTypeByName("Message"))
MergeMessageBody = message_factory.GetMessageClass(
    _pool.FindMessageTypeByName("MergeMessageBody")
)
HubEvent = message_factory.GetMessageClass(_pool.FindMessageTypeByName("HubEvent"))
SubscribeRequest = message_factory.GetMessageClass(
    _pool.FindMessageTypeByName("SubscribeRequest")
)


def is_cast_add(event) -> bool:
    """True for merge-message events carrying a CAST_ADD message."""
    if event.type != HUB_EVENT_TYPE_MERGE_MESSAGE:
        return False
    if not event.HasField("merge_message_body"):
        return False
    body = event.merge_message_body
    if not body.HasField("message") or not body.message.HasField("data"):
        return False
    return body.message.data.type == MESSAGE_TYPE_CAST_ADD


def extract_cast(event, observed_at_ms: int) -> CastEvent | None:
    """Map a hub event to a CastEvent, or None when it is not a new cast."""
    if not is_cast_add(event):
        return None
    return CastEvent(
        subject_id=event.merge_message_body.message.data.fid,
        observed_at_ms=observed_at_ms,
    )


def cast_add_event(fid: int, event_id: int = 0, timestamp: int = 0):
    """Build a merge-message HubEvent wrapping a CAST_ADD. Used by fakes and tests."""
    event = HubEvent()
    event.type = HUB_EVENT_TYPE_MERGE_MESSAGE
    event.id = event_id
    data = event.merge_message_body.message.data
    data.type = MESSAGE_TYPE_CAST_ADD
    data.fid = fid
    data.timestamp = timestamp
    return event
