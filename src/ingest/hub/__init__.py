"""Hub gRPC surface: message subset, cast filter and async client."""

from ingest.hub.client import HubClient, HubClientProtocol
from ingest.hub.messages import (
    HUB_EVENT_TYPE_MERGE_MESSAGE,
    MESSAGE_TYPE_CAST_ADD,
    HubEvent,
    SubscribeRequest,
    extract_cast,
    is_cast_add,
)

__all__ = [
    "HubClient",
    "HubClientProtocol",
    "HubEvent",
    "SubscribeRequest",
    "HUB_EVENT_TYPE_MERGE_MESSAGE",
    "MESSAGE_TYPE_CAST_ADD",
    "extract_cast",
    "is_cast_add",
]
