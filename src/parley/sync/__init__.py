"""Room, timeline and typing state kept in step with the live channel."""

from parley.sync.membership import RoomMembership
from parley.sync.outbound import OutboundMessageTracker, SendResult, can_send
from parley.sync.rooms import RefreshResult, RoomListSynchronizer
from parley.sync.stream import LoadResult, MessageStream
from parley.sync.timeline import PaginationCursor, Timeline
from parley.sync.typing_state import TypingAggregator

__all__ = [
    "LoadResult",
    "MessageStream",
    "OutboundMessageTracker",
    "PaginationCursor",
    "RefreshResult",
    "RoomListSynchronizer",
    "RoomMembership",
    "SendResult",
    "Timeline",
    "TypingAggregator",
    "can_send",
]
