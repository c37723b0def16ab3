"""
Feed events emitted after a comment is stored.

The downstream feed/notification consumer reads them from a Redis stream;
this service only produces.  Delivery is best effort: callers submit
``produce`` to the background pool and never observe the result.
"""
import json
import logging
from typing import Protocol

import redis.asyncio as redis
from pydantic import BaseModel

logger = logging.getLogger(__name__)

COMMENT_EVENT = "comment"


class FeedEvent(BaseModel):
    type: str
    metadata: dict[str, str]


class FeedEventProducer(Protocol):
    async def produce(self, event: FeedEvent) -> None: ...


class RedisStreamProducer:
    """Append feed events to a Redis stream with ``XADD``."""

    def __init__(self, client: redis.Redis | None, stream: str, maxlen: int = 100_000) -> None:
        self._client = client
        self._stream = stream
        self._maxlen = maxlen

    async def produce(self, event: FeedEvent) -> None:
        if self._client is None:
            logger.debug("feed event dropped, no redis connection: type=%s", event.type)
            return
        await self._client.xadd(
            self._stream,
            {"type": event.type, "metadata": json.dumps(event.metadata)},
            maxlen=self._maxlen,
            approximate=True,
        )


def comment_event(
    *,
    comment_id: int,
    commentator_id: int,
    recipient_uid: int,
    owner_uid: int,
    biz_name: str,
    biz_id: int,
) -> FeedEvent:
    return FeedEvent(
        type=COMMENT_EVENT,
        metadata={
            "commentator": str(commentator_id),
            "recipient": str(recipient_uid),
            # Owner of the commented object; may equal the recipient.
            "bizPublisher": str(owner_uid),
            "biz": biz_name,
            "bizId": str(biz_id),
            "commentId": str(comment_id),
        },
    )
