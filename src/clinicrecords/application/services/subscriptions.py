"""Live views over store subscriptions.

Live views fail open: a store error is logged, handed to the optional
``on_error`` callback, and the stream yields one empty result set before it
ends. The subscription is opened on the first read and closing the generator
detaches it, so a view closed before it was ever read registers nothing.
"""

import logging
from typing import AsyncIterator, Callable, List, Optional, TypeVar

from ...domain.errors import DomainError
from ..ports.document_store import DocumentSnapshot, Subscription

logger = logging.getLogger(__name__)

T = TypeVar("T")

ErrorCallback = Callable[[DomainError], None]


async def live_view(
    open_subscription: Callable[[], Subscription],
    convert: Callable[[DocumentSnapshot], T],
    on_error: Optional[ErrorCallback] = None,
    description: str = "live view",
) -> AsyncIterator[List[T]]:
    subscription = open_subscription()
    try:
        async for snapshots in subscription:
            yield [convert(snapshot) for snapshot in snapshots]
    except DomainError as e:
        logger.error("Subscription for %s failed: %s", description, e.message)
        if on_error is not None:
            on_error(e)
        yield []
    finally:
        await subscription.close()
