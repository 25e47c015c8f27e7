from models.follow_edge import FollowEvent
from config import settings
from typing import Callable, List
import logging

logger = logging.getLogger(__name__)

FollowListener = Callable[[FollowEvent], None]


class FollowEventBus:
    """In-process publish/subscribe registry for follow/unfollow events

    Delivery is synchronous and best-effort: no persistence, no replay.
    A listener subscribed after an event was published never sees it.
    """

    def __init__(self, channel: str = None):
        self.channel = settings.FOLLOW_EVENT_CHANNEL if channel is None else channel
        self._listeners: List[FollowListener] = []

    def subscribe(self, listener: FollowListener) -> Callable[[], None]:
        """Register a listener, return a callable that unsubscribes it"""
        self._listeners.append(listener)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: FollowListener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def publish(self, event: FollowEvent):
        """Deliver event to every listener. A failing listener is skipped."""
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.error(
                    f"Listener on '{self.channel}' failed for {event.action} event: {e}",
                    exc_info=True,
                )

        logger.debug(
            f"Broadcasted {event.action} on '{self.channel}': "
            f"{event.follower_id} -> {event.following_id}"
        )
