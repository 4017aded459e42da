"""
Topic-keyed publish/subscribe registry.

Handles:
- A closed set of topics fixed when the bus is created
- Callback subscriptions and queue-backed subscriptions
- Per-listener failure isolation (a raising listener never reaches the
  publisher)
- Register/unregister from any thread while a publish is in progress
"""

import logging
import queue
import threading
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from .errors import UnknownTopicError

logger = logging.getLogger(__name__)


class Topic(str, Enum):
    """Event categories published by the driver."""
    MESSAGE = "message"
    HAND = "hand"
    GESTURE = "gesture"


Listener = Callable[[Any], None]
ListenerErrorHandler = Callable[[Topic, 'Subscription', Exception], None]


class Subscription:
    """
    Handle for one registered listener.

    A subscription created without a listener buffers published values in
    a bounded queue; read them with ``get()``. Iterating over such a
    subscription yields values until it is unregistered.
    """

    def __init__(self, topic: Topic, listener: Optional[Listener] = None, maxsize: int = 100):
        self.topic = topic
        self.listener = listener
        self._active = True
        # Held across each delivery so unregister() waits for an in-flight call
        self._lock = threading.RLock()
        self._queue: Optional[queue.Queue] = None if listener else queue.Queue(maxsize=maxsize)
        self.delivered = 0
        self.dropped = 0

    @property
    def active(self) -> bool:
        """Whether the subscription still receives events."""
        return self._active

    def get(self, timeout: Optional[float] = None) -> Any:
        """
        Take the next buffered value.

        Args:
            timeout: Seconds to wait; None waits forever

        Raises:
            queue.Empty: If nothing arrived within the timeout
            TypeError: If this subscription delivers to a listener
        """
        if self._queue is None:
            raise TypeError("Subscription delivers to a listener, nothing to get")
        return self._queue.get(timeout=timeout)

    def __iter__(self):
        while self._active or (self._queue is not None and not self._queue.empty()):
            try:
                yield self.get(timeout=0.1)
            except queue.Empty:
                continue

    def _deliver(self, value: Any) -> bool:
        """Hand one value over. Returns False if the subscription is gone."""
        with self._lock:
            if not self._active:
                return False
            if self._queue is None:
                self.listener(value)
                self.delivered += 1
                return True
            try:
                self._queue.put_nowait(value)
                self.delivered += 1
            except queue.Full:
                self.dropped += 1
                logger.warning(f"Subscription queue full on '{self.topic.value}', dropping event")
            return True

    def _deactivate(self) -> bool:
        with self._lock:
            was_active = self._active
            self._active = False
            return was_active

    def __repr__(self) -> str:
        kind = getattr(self.listener, "__name__", "listener") if self.listener else "queue"
        return f"<Subscription {self.topic.value} {kind} active={self._active}>"


class EventBus:
    """
    Publish/subscribe registry over a closed set of topics.

    Listeners run synchronously on the publishing thread in registration
    order. A listener removed while a publish is in progress may still see
    that event if its delivery already started; it never sees an event once
    ``unregister()`` has returned.

    ``unregister()`` waits for an in-flight call to that listener to finish.
    Do not call it while holding a lock the listener also acquires, or the
    two threads deadlock.
    """

    def __init__(
        self,
        topics: Iterable[Topic] = tuple(Topic),
        on_listener_error: Optional[ListenerErrorHandler] = None,
    ):
        """
        Initialize the bus.

        Args:
            topics: The topics this bus carries; fixed for its lifetime
            on_listener_error: Called with (topic, subscription, exception)
                when a listener raises
        """
        self._topics = frozenset(Topic(t) for t in topics)
        self.on_listener_error = on_listener_error

        self._lock = threading.Lock()
        self._subscriptions: Dict[Topic, List[Subscription]] = {t: [] for t in self._topics}

        # Statistics
        self._published: Dict[Topic, int] = {t: 0 for t in self._topics}
        self._listener_errors = 0

    @property
    def topics(self) -> frozenset:
        """The topics this bus carries."""
        return self._topics

    def _resolve(self, topic: Union[Topic, str]) -> Topic:
        try:
            resolved = Topic(topic)
        except ValueError:
            raise UnknownTopicError(topic) from None
        if resolved not in self._topics:
            raise UnknownTopicError(topic)
        return resolved

    def register(
        self,
        topic: Union[Topic, str],
        listener: Optional[Listener] = None,
        maxsize: int = 100,
    ) -> Subscription:
        """
        Register interest in a topic.

        Args:
            topic: Topic member or its string value
            listener: Callable invoked with each published value; when None,
                values are buffered in the returned subscription
            maxsize: Queue size for buffered subscriptions

        Returns:
            Subscription handle, used to unregister

        Raises:
            UnknownTopicError: If the topic is not carried by this bus
        """
        resolved = self._resolve(topic)
        subscription = Subscription(resolved, listener, maxsize=maxsize)
        with self._lock:
            self._subscriptions[resolved].append(subscription)
        logger.debug(f"Registered {subscription!r}")
        return subscription

    def subscribe(self, topic: Union[Topic, str], listener: Listener) -> Subscription:
        """Register a listener callback on a topic."""
        return self.register(topic, listener)

    def unregister(self, subscription: Subscription) -> None:
        """Remove a subscription. Removing it twice is a no-op."""
        if not subscription._deactivate():
            return
        with self._lock:
            subscriptions = self._subscriptions.get(subscription.topic, [])
            if subscription in subscriptions:
                subscriptions.remove(subscription)
        logger.debug(f"Unregistered {subscription!r}")

    def publish(self, topic: Union[Topic, str], value: Any) -> int:
        """
        Deliver a value to every listener registered on a topic.

        Args:
            topic: Topic to publish on
            value: Event payload

        Returns:
            Number of subscriptions the value was handed to
        """
        resolved = self._resolve(topic)
        with self._lock:
            targets = list(self._subscriptions[resolved])
            self._published[resolved] += 1

        delivered = 0
        for subscription in targets:
            try:
                if subscription._deliver(value):
                    delivered += 1
            except Exception as e:
                self._report_listener_error(resolved, subscription, e)
        return delivered

    def _report_listener_error(self, topic: Topic, subscription: Subscription, exc: Exception) -> None:
        with self._lock:
            self._listener_errors += 1
        logger.error(f"Listener {subscription!r} failed on '{topic.value}': {exc!r}")
        if self.on_listener_error:
            try:
                self.on_listener_error(topic, subscription, exc)
            except Exception as e:
                logger.error(f"Error in listener error callback: {e!r}")

    def subscriber_count(self, topic: Union[Topic, str]) -> int:
        """Number of subscriptions currently registered on a topic."""
        resolved = self._resolve(topic)
        with self._lock:
            return len(self._subscriptions[resolved])

    def get_stats(self) -> dict:
        """Get bus statistics."""
        with self._lock:
            subscriptions = [s for subs in self._subscriptions.values() for s in subs]
            return {
                "subscribers": {t.value: len(s) for t, s in self._subscriptions.items()},
                "published": {t.value: n for t, n in self._published.items()},
                "listener_errors": self._listener_errors,
                "dropped": sum(s.dropped for s in subscriptions),
            }
