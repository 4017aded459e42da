import queue
import threading

import pytest

from leap_driver.errors import UnknownTopicError
from leap_driver.events import EventBus, Topic


def test_topics_are_the_closed_set():
    assert {t.value for t in Topic} == {"message", "hand", "gesture"}
    assert EventBus().topics == frozenset(Topic)


@pytest.mark.parametrize("topic", ["pointable", "", "HAND", 3])
def test_register_unknown_topic(topic):
    bus = EventBus()
    with pytest.raises(UnknownTopicError) as exc_info:
        bus.register(topic, lambda value: None)
    assert exc_info.value.topic == topic


def test_register_topic_outside_bus_set():
    bus = EventBus([Topic.MESSAGE])
    with pytest.raises(UnknownTopicError):
        bus.register(Topic.HAND, lambda value: None)
    with pytest.raises(UnknownTopicError):
        bus.publish("gesture", object())


def test_string_and_enum_topics_are_equivalent():
    bus = EventBus()
    received = []
    bus.register("hand", received.append)
    bus.publish(Topic.HAND, 1)
    bus.publish("hand", 2)
    assert received == [1, 2]


def test_every_listener_receives_value():
    bus = EventBus()
    first, second = [], []
    bus.subscribe(Topic.HAND, first.append)
    bus.subscribe(Topic.HAND, second.append)

    assert bus.publish(Topic.HAND, "h1") == 2
    assert first == ["h1"]
    assert second == ["h1"]


def test_publish_only_reaches_its_topic():
    bus = EventBus()
    hands, gestures = [], []
    bus.subscribe(Topic.HAND, hands.append)
    bus.subscribe(Topic.GESTURE, gestures.append)
    bus.publish(Topic.GESTURE, "g1")
    assert hands == []
    assert gestures == ["g1"]


def test_publish_without_listeners():
    bus = EventBus()
    assert bus.publish(Topic.MESSAGE, "frame") == 0


def test_unregister_stops_delivery_and_is_idempotent():
    bus = EventBus()
    received = []
    subscription = bus.subscribe(Topic.HAND, received.append)
    bus.publish(Topic.HAND, 1)

    bus.unregister(subscription)
    bus.unregister(subscription)
    bus.publish(Topic.HAND, 2)

    assert received == [1]
    assert not subscription.active
    assert bus.subscriber_count(Topic.HAND) == 0


def test_failing_listener_is_isolated():
    errors = []
    bus = EventBus(on_listener_error=lambda topic, sub, exc: errors.append((topic, exc)))
    received = []

    def broken(value):
        raise RuntimeError("listener crashed")

    bus.subscribe(Topic.HAND, broken)
    bus.subscribe(Topic.HAND, received.append)

    assert bus.publish(Topic.HAND, "h1") == 1
    assert received == ["h1"]
    assert len(errors) == 1
    assert errors[0][0] is Topic.HAND
    assert isinstance(errors[0][1], RuntimeError)
    assert bus.get_stats()["listener_errors"] == 1


def test_failing_error_callback_is_ignored():
    def bad_handler(topic, sub, exc):
        raise ValueError("handler crashed")

    bus = EventBus(on_listener_error=bad_handler)
    bus.subscribe(Topic.HAND, lambda value: 1 / 0)
    bus.publish(Topic.HAND, "h1")
    assert bus.get_stats()["listener_errors"] == 1


def test_listener_can_unregister_itself():
    bus = EventBus()
    received = []
    holder = {}

    def once(value):
        received.append(value)
        bus.unregister(holder["sub"])

    holder["sub"] = bus.subscribe(Topic.GESTURE, once)
    bus.publish(Topic.GESTURE, 1)
    bus.publish(Topic.GESTURE, 2)
    assert received == [1]


def test_listener_added_during_publish_misses_in_flight_event():
    bus = EventBus()
    late = []

    def adder(value):
        bus.subscribe(Topic.MESSAGE, late.append)

    bus.subscribe(Topic.MESSAGE, adder)
    bus.publish(Topic.MESSAGE, "f1")
    assert late == []
    bus.publish(Topic.MESSAGE, "f2")
    assert late == ["f2"]


def test_queue_subscription():
    bus = EventBus()
    subscription = bus.register(Topic.MESSAGE)
    bus.publish(Topic.MESSAGE, "f1")
    bus.publish(Topic.MESSAGE, "f2")

    assert subscription.get(timeout=1) == "f1"
    assert subscription.get(timeout=1) == "f2"
    with pytest.raises(queue.Empty):
        subscription.get(timeout=0.01)


def test_full_queue_drops_new_events():
    bus = EventBus()
    subscription = bus.register(Topic.HAND, maxsize=2)
    for i in range(5):
        bus.publish(Topic.HAND, i)

    assert subscription.get(timeout=1) == 0
    assert subscription.get(timeout=1) == 1
    assert subscription.dropped == 3
    assert bus.get_stats()["dropped"] == 3


def test_get_on_listener_subscription():
    bus = EventBus()
    subscription = bus.subscribe(Topic.HAND, lambda value: None)
    with pytest.raises(TypeError):
        subscription.get(timeout=0)


def test_iterating_queue_subscription_ends_after_unregister():
    bus = EventBus()
    subscription = bus.register(Topic.HAND)
    bus.publish(Topic.HAND, "a")
    bus.publish(Topic.HAND, "b")
    bus.unregister(subscription)
    assert list(subscription) == ["a", "b"]


def test_unregister_waits_for_in_flight_delivery():
    bus = EventBus()
    entered = threading.Event()
    release = threading.Event()
    calls = []

    def slow(value):
        calls.append(value)
        entered.set()
        release.wait(timeout=5)

    subscription = bus.subscribe(Topic.HAND, slow)
    publisher = threading.Thread(target=bus.publish, args=(Topic.HAND, 1))
    publisher.start()
    assert entered.wait(timeout=5)

    unregistered = threading.Event()

    def unregister():
        bus.unregister(subscription)
        unregistered.set()

    remover = threading.Thread(target=unregister)
    remover.start()
    assert not unregistered.wait(timeout=0.1)

    release.set()
    publisher.join(timeout=5)
    remover.join(timeout=5)
    assert unregistered.is_set()

    bus.publish(Topic.HAND, 2)
    assert calls == [1]


def test_concurrent_register_and_publish():
    bus = EventBus()
    stop = threading.Event()
    errors = []

    def churn():
        try:
            while not stop.is_set():
                subscription = bus.subscribe(Topic.HAND, lambda value: None)
                bus.unregister(subscription)
        except Exception as e:
            errors.append(e)

    workers = [threading.Thread(target=churn) for _ in range(4)]
    for worker in workers:
        worker.start()

    received = []
    bus.subscribe(Topic.HAND, received.append)
    for i in range(2000):
        bus.publish(Topic.HAND, i)

    stop.set()
    for worker in workers:
        worker.join(timeout=5)

    assert errors == []
    assert received == list(range(2000))
    assert bus.subscriber_count(Topic.HAND) == 1
