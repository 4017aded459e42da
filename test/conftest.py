import json
import queue
import threading

import pytest

from leap_driver.errors import TransportError


class FakeConnection:
    """In-memory connection: payloads are queued by the test, sends recorded."""

    def __init__(self, fail_send=False):
        self.fail_send = fail_send
        self.sent = []
        self._incoming = queue.Queue()
        self._lock = threading.Lock()

    def feed(self, *payloads):
        for payload in payloads:
            self._incoming.put(payload)

    def break_stream(self):
        self._incoming.put(TransportError("stream closed"))

    def send(self, payload):
        if self.fail_send:
            raise TransportError("send failed")
        with self._lock:
            self.sent.append(payload)

    def receive(self, timeout=None):
        try:
            item = self._incoming.get(timeout=timeout)
        except queue.Empty:
            raise TimeoutError()
        if isinstance(item, Exception):
            raise item
        return item


def hand_json(hand_id, x=0.0, y=0.0, z=0.0, **extra):
    hand = {
        "id": hand_id,
        "type": "right",
        "palmPosition": [x, y, z],
        "direction": [0.0, 0.0, -1.0],
        "grabStrength": 0.0,
    }
    hand.update(extra)
    return hand


def gesture_json(gesture_id, kind="swipe", state="stop", **extra):
    gesture = {
        "id": gesture_id,
        "type": kind,
        "state": state,
        "duration": 1500,
        "handIds": [1],
        "pointableIds": [10],
    }
    gesture.update(extra)
    return gesture


def frame_payload(frame_id, hands=(), gestures=()):
    return json.dumps({
        "id": frame_id,
        "timestamp": 1000 * frame_id,
        "currentFrameRate": 110.0,
        "hands": list(hands),
        "gestures": list(gestures),
        "pointables": [],
    }).encode("utf-8")


@pytest.fixture
def connection():
    return FakeConnection()
