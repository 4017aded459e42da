"""
Leap Motion Driver - Leap Motion frames as hand and gesture events.

This package connects to a Leap Motion service over WebSocket, decodes the
JSON frames it streams and publishes them to subscribers:
- "message": every decoded Frame
- "hand": each tracked Hand
- "gesture": each recognized Gesture

Example usage:
    from leap_driver import LeapMotionAdaptor, LeapMotionDriver

    adaptor = LeapMotionAdaptor("ws://127.0.0.1:6437/v3.json")
    adaptor.connect()
    driver = LeapMotionDriver(adaptor)
    driver.subscribe("gesture", lambda g: print(g.type, g.state))
    driver.start()
    ...
    driver.stop()
    adaptor.finalize()
"""

from .adaptor import Connection, LeapMotionAdaptor
from .driver import DriverState, LeapMotionDriver
from .errors import (
    DecodeError,
    LeapDriverError,
    StartupError,
    TransportError,
    UnknownTopicError,
)
from .events import EventBus, Subscription, Topic
from .frame import Frame, Gesture, Hand, InteractionBox, Pointable, decode_frame
from .message import ControlMessage

__version__ = "1.0.0"
__all__ = [
    "Connection",
    "ControlMessage",
    "DecodeError",
    "DriverState",
    "EventBus",
    "Frame",
    "Gesture",
    "Hand",
    "InteractionBox",
    "LeapDriverError",
    "LeapMotionAdaptor",
    "LeapMotionDriver",
    "Pointable",
    "StartupError",
    "Subscription",
    "Topic",
    "TransportError",
    "UnknownTopicError",
    "decode_frame",
]
