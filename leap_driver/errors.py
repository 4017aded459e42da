"""
Exception types raised by the Leap Motion driver.

    LeapDriverError
     +-- TransportError     connection send/receive failed
     +-- StartupError       enable command could not be sent on start()
     +-- DecodeError        one payload could not be parsed into a Frame
     +-- UnknownTopicError  topic is not part of the bus's topic set
"""

from typing import Union


class LeapDriverError(Exception):
    """Base class for all driver errors."""


class TransportError(LeapDriverError):
    """The connection to the Leap service is closed or broken."""


class StartupError(LeapDriverError):
    """The driver could not be started."""


class DecodeError(LeapDriverError):
    """A received payload is not a valid Leap frame."""

    def __init__(self, payload: Union[bytes, str], reason: str):
        super().__init__(f"Cannot decode frame: {reason}")
        self.payload = payload
        self.reason = reason


class UnknownTopicError(LeapDriverError, KeyError):
    """A topic was requested that the event bus does not carry."""

    def __init__(self, topic):
        super().__init__(f"Unknown topic: {topic!r}")
        self.topic = topic

    def __str__(self) -> str:
        return self.args[0]
