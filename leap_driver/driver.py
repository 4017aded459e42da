"""
LeapMotionDriver - turns the Leap frame stream into events.

On start() the driver asks the service to enable gesture recognition, then a
background thread receives frames, decodes them and publishes:

    "message" - every decoded Frame
    "hand"    - each Hand in the frame, in frame order
    "gesture" - each Gesture in the frame, in frame order

The message event for a frame is always published before its hand and
gesture events. Listeners run on the receive thread, so a slow listener
delays the next frame for everyone; it never blocks the device, which keeps
pushing at its own rate.
"""

import logging
import threading
from enum import Enum
from typing import Callable, Optional, Union

from .adaptor import Connection
from .errors import DecodeError, StartupError, TransportError
from .events import EventBus, Listener, ListenerErrorHandler, Subscription, Topic
from .frame import Frame, decode_frame
from .message import ControlMessage

logger = logging.getLogger(__name__)


class DriverState(Enum):
    """Lifecycle of the ingestion loop."""
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


class LeapMotionDriver:
    """
    Receives Leap frames on a background thread and publishes their contents.

    Example usage:
        adaptor = LeapMotionAdaptor()
        adaptor.connect()
        driver = LeapMotionDriver(adaptor)
        driver.subscribe("hand", lambda hand: print(hand.x, hand.y, hand.z))
        driver.start()
        ...
        driver.stop()
        adaptor.finalize()
    """

    def __init__(
        self,
        connection: Connection,
        name: str = "LeapMotion",
        receive_timeout: Optional[float] = 0.5,
        stop_timeout: float = 2.0,
        on_error: Optional[Callable[[Exception], None]] = None,
        on_listener_error: Optional[ListenerErrorHandler] = None,
    ):
        """
        Initialize the driver.

        Args:
            connection: Open connection to the Leap service
            name: Driver name used in logs
            receive_timeout: Upper bound on a single receive, so stop() is
                noticed promptly; None blocks until a message arrives
            stop_timeout: Seconds stop() waits for the receive thread
            on_error: Called from the receive thread with the TransportError
                that ended the loop
            on_listener_error: Called with (topic, subscription, exception)
                when a listener raises
        """
        self._name = name
        self._connection = connection
        self.receive_timeout = receive_timeout
        self.stop_timeout = stop_timeout
        self.on_error = on_error

        self._bus = EventBus(tuple(Topic), on_listener_error=on_listener_error)

        # Lifecycle
        self._state = DriverState.IDLE
        self._lifecycle_lock = threading.Lock()
        self._stop_event: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None
        self._last_error: Optional[Exception] = None

        # Statistics
        self._frames_received = 0
        self._frames_decoded = 0
        self._decode_errors = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def connection(self) -> Connection:
        return self._connection

    @property
    def state(self) -> DriverState:
        return self._state

    @property
    def running(self) -> bool:
        """Check if the receive loop is active."""
        return self._state is DriverState.RUNNING

    @property
    def last_error(self) -> Optional[Exception]:
        """The transport error that stopped the loop, if any."""
        return self._last_error

    def start(self) -> None:
        """
        Enable gestures on the device and start receiving frames.

        Returns immediately; frames are processed on a background thread.
        Calling start() while running is a no-op.

        Raises:
            StartupError: If the enable command could not be sent, or the
                receive thread of a previous run is still blocked
        """
        previous = self._thread
        if (
            self._state is not DriverState.RUNNING
            and previous is not None
            and previous is not threading.current_thread()
        ):
            # Joined outside the lock, the old loop may still need it
            previous.join(timeout=self.stop_timeout)

        with self._lifecycle_lock:
            if self._state is DriverState.RUNNING:
                return
            if self._thread is not None and self._thread.is_alive():
                # Two loops would race for the same connection
                logger.error(f"[{self._name}] Previous receive loop still running")
                raise StartupError("Previous receive loop still running")

            command = ControlMessage.enable_gestures_message().to_json()
            try:
                self._connection.send(command)
            except Exception as e:
                logger.error(f"[{self._name}] Failed to enable gestures: {e}")
                raise StartupError(f"Failed to enable gestures: {e}") from e

            stop_event = threading.Event()
            thread = threading.Thread(
                target=self._receive_loop,
                args=(stop_event,),
                name=f"{self._name}-receive",
                daemon=True,
            )
            self._stop_event = stop_event
            self._thread = thread
            self._last_error = None
            self._state = DriverState.RUNNING
            thread.start()

        logger.info(f"[{self._name}] Driver started")

    def stop(self) -> None:
        """
        Stop receiving frames. Never raises; a no-op unless running.

        Waits up to ``stop_timeout`` for the receive thread to finish its
        current receive. The connection itself is left open.
        """
        with self._lifecycle_lock:
            if self._state is not DriverState.RUNNING:
                return
            self._state = DriverState.STOPPED
            self._stop_event.set()
            thread = self._thread

        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self.stop_timeout)
            if thread.is_alive():
                logger.warning(
                    f"[{self._name}] Receive thread still blocked after "
                    f"{self.stop_timeout:.1f}s, leaving it to exit on its own"
                )
        logger.info(f"[{self._name}] Driver stopped")

    halt = stop

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the receive thread exits.

        Returns:
            True if the thread is not running when this returns
        """
        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout=timeout)
        return not thread.is_alive()

    def register(
        self,
        topic: Union[Topic, str],
        listener: Optional[Listener] = None,
        maxsize: int = 100,
    ) -> Subscription:
        """Register on one of "message", "hand" or "gesture"."""
        return self._bus.register(topic, listener, maxsize=maxsize)

    def subscribe(self, topic: Union[Topic, str], listener: Listener) -> Subscription:
        """Register a listener callback on a topic."""
        return self._bus.subscribe(topic, listener)

    def unregister(self, subscription: Subscription) -> None:
        """Remove a subscription. Removing it twice is a no-op."""
        self._bus.unregister(subscription)

    def _receive_loop(self, stop_event: threading.Event) -> None:
        """Background thread: receive, decode and publish until stopped."""
        logger.debug(f"[{self._name}] Receive loop running")
        while not stop_event.is_set():
            try:
                payload = self._connection.receive(timeout=self.receive_timeout)
            except TimeoutError:
                continue
            except Exception as e:
                if stop_event.is_set():
                    break
                self._fail(stop_event, e)
                return

            if stop_event.is_set():
                break
            self._frames_received += 1

            try:
                frame = decode_frame(payload)
            except DecodeError as e:
                self._decode_errors += 1
                logger.warning(f"[{self._name}] Dropping malformed frame: {e.reason}")
                continue
            except Exception as e:
                self._decode_errors += 1
                logger.warning(f"[{self._name}] Dropping frame, decoder error: {e!r}")
                continue

            self._frames_decoded += 1
            self._publish_frame(frame)

        logger.debug(f"[{self._name}] Receive loop exited")

    def _publish_frame(self, frame: Frame) -> None:
        self._bus.publish(Topic.MESSAGE, frame)
        for hand in frame.hands:
            self._bus.publish(Topic.HAND, hand)
        for gesture in frame.gestures:
            self._bus.publish(Topic.GESTURE, gesture)

    def _fail(self, stop_event: threading.Event, exc: Exception) -> None:
        """Move to STOPPED after the connection broke and tell the owner."""
        if not isinstance(exc, TransportError):
            wrapped = TransportError(f"Receive failed: {exc}")
            wrapped.__cause__ = exc
            exc = wrapped
        with self._lifecycle_lock:
            # A restart may already have replaced this loop
            if self._stop_event is stop_event:
                self._state = DriverState.STOPPED
                self._last_error = exc
            stop_event.set()

        logger.error(f"[{self._name}] Connection lost, receive loop stopped: {exc}")
        if self.on_error:
            try:
                self.on_error(exc)
            except Exception as e:
                logger.error(f"[{self._name}] Error in on_error callback: {e!r}")

    def get_stats(self) -> dict:
        """Get driver statistics."""
        return {
            "name": self._name,
            "state": self._state.value,
            "frames_received": self._frames_received,
            "frames_decoded": self._frames_decoded,
            "decode_errors": self._decode_errors,
            "last_error": str(self._last_error) if self._last_error else None,
            "bus": self._bus.get_stats(),
        }
