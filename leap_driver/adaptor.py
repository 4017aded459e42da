"""
WebSocket connection to the Leap Motion service.

Handles:
- Opening the WebSocket to the service's JSON endpoint
- Blocking send/receive of whole messages
- Translating websockets failures into TransportError
- Closing exactly once, whichever thread asks first
"""

import logging
import threading
from typing import Optional, Protocol, Union

from websockets.exceptions import ConnectionClosed, WebSocketException
from websockets.sync.client import ClientConnection, connect

from .errors import TransportError

logger = logging.getLogger(__name__)

DEFAULT_URL = "ws://127.0.0.1:6437/v3.json"


class Connection(Protocol):
    """Bidirectional stream of whole messages, as used by the driver."""

    def send(self, payload: Union[bytes, str]) -> None:
        ...

    def receive(self, timeout: Optional[float] = None) -> bytes:
        ...


class LeapMotionAdaptor:
    """
    Connection to a Leap Motion service over WebSocket.

    Example usage:
        adaptor = LeapMotionAdaptor("ws://127.0.0.1:6437/v3.json")
        adaptor.connect()
        adaptor.send('{"enableGestures": true}')
        payload = adaptor.receive(timeout=0.5)
        adaptor.finalize()
    """

    def __init__(
        self,
        url: str = DEFAULT_URL,
        name: str = "LeapMotion",
        open_timeout: float = 10.0,
        close_timeout: float = 5.0,
    ):
        """
        Initialize the adaptor.

        Args:
            url: WebSocket URL of the Leap service
            name: Adaptor name used in logs
            open_timeout: Seconds to wait for the opening handshake
            close_timeout: Seconds to wait for the closing handshake
        """
        self.url = url
        self.name = name
        self.open_timeout = open_timeout
        self.close_timeout = close_timeout

        self._ws: Optional[ClientConnection] = None
        self._lock = threading.Lock()
        self._closed = False

    @property
    def connected(self) -> bool:
        """Check if the WebSocket is open."""
        return self._ws is not None and not self._closed

    def connect(self) -> None:
        """
        Open the WebSocket. Calling it again while connected is a no-op.

        Raises:
            TransportError: If the service cannot be reached
        """
        with self._lock:
            if self._ws is not None and not self._closed:
                return
            logger.info(f"[{self.name}] Connecting to {self.url}...")
            try:
                self._ws = connect(
                    self.url,
                    open_timeout=self.open_timeout,
                    close_timeout=self.close_timeout,
                )
            except (OSError, WebSocketException) as e:
                logger.error(f"[{self.name}] Connection failed: {e}")
                raise TransportError(f"Cannot connect to {self.url}: {e}") from e
            self._closed = False
            logger.info(f"[{self.name}] Connected")

    def finalize(self) -> None:
        """Close the WebSocket. Safe to call repeatedly and concurrently."""
        with self._lock:
            if self._ws is None or self._closed:
                return
            self._closed = True
            ws = self._ws
        try:
            ws.close()
        except (OSError, WebSocketException) as e:
            logger.warning(f"[{self.name}] Error while closing: {e}")
        logger.info(f"[{self.name}] Connection closed")

    def _require_ws(self) -> ClientConnection:
        ws = self._ws
        if ws is None or self._closed:
            raise TransportError("Connection is not open")
        return ws

    def send(self, payload: Union[bytes, str]) -> None:
        """
        Send one message.

        Raises:
            TransportError: If the connection is closed or the send fails
        """
        ws = self._require_ws()
        try:
            ws.send(payload)
        except (ConnectionClosed, OSError, WebSocketException) as e:
            raise TransportError(f"Send failed: {e}") from e
        logger.debug(f"[{self.name}] Sent: {payload!r}")

    def receive(self, timeout: Optional[float] = None) -> bytes:
        """
        Block until one whole message arrives.

        Args:
            timeout: Seconds to wait; None waits forever

        Returns:
            The message payload as bytes

        Raises:
            TimeoutError: If no message arrived within the timeout
            TransportError: If the connection is closed or broken
        """
        ws = self._require_ws()
        try:
            message = ws.recv(timeout=timeout)
        except TimeoutError:
            raise
        except (ConnectionClosed, OSError, WebSocketException, RuntimeError) as e:
            raise TransportError(f"Receive failed: {e}") from e
        if isinstance(message, str):
            return message.encode("utf-8")
        return message
