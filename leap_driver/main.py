#!/usr/bin/env python3
"""
Leap Motion Driver - Main Entry Point

Connects to a Leap Motion service, publishes hands and gestures as events
and optionally:
- Relays them to an MQTT broker
- Serves /health and /stats over HTTP

Environment Variables:
    LEAP_URL: WebSocket URL of the Leap service (default: ws://127.0.0.1:6437/v3.json)
    LEAP_RECEIVE_TIMEOUT: Receive timeout in seconds (default: 0.5)
    MQTT_HOST: MQTT broker host (default: localhost)
    MQTT_PORT: MQTT broker port (default: 1883)
    MQTT_PREFIX: MQTT topic prefix (default: leap)
    STATUS_PORT: HTTP status port, 0 disables (default: 8080)
    LOG_LEVEL: Logging level (default: INFO)

Usage:
    python -m leap_driver.main --url ws://127.0.0.1:6437/v3.json
    python -m leap_driver.main --no-mqtt --status-port 0 --log-level DEBUG
"""

import argparse
import asyncio
import logging
import os
import signal
import sys
from typing import Optional

import uvicorn

from .adaptor import DEFAULT_URL, LeapMotionAdaptor
from .driver import LeapMotionDriver
from .errors import LeapDriverError
from .events import Topic
from .frame import Gesture, Hand
from .mqtt_relay import MqttRelay
from .status_server import create_app

logger = logging.getLogger(__name__)


class LeapDriverService:
    """
    Wires the adaptor, driver and optional MQTT relay together.

    Architecture:
        Leap service -> WebSocket -> LeapMotionDriver -> listeners / MQTT
    """

    def __init__(
        self,
        url: str = DEFAULT_URL,
        receive_timeout: float = 0.5,
        mqtt_host: str = "localhost",
        mqtt_port: int = 1883,
        mqtt_prefix: str = "leap",
        enable_mqtt: bool = True,
        on_error=None,
    ):
        """
        Initialize the service.

        Args:
            url: WebSocket URL of the Leap service
            receive_timeout: Receive timeout of the driver loop
            mqtt_host: MQTT broker host
            mqtt_port: MQTT broker port
            mqtt_prefix: MQTT topic prefix
            enable_mqtt: Whether to relay events to MQTT
            on_error: Called when the connection to the Leap service is lost
        """
        self.adaptor = LeapMotionAdaptor(url)
        self.driver = LeapMotionDriver(
            self.adaptor,
            receive_timeout=receive_timeout,
            on_error=on_error,
        )
        self.mqtt_relay: Optional[MqttRelay] = None
        if enable_mqtt:
            self.mqtt_relay = MqttRelay(
                self.driver,
                host=mqtt_host,
                port=mqtt_port,
                topic_prefix=mqtt_prefix,
            )

        self.driver.subscribe(Topic.HAND, self._log_hand)
        self.driver.subscribe(Topic.GESTURE, self._log_gesture)

    def start(self) -> None:
        """Connect and start the driver and relay."""
        logger.info("Starting Leap Motion driver...")
        self.adaptor.connect()
        if self.mqtt_relay and not self.mqtt_relay.start():
            logger.warning("Continuing without MQTT relay")
            self.mqtt_relay = None
        self.driver.start()

    def stop(self) -> None:
        """Stop everything and close the connection."""
        logger.info("Stopping Leap Motion driver...")
        self.driver.stop()
        if self.mqtt_relay:
            self.mqtt_relay.stop()
        self.adaptor.finalize()

    def _log_hand(self, hand: Hand) -> None:
        logger.debug(
            "Hand %d (%s): x=%.1f, y=%.1f, z=%.1f, grab=%.2f",
            hand.id, hand.type, hand.x, hand.y, hand.z, hand.grab_strength,
        )

    def _log_gesture(self, gesture: Gesture) -> None:
        logger.debug("Gesture %d: %s (%s)", gesture.id, gesture.type, gesture.state)

    def get_stats(self) -> dict:
        """Get relay statistics."""
        return {
            "mqtt_relay": self.mqtt_relay.get_stats() if self.mqtt_relay else {},
        }


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments, falling back to the environment."""
    parser = argparse.ArgumentParser(description="Leap Motion event driver")
    parser.add_argument(
        "--url",
        default=os.environ.get("LEAP_URL", DEFAULT_URL),
        help="WebSocket URL of the Leap service",
    )
    parser.add_argument(
        "--receive-timeout",
        type=float,
        default=float(os.environ.get("LEAP_RECEIVE_TIMEOUT", "0.5")),
        help="Receive timeout in seconds",
    )
    parser.add_argument(
        "--mqtt-host",
        default=os.environ.get("MQTT_HOST", "localhost"),
        help="MQTT broker host",
    )
    parser.add_argument(
        "--mqtt-port",
        type=int,
        default=int(os.environ.get("MQTT_PORT", "1883")),
        help="MQTT broker port",
    )
    parser.add_argument(
        "--mqtt-prefix",
        default=os.environ.get("MQTT_PREFIX", "leap"),
        help="MQTT topic prefix",
    )
    parser.add_argument(
        "--no-mqtt",
        action="store_true",
        help="Do not relay events to MQTT",
    )
    parser.add_argument(
        "--status-port",
        type=int,
        default=int(os.environ.get("STATUS_PORT", "8080")),
        help="HTTP status port (0 disables)",
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("LOG_LEVEL", "INFO"),
        help="Logging level",
    )
    return parser.parse_args(argv)


async def run_status_server(service: LeapDriverService, port: int) -> None:
    """Serve the status app with uvicorn."""
    app = create_app(service.driver, extra_stats=service.get_stats)
    config = uvicorn.Config(
        app,
        host="0.0.0.0",
        port=port,
        log_level="warning",
        access_log=False,
    )
    server = uvicorn.Server(config)
    await server.serve()


async def main_async(args: argparse.Namespace) -> int:
    """Async main entry point."""
    loop = asyncio.get_running_loop()
    shutdown_event = asyncio.Event()

    def on_connection_lost(exc: Exception) -> None:
        logger.error(f"Leap service connection lost: {exc}")
        loop.call_soon_threadsafe(shutdown_event.set)

    service = LeapDriverService(
        url=args.url,
        receive_timeout=args.receive_timeout,
        mqtt_host=args.mqtt_host,
        mqtt_port=args.mqtt_port,
        mqtt_prefix=args.mqtt_prefix,
        enable_mqtt=not args.no_mqtt,
        on_error=on_connection_lost,
    )

    def signal_handler():
        logger.info("Shutdown signal received")
        shutdown_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    try:
        await loop.run_in_executor(None, service.start)
    except LeapDriverError as e:
        logger.error(f"Failed to start: {e}")
        await loop.run_in_executor(None, service.stop)
        return 1

    tasks = [asyncio.create_task(shutdown_event.wait())]
    if args.status_port:
        tasks.append(asyncio.create_task(run_status_server(service, args.status_port)))
        logger.info(f"Status server on port {args.status_port}")

    try:
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)

        # Cancel pending tasks
        for task in pending:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
    finally:
        await loop.run_in_executor(None, service.stop)

    return 1 if service.driver.last_error else 0


def main(argv=None) -> None:
    """Main entry point."""
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    try:
        sys.exit(asyncio.run(main_async(args)))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(0)


if __name__ == "__main__":
    main()
