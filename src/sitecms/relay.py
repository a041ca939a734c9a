"""
Cross-process change relay using ZeroMQ.

ChangeRelay forwards change events published on a local broadcaster to a
PUB socket; ChangeRelayListener subscribes to such a socket and republishes
the events on its own local broadcaster, so display surfaces in other
processes refresh when an editor saves.
"""

import json
import threading
import time
from typing import Any, Dict, Optional

import zmq

from sitecms.events import CMS_UPDATE_EVENT, ChangeBroadcaster, ChangeEvent, Subscription
from sitecms.logger import setup_logger

logger = setup_logger(__name__)

RELAY_TOPIC = "content"
SUBSCRIBER_SETTLE_SECONDS = 0.5


class RelayMessage:
    """Wire format for relayed change events."""

    def __init__(self, detail: Dict[str, Any], sender: str, timestamp: Optional[float] = None):
        """
        Create a message.

        Args:
            detail: Change event payload {page, section, data?, updatedAt?}
            sender: Service name that sent the message
            timestamp: Unix timestamp (auto-generated if None)
        """
        self.detail = detail
        self.sender = sender
        self.timestamp = timestamp or time.time()

    def to_json(self) -> str:
        """Serialize message to JSON string."""
        return json.dumps({
            "type": RELAY_TOPIC,
            "event": CMS_UPDATE_EVENT,
            "data": self.detail,
            "sender": self.sender,
            "timestamp": self.timestamp,
        })

    @classmethod
    def from_json(cls, json_str: str) -> "RelayMessage":
        """Deserialize message from JSON string."""
        obj = json.loads(json_str)
        return cls(detail=obj["data"], sender=obj["sender"], timestamp=obj["timestamp"])

    def to_event(self) -> ChangeEvent:
        return ChangeEvent.from_dict(self.detail, source=self.sender)

    def __repr__(self) -> str:
        return f"RelayMessage(sender={self.sender}, data={self.detail})"


class ChangeRelay:
    """Publishes local change events on a PUB socket."""

    def __init__(self, broadcaster: ChangeBroadcaster, port: int, service_name: str,
                 settle: float = SUBSCRIBER_SETTLE_SECONDS):
        """
        Initialize relay.

        Args:
            broadcaster: Local broadcaster to forward from
            port: Port to publish on
            service_name: Name of this service
            settle: Seconds to wait after binding so listeners can (re)connect
        """
        self.broadcaster = broadcaster
        self.port = port
        self.service_name = service_name
        self.context = zmq.Context()
        self.socket = self.context.socket(zmq.PUB)
        self.socket.setsockopt(zmq.LINGER, 1000)
        self.socket.bind(f"tcp://*:{port}")

        # Give subscribers time to connect
        time.sleep(settle)

        self._subscription: Optional[Subscription] = broadcaster.subscribe(self._forward)
        self.forwarded = 0

        logger.info(f"Change relay started: {service_name} on port {port}")

    def _forward(self, event: ChangeEvent) -> None:
        # Events relayed in from other services are not sent out again
        if event.source is not None and event.source != self.service_name:
            return

        message = RelayMessage(event.to_dict(), self.service_name)
        self.socket.send_string(f"{RELAY_TOPIC} {message.to_json()}")
        self.forwarded += 1
        logger.debug(f"Relayed: {message}")

    def close(self) -> None:
        """Stop forwarding and close the socket."""
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None
        self.socket.close()
        self.context.term()
        logger.info(f"Change relay closed: {self.service_name}")


class ChangeRelayListener:
    """
    Receives relayed change events and republishes them locally.
    Runs in a background thread.
    """

    def __init__(
        self,
        broadcaster: ChangeBroadcaster,
        host: str,
        port: int,
        service_name: str,
    ):
        """
        Initialize listener.

        Args:
            broadcaster: Local broadcaster to publish into
            host: Relay host to connect to
            port: Relay port to connect to
            service_name: Name of this service (own messages are ignored)
        """
        self.broadcaster = broadcaster
        self.host = host
        self.port = port
        self.service_name = service_name
        self.received = 0

        self._running = False
        self._thread: Optional[threading.Thread] = None
        self._context: Optional[zmq.Context] = None
        self._socket = None

        logger.info(f"ChangeRelayListener initialized (host={host}, port={port})")

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Start listening in a background thread."""
        if self._running:
            logger.warning("ChangeRelayListener already running")
            return

        self._context = zmq.Context()
        self._socket = self._context.socket(zmq.SUB)
        self._socket.connect(f"tcp://{self.host}:{self.port}")
        self._socket.setsockopt_string(zmq.SUBSCRIBE, RELAY_TOPIC)

        self._running = True
        self._thread = threading.Thread(
            target=self._listen_loop,
            name="ChangeRelayListener",
            daemon=True
        )
        self._thread.start()
        logger.info(f"ChangeRelayListener started on {self.host}:{self.port}")

    def stop(self) -> None:
        """Stop listening and close the socket."""
        if not self._running:
            return

        logger.info("Stopping ChangeRelayListener...")
        self._running = False

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=2.0)

        if self._socket is not None:
            self._socket.close()
            self._socket = None
        if self._context is not None:
            self._context.term()
            self._context = None

        logger.info("ChangeRelayListener stopped")

    def _listen_loop(self) -> None:
        """Main listening loop (runs in background thread)."""
        while self._running:
            try:
                self._socket.setsockopt(zmq.RCVTIMEO, 1000)
                raw = self._socket.recv_string()
            except zmq.Again:
                continue
            except zmq.ZMQError as e:
                if self._running:
                    logger.error(f"Error receiving relay message: {e}")
                break

            self.handle_raw(raw)

    def handle_raw(self, raw: str) -> bool:
        """
        Decode one relay frame and republish it locally.

        Returns:
            True if an event was published
        """
        parts = raw.split(' ', 1)
        if len(parts) != 2:
            logger.warning(f"Malformed relay frame: {raw[:80]}")
            return False

        try:
            message = RelayMessage.from_json(parts[1])
            event = message.to_event()
        except (ValueError, KeyError, TypeError) as e:
            logger.error(f"Error decoding relay message: {e}")
            return False

        if message.sender == self.service_name:
            return False

        self.received += 1
        self.broadcaster.publish(event)
        return True
