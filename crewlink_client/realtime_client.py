import json
import logging
import os
import threading

from websockets.exceptions import WebSocketException
from websockets.sync.client import connect

DEFAULT_WS_URL = "ws://localhost:8000/api/v1/ws"
RECONNECT_DELAY_SECONDS = 5


class RealtimeSubscription:
    """Callback registration for one realtime event; released with `close()`."""

    def __init__(self, client, event, callback):
        self._client = client
        self.event = event
        self.callback = callback
        self.closed = False

    def close(self):
        if self.closed:
            return
        self.closed = True
        self._client._remove_subscription(self)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class RealtimeClient:
    """
    Keeps one WebSocket session to the user's realtime channel.

    The session runs in a daemon thread. When the socket drops the thread
    waits a fixed delay and reconnects; frames sent in the meantime are
    dropped, since the HTTP API stays the durable source of truth.
    """

    def __init__(
        self,
        access_token,
        ws_url=None,
        reconnect_delay=RECONNECT_DELAY_SECONDS,
        connector=connect,
    ):
        self.access_token = access_token
        self.ws_url = ws_url or os.environ.get("CREWLINK_WS_URL", DEFAULT_WS_URL)
        self.reconnect_delay = reconnect_delay
        self._connector = connector

        self._lock = threading.RLock()
        self._subscriptions = {}
        self._websocket = None
        self._stop = threading.Event()
        self._thread = None
        self.on_connection_change = None

        # Configure logging
        self.logger = logging.getLogger("RealtimeClient")
        self.logger.setLevel(logging.INFO)
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            "[%(asctime)s] %(levelname)s:%(name)s: %(message)s"
        )
        handler.setFormatter(formatter)
        if not self.logger.handlers:
            self.logger.addHandler(handler)

    @property
    def is_connected(self):
        with self._lock:
            return self._websocket is not None

    def start(self):
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

    def stop(self):
        self._stop.set()
        with self._lock:
            websocket = self._websocket
        if websocket is not None:
            websocket.close()
        if self._thread and self._thread is not threading.current_thread():
            self._thread.join(timeout=self.reconnect_delay + 1)
        self._thread = None

    def subscribe(self, event, callback):
        """Call `callback(frame_dict)` for every incoming frame tagged `event`."""
        subscription = RealtimeSubscription(self, event, callback)
        with self._lock:
            self._subscriptions.setdefault(event, []).append(subscription)
        return subscription

    def _remove_subscription(self, subscription):
        with self._lock:
            subscriptions = self._subscriptions.get(subscription.event, [])
            if subscription in subscriptions:
                subscriptions.remove(subscription)

    def send_event(self, frame):
        """Send a frame if the session is up; returns False when it was dropped."""
        with self._lock:
            websocket = self._websocket
        if websocket is None:
            self.logger.debug(f"Dropped {frame.get('event')} while disconnected")
            return False
        try:
            websocket.send(json.dumps(frame))
        except (WebSocketException, OSError) as e:
            self.logger.warning(f"Failed to send {frame.get('event')}: {str(e)}")
            return False
        return True

    def send_typing(self, sender_id, receiver_id, is_typing):
        return self.send_event(
            {
                "event": "typing-start" if is_typing else "typing-stop",
                "sender_id": sender_id,
                "receiver_id": receiver_id,
            }
        )

    def _set_connection(self, websocket):
        with self._lock:
            changed = (self._websocket is None) != (websocket is None)
            self._websocket = websocket
        if changed and self.on_connection_change:
            try:
                self.on_connection_change(websocket is not None)
            except Exception as e:
                self.logger.error(f"Error in connection callback: {str(e)}")

    def _dispatch(self, raw):
        try:
            frame = json.loads(raw)
        except json.JSONDecodeError:
            self.logger.warning("Discarded malformed realtime frame")
            return
        event = frame.get("event")
        if event == "error":
            self.logger.warning(f"Server rejected a frame: {frame.get('detail')}")
        with self._lock:
            subscriptions = list(self._subscriptions.get(event, []))
        for subscription in subscriptions:
            try:
                subscription.callback(frame)
            except Exception as e:
                self.logger.error(f"Error in callback for '{event}': {str(e)}")

    def _run(self):
        url = f"{self.ws_url}?token={self.access_token}"
        while not self._stop.is_set():
            try:
                with self._connector(url) as websocket:
                    self._set_connection(websocket)
                    self.logger.info("Realtime session connected")
                    for raw in websocket:
                        self._dispatch(raw)
            except (WebSocketException, OSError) as e:
                self.logger.error(
                    f"Realtime connection error: {str(e)}. Reconnecting in {self.reconnect_delay} seconds..."
                )
            finally:
                self._set_connection(None)
            self._stop.wait(self.reconnect_delay)
        self.logger.info("Realtime session stopped")
