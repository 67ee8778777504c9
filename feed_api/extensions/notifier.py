import logging
from threading import Lock

from feed_api.errors import NotifierAlreadyInitializedError, UninitializedStateError


logger = logging.getLogger(__name__)


class BroadcastChannel:
    """Fans an event out to every client connected on ``namespace``."""

    def __init__(self, transport, namespace="/"):
        self._transport = transport
        self.namespace = namespace

    def broadcast(self, event, payload):
        self._transport.emit(event, payload, namespace=self.namespace)


class Notifier:
    """Change-event channel shared by every request of the process.

    It starts without a transport. The app factory calls ``initialize`` once,
    after the socket server is bound to the app, and only then may services
    ``emit``. Delivery is fire-and-forget: there is no acknowledgement, retry
    or per-subscriber buffering.
    """

    def __init__(self):
        self._channel = None
        self._lock = Lock()

    @property
    def initialized(self) -> bool:
        return self._channel is not None

    def initialize(self, transport, namespace="/"):
        with self._lock:
            if self._channel is not None:
                raise NotifierAlreadyInitializedError("Notifier already initialized")
            self._channel = BroadcastChannel(transport, namespace=namespace)
        logger.info("Notifier initialized on namespace %s", namespace)
        return self._channel

    def emit(self, event, payload):
        channel = self._channel
        if channel is None:
            raise UninitializedStateError("Notifier not initialized")

        logger.debug("Broadcasting %s event", event)
        channel.broadcast(event, payload)
