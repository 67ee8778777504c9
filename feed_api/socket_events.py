import logging

from flask import request

from feed_api.extensions.extensions import socketio


logger = logging.getLogger(__name__)

_registered = False
_connected_clients = set()


def connected_count():
    return len(_connected_clients)


def register_socket_events():
    global _registered
    if _registered:
        return

    @socketio.on("connect")
    def handle_connect(auth=None):
        _connected_clients.add(request.sid)
        logger.info("Client connected: %s", request.sid)

    @socketio.on("disconnect")
    def handle_disconnect(*args):
        _connected_clients.discard(request.sid)
        logger.info("Client disconnected: %s", request.sid)

    _registered = True
