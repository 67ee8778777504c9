from flask_marshmallow import Marshmallow
from flask_socketio import SocketIO

socketio = SocketIO()
ma = Marshmallow()
