import logging
import sys

from flask import Flask
from flask_cors import CORS
from flask_jwt_extended import JWTManager

from feed_api.config import Config
from feed_api.db import db
from feed_api.errors import register_error_handlers
from feed_api.extensions.extensions import ma, socketio
from feed_api.extensions.image_storage import build_image_storage
from feed_api.extensions.notifier import Notifier
from feed_api.routes.auth_routes import auth_bp
from feed_api.routes.feed_routes import feed_bp
from feed_api.routes.image_routes import image_bp
from feed_api.services.post_service import PostService
from feed_api.socket_events import register_socket_events


def _configure_logging(level_name: str):
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("engineio").setLevel(logging.WARNING)
    logging.getLogger("socketio").setLevel(logging.WARNING)


def create_app(test_config=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    _configure_logging(app.config["LOG_LEVEL"])

    db.init_app(app)
    ma.init_app(app)
    JWTManager(app)

    origins = app.config["CORS_ALLOWED_ORIGINS"]
    cors_origins = "*" if "*" in origins else origins
    CORS(app, origins=cors_origins)
    # handlers declared before the first init_app are re-bound to every server
    register_socket_events()
    socketio.init_app(app, cors_allowed_origins=cors_origins)

    notifier = Notifier()
    notifier.initialize(socketio)
    image_storage = build_image_storage(app.config)
    app.extensions["notifier"] = notifier
    app.extensions["image_storage"] = image_storage
    app.extensions["post_service"] = PostService(
        notifier=notifier,
        images=image_storage,
        per_page=app.config["POSTS_PER_PAGE"],
    )

    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(feed_bp, url_prefix="/feed")
    app.register_blueprint(image_bp, url_prefix="/images")
    register_error_handlers(app)

    with app.app_context():
        db.create_all()

    return app
