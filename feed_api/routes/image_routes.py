from flask import Blueprint, current_app

from feed_api.errors import NotFoundError


image_bp = Blueprint("images", __name__)


@image_bp.route("/<path:name>", methods=["GET"])
def get_image(name):
    if "/" in name or "\\" in name or name in {".", ".."}:
        raise NotFoundError("Image not found.")
    return current_app.extensions["image_storage"].serve(name)
