from flask import Blueprint, current_app, request, jsonify
from flask_jwt_extended import jwt_required, get_jwt_identity

from feed_api.errors import ValidationFailedError
from feed_api.extensions.image_storage import is_allowed_image
from feed_api.services import user_service
from feed_api.services.post_service import serialize_post


feed_bp = Blueprint("feed", __name__)


def _post_service():
    return current_app.extensions["post_service"]


def _actor_id() -> int:
    return int(get_jwt_identity())


def _post_fields():
    content_type = (request.content_type or "").lower()
    if "multipart/form-data" in content_type or "form-urlencoded" in content_type:
        return request.form
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationFailedError("Invalid request body")
    return data


def _uploaded_image():
    # disallowed types are dropped here, as if nothing was uploaded
    image = request.files.get("image")
    return image if is_allowed_image(image) else None


@feed_bp.route("/posts", methods=["GET"])
def list_posts():
    page = request.args.get("page", default=1, type=int)
    total_items, posts = _post_service().list_posts(page)
    return jsonify({
        "message": "Fetched posts successfully.",
        "posts": [serialize_post(post) for post in posts],
        "total_items": total_items
    }), 200


@feed_bp.route("/post", methods=["POST"])
@jwt_required()
def create_post():
    fields = _post_fields()
    post, creator = _post_service().create_post(
        creator_id=_actor_id(),
        title=fields.get("title"),
        content=fields.get("content"),
        image=_uploaded_image(),
    )
    return jsonify({
        "message": "Post created successfully!",
        "post": serialize_post(post),
        "creator": {"id": creator.id, "name": creator.name}
    }), 201


@feed_bp.route("/post/<int:post_id>", methods=["GET"])
def get_post(post_id):
    post = _post_service().get_post(post_id)
    return jsonify({"message": "Post fetched.", "post": serialize_post(post)}), 200


@feed_bp.route("/post/<int:post_id>", methods=["PUT"])
@jwt_required()
def update_post(post_id):
    fields = _post_fields()
    post = _post_service().update_post(
        post_id=post_id,
        actor_id=_actor_id(),
        title=fields.get("title"),
        content=fields.get("content"),
        image_url=fields.get("image"),
        image=_uploaded_image(),
    )
    return jsonify({"message": "Post updated!", "post": serialize_post(post)}), 200


@feed_bp.route("/post/<int:post_id>", methods=["DELETE"])
@jwt_required()
def delete_post(post_id):
    _post_service().delete_post(post_id, _actor_id())
    return jsonify({"message": "Deleted post."}), 200


@feed_bp.route("/status", methods=["GET"])
@jwt_required()
def get_status():
    status = user_service.get_status(_actor_id())
    return jsonify({"status": status}), 200


@feed_bp.route("/status", methods=["PATCH"])
@jwt_required()
def update_status():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationFailedError("Invalid JSON body")
    user_service.update_status(_actor_id(), data.get("status"))
    return jsonify({"message": "Status updated successfully."}), 200
