from flask import Blueprint, request, jsonify

from feed_api.errors import ValidationFailedError
from feed_api.services import auth_service


auth_bp = Blueprint("auth", __name__)


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationFailedError("Invalid JSON body")
    return data


@auth_bp.route("/signup", methods=["PUT"])
def signup():
    data = _json_body()
    user = auth_service.signup(
        data.get("email"),
        data.get("name"),
        data.get("password"),
    )
    return jsonify({"message": "User created!", "user_id": user.id}), 201


@auth_bp.route("/login", methods=["POST"])
def login():
    data = _json_body()
    tokens = auth_service.login(
        data.get("email"),
        data.get("password")
    )
    return jsonify(tokens), 200
