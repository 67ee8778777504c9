from marshmallow import ValidationError

from feed_api.db import db
from feed_api.errors import NotFoundError, ValidationFailedError
from feed_api.repositories import user_repository
from feed_api.schemas.user_schema import StatusSchema


status_schema = StatusSchema()


def _get_user(user_id):
    user = user_repository.get_by_id(user_id)
    if not user:
        raise NotFoundError("User not found.")
    return user


def get_status(user_id):
    user = _get_user(user_id)
    if not user.status:
        raise ValidationFailedError("Status cannot be found.")
    return user.status


def update_status(user_id, status):
    try:
        fields = status_schema.load({"status": status})
    except ValidationError as e:
        raise ValidationFailedError(
            "Validation failed, entered data is incorrect.",
            data=e.messages,
        ) from e

    user = _get_user(user_id)
    user.status = fields["status"]
    db.session.commit()
    return user.status
