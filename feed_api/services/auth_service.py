import logging

from marshmallow import ValidationError
from werkzeug.security import generate_password_hash, check_password_hash
from flask_jwt_extended import create_access_token

from feed_api.errors import UnauthorizedError, ValidationFailedError
from feed_api.repositories import user_repository
from feed_api.schemas.user_schema import LoginSchema, SignupSchema


logger = logging.getLogger(__name__)

signup_schema = SignupSchema()
login_schema = LoginSchema()


def _load(schema, data):
    try:
        return schema.load(data)
    except ValidationError as e:
        raise ValidationFailedError(
            "Validation failed.",
            data=e.messages,
        ) from e


def signup(email, name, password):
    fields = _load(signup_schema, {
        "email": email,
        "name": name,
        "password": password,
    })

    if user_repository.get_by_email(fields["email"]):
        raise ValidationFailedError(
            "Validation failed.",
            data={"email": ["E-Mail address already exists!"]},
        )

    user = user_repository.create_user(
        email=fields["email"],
        name=fields["name"],
        password_hash=generate_password_hash(fields["password"]),
    )
    logger.info("User %s signed up", user.id)
    return user


def login(email, password):
    fields = _load(login_schema, {"email": email, "password": password})

    user = user_repository.get_by_email(fields["email"].strip().lower())
    if not user:
        raise UnauthorizedError("A user with this email could not be found.")
    if not check_password_hash(user.password_hash, fields["password"]):
        raise UnauthorizedError("Wrong password!")

    return {
        "token": create_access_token(identity=str(user.id)),
        "user_id": user.id
    }
