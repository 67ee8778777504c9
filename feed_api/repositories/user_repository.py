from feed_api.models.user_model import User
from feed_api.db import db


def get_by_id(user_id: int):
    return db.session.get(User, user_id)


def get_by_email(email: str):
    return User.query.filter_by(email=email).first()


def create_user(email, name, password_hash):
    user = User(
        email=email,
        name=name,
        password_hash=password_hash
    )
    db.session.add(user)
    db.session.commit()
    return user
