from feed_api.db import db

DEFAULT_STATUS = "I am new!"

class User(db.Model):
    __tablename__ = "users"
    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False)
    name = db.Column(db.String(120), nullable=False)
    password_hash = db.Column(db.String(256), nullable=False)
    status = db.Column(db.String(255), nullable=False, default=DEFAULT_STATUS)

    # creation order
    posts = db.relationship(
        "Post",
        back_populates="creator",
        order_by="[Post.created_at, Post.id]",
        lazy="select"
    )
