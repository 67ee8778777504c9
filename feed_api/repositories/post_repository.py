from sqlalchemy.orm import joinedload

from feed_api.db import db
from feed_api.models.post_model import Post


def count_posts() -> int:
    return Post.query.count()


def get_page(offset: int, limit: int):
    return (
        Post.query
        .options(joinedload(Post.creator))
        .order_by(Post.created_at.desc(), Post.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


def get_by_id(post_id: int, with_creator: bool = True):
    options = [joinedload(Post.creator)] if with_creator else []
    return db.session.get(Post, post_id, options=options)


def add_post(title, content, image_url, creator):
    post = Post(
        title=title,
        content=content,
        image_url=image_url,
        creator=creator,
    )
    db.session.add(post)
    return post


def delete_post(post):
    db.session.delete(post)
