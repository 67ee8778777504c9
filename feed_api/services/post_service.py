import logging

from marshmallow import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from feed_api.db import db
from feed_api.errors import (
    ForbiddenError,
    InfrastructureError,
    NotFoundError,
    UnprocessableInputError,
    ValidationFailedError,
)
from feed_api.extensions.image_storage import normalize_image_url
from feed_api.repositories import post_repository, user_repository
from feed_api.schemas.post_schema import PostInputSchema, PostSchema


logger = logging.getLogger(__name__)

POSTS_EVENT = "posts"
DEFAULT_PER_PAGE = 2

post_schema = PostSchema()
post_input_schema = PostInputSchema()


def _validate_post_input(title, content):
    try:
        return post_input_schema.load({"title": title, "content": content})
    except ValidationError as e:
        raise ValidationFailedError(
            "Validation failed, entered data is incorrect.",
            data=e.messages,
        ) from e


def _normalize_page(page) -> int:
    try:
        page = int(page)
    except (TypeError, ValueError):
        return 1
    return page if page >= 1 else 1


def _commit(action: str):
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error("Failed to %s: %s", action, e)
        raise InfrastructureError(f"Could not {action}.") from e


def serialize_post(post):
    return post_schema.dump(post)


class PostService:
    """Post lifecycle: listing, reads, and creator-only mutations.

    Every successful mutation is broadcast on the ``posts`` event through the
    injected notifier. Image files are handled by ``images``, which stores
    uploads and clears replaced or deleted images on a best-effort basis.
    """

    def __init__(self, notifier, images, per_page: int = DEFAULT_PER_PAGE):
        self.notifier = notifier
        self.images = images
        self.per_page = per_page

    def list_posts(self, page=1):
        page = _normalize_page(page)
        try:
            total_items = post_repository.count_posts()
            posts = post_repository.get_page(
                offset=(page - 1) * self.per_page,
                limit=self.per_page,
            )
        except SQLAlchemyError as e:
            logger.error("Failed to list posts: %s", e)
            raise InfrastructureError("Could not fetch posts.") from e
        return total_items, posts

    def get_post(self, post_id):
        post = post_repository.get_by_id(post_id)
        if post is None:
            raise NotFoundError("Could not find post.")
        return post

    def create_post(self, creator_id, title, content, image):
        fields = _validate_post_input(title, content)

        creator = user_repository.get_by_id(creator_id)
        if creator is None:
            raise NotFoundError("User not found.")

        image_url = self.images.save(image) if image is not None else None
        if not image_url:
            raise UnprocessableInputError("No image provided.")

        # Post row and the creator's back-reference land in one commit.
        post = post_repository.add_post(
            title=fields["title"],
            content=fields["content"],
            image_url=image_url,
            creator=creator,
        )
        try:
            _commit("create post")
        except InfrastructureError:
            self.images.clear(image_url)
            raise

        logger.info("Post %s created by user %s", post.id, creator.id)
        self.notifier.emit(POSTS_EVENT, {
            "action": "create",
            "post": serialize_post(post),
        })
        return post, creator

    def update_post(self, post_id, actor_id, title, content, image_url=None, image=None):
        fields = _validate_post_input(title, content)

        if image is None and not image_url:
            raise UnprocessableInputError("No file picked.")

        post = self.get_post(post_id)
        if post.creator_id != actor_id:
            raise ForbiddenError("Not authorized!")

        uploaded_url = self.images.save(image) if image is not None else None
        image_url = uploaded_url or normalize_image_url(image_url)
        if not image_url:
            raise UnprocessableInputError("No file picked.")

        previous_image_url = post.image_url
        post.title = fields["title"]
        post.content = fields["content"]
        post.image_url = image_url
        try:
            _commit("update post")
        except InfrastructureError:
            if uploaded_url:
                self.images.clear(uploaded_url)
            raise

        if image_url != normalize_image_url(previous_image_url):
            self.images.clear(previous_image_url)

        logger.info("Post %s updated by user %s", post.id, actor_id)
        self.notifier.emit(POSTS_EVENT, {
            "action": "update",
            "post": serialize_post(post),
        })
        return post

    def delete_post(self, post_id, actor_id):
        post = post_repository.get_by_id(post_id, with_creator=False)
        if post is None:
            raise NotFoundError("Could not find post.")
        if post.creator_id != actor_id:
            raise ForbiddenError("Not authorized!")

        if user_repository.get_by_id(post.creator_id) is None:
            logger.warning(
                "Post %s references missing user %s; deleting without unlink",
                post_id,
                post.creator_id,
            )

        image_url = post.image_url
        post_repository.delete_post(post)
        _commit("delete post")

        self.images.clear(image_url)

        logger.info("Post %s deleted by user %s", post_id, actor_id)
        self.notifier.emit(POSTS_EVENT, {
            "action": "delete",
            "id": post_id,
        })
