import io
import os
import shutil
import tempfile
import unittest
from unittest import mock

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from werkzeug.datastructures import FileStorage


class FakeNotifier:
    def __init__(self):
        self.events = []

    def emit(self, event, payload):
        self.events.append((event, payload))


class FakeImageStorage:
    def __init__(self, clear_result=True):
        self.saved = []
        self.cleared = []
        self.clear_result = clear_result

    def save(self, file_storage):
        from feed_api.extensions.image_storage import is_allowed_image

        if not is_allowed_image(file_storage):
            return None
        image_url = f"images/{file_storage.filename}"
        self.saved.append(image_url)
        return image_url

    def clear(self, image_url):
        self.cleared.append(image_url)
        return self.clear_result


def image_file(filename="pic.png", content_type="image/png"):
    return FileStorage(
        stream=io.BytesIO(b"fake-bytes"),
        filename=filename,
        content_type=content_type,
    )


class TestPostService(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        db_fd, cls.db_path = tempfile.mkstemp(suffix=".db")
        os.close(db_fd)
        cls.images_dir = tempfile.mkdtemp()

        from feed_api import create_app
        from feed_api.db import db
        from feed_api import errors
        from feed_api.models.post_model import Post
        from feed_api.repositories import user_repository
        from feed_api.services.post_service import PostService

        cls.app = create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{cls.db_path}",
            "JWT_SECRET_KEY": "test-secret-key-with-enough-length",
            "IMAGE_UPLOAD_FOLDER": cls.images_dir,
        })
        cls.db = db
        cls.errors = errors
        cls.Post = Post
        cls.user_repository = user_repository
        cls.PostService = PostService

    @classmethod
    def tearDownClass(cls):
        shutil.rmtree(cls.images_dir, ignore_errors=True)
        if os.path.exists(cls.db_path):
            os.remove(cls.db_path)

    def setUp(self):
        self.ctx = self.app.app_context()
        self.ctx.push()
        self.db.drop_all()
        self.db.create_all()

        self.notifier = FakeNotifier()
        self.images = FakeImageStorage()
        self.service = self.PostService(self.notifier, self.images, per_page=2)

        self.alice = self.user_repository.create_user("alice@example.com", "Alice", "hash")
        self.bob = self.user_repository.create_user("bob@example.com", "Bob", "hash")

    def tearDown(self):
        self.db.session.remove()
        self.ctx.pop()

    def _create(self, title="A post title", creator=None):
        creator = creator or self.alice
        post, _ = self.service.create_post(
            creator.id, title, "Some content", image_file(f"{title.replace(' ', '-')}.png")
        )
        return post

    def test_create_links_post_to_creator_and_emits_event(self):
        post, creator = self.service.create_post(
            self.alice.id, "A post title", "Some content", image_file()
        )

        self.assertEqual(creator.id, self.alice.id)
        self.assertEqual(post.creator_id, self.alice.id)
        self.assertEqual(post.image_url, "images/pic.png")
        self.assertEqual([p.id for p in self.alice.posts], [post.id])

        self.assertEqual(len(self.notifier.events), 1)
        event, payload = self.notifier.events[0]
        self.assertEqual(event, "posts")
        self.assertEqual(payload["action"], "create")
        self.assertEqual(payload["post"]["id"], post.id)
        self.assertEqual(payload["post"]["creator"], {"id": self.alice.id, "name": "Alice"})

    def test_user_posts_keep_creation_order(self):
        first = self._create("First post title")
        second = self._create("Second post title")
        self.db.session.expire_all()

        alice = self.user_repository.get_by_id(self.alice.id)
        self.assertEqual([p.id for p in alice.posts], [first.id, second.id])

    def test_create_with_non_image_file_persists_nothing(self):
        with self.assertRaises(self.errors.UnprocessableInputError):
            self.service.create_post(
                self.alice.id,
                "A post title",
                "Some content",
                image_file("notes.txt", "text/plain"),
            )

        self.assertEqual(self.Post.query.count(), 0)
        self.assertEqual(self.images.saved, [])
        self.assertEqual(self.notifier.events, [])

    def test_create_without_image_is_unprocessable(self):
        with self.assertRaises(self.errors.UnprocessableInputError) as ctx:
            self.service.create_post(self.alice.id, "A post title", "Some content", None)

        self.assertEqual(ctx.exception.status_code, 422)
        self.assertEqual(self.Post.query.count(), 0)

    def test_create_validates_before_storing_image(self):
        with self.assertRaises(self.errors.ValidationFailedError) as ctx:
            self.service.create_post(self.alice.id, "  abc ", "", image_file())

        self.assertIn("title", ctx.exception.data)
        self.assertIn("content", ctx.exception.data)
        self.assertEqual(self.images.saved, [])

    def test_create_for_unknown_user_is_not_found(self):
        with self.assertRaises(self.errors.NotFoundError):
            self.service.create_post(9999, "A post title", "Some content", image_file())

    def test_list_returns_true_count_on_every_page(self):
        posts = [self._create(f"Post title {n}") for n in range(5)]

        seen = []
        for page in (1, 2, 3, 4):
            total_items, page_posts = self.service.list_posts(page)
            self.assertEqual(total_items, 5)
            self.assertLessEqual(len(page_posts), 2)
            seen.extend(p.id for p in page_posts)

        self.assertEqual(seen, [p.id for p in reversed(posts)])

    def test_get_missing_post_is_not_found(self):
        with self.assertRaises(self.errors.NotFoundError) as ctx:
            self.service.get_post(42)
        self.assertEqual(ctx.exception.status_code, 404)

    def test_update_by_non_creator_is_forbidden_and_leaves_post(self):
        post = self._create()
        self.notifier.events.clear()

        with self.assertRaises(self.errors.ForbiddenError) as ctx:
            self.service.update_post(
                post.id, self.bob.id, "Other title", "Other content",
                image=image_file("other.png"),
            )

        self.assertEqual(ctx.exception.status_code, 403)
        self.db.session.expire_all()
        stored = self.service.get_post(post.id)
        self.assertEqual(stored.title, "A post title")
        self.assertEqual(stored.image_url, "images/A-post-title.png")
        self.assertEqual(self.images.saved, ["images/A-post-title.png"])
        self.assertEqual(self.images.cleared, [])
        self.assertEqual(self.notifier.events, [])

    def test_update_with_new_image_clears_previous_one(self):
        post = self._create()
        self.notifier.events.clear()

        updated = self.service.update_post(
            post.id, self.alice.id, "Edited title", "Edited content",
            image_url=post.image_url,
            image=image_file("new.png"),
        )

        self.assertEqual(updated.image_url, "images/new.png")
        self.assertEqual(self.images.cleared, ["images/A-post-title.png"])
        event, payload = self.notifier.events[0]
        self.assertEqual(event, "posts")
        self.assertEqual(payload["action"], "update")
        self.assertEqual(payload["post"]["title"], "Edited title")
        self.assertEqual(payload["post"]["creator"]["id"], self.alice.id)

    def test_update_with_same_image_reference_keeps_file(self):
        post = self._create()

        updated = self.service.update_post(
            post.id, self.alice.id, "Edited title", "Edited content",
            image_url=post.image_url,
        )

        self.assertEqual(updated.image_url, "images/A-post-title.png")
        self.assertEqual(self.images.cleared, [])

    def test_update_with_respelled_image_reference_keeps_file(self):
        post = self._create()

        for spelling in ("/images/A-post-title.png", "images\\A-post-title.png"):
            updated = self.service.update_post(
                post.id, self.alice.id, "Edited title", "Edited content",
                image_url=spelling,
            )
            self.assertEqual(updated.image_url, "images/A-post-title.png")

        self.assertEqual(self.images.cleared, [])

    def test_update_succeeds_when_old_image_cannot_be_cleared(self):
        self.images.clear_result = False
        post = self._create()

        updated = self.service.update_post(
            post.id, self.alice.id, "Edited title", "Edited content",
            image=image_file("new.png"),
        )

        self.assertEqual(updated.title, "Edited title")
        self.assertEqual(self.images.cleared, ["images/A-post-title.png"])

    def test_update_with_rejected_upload_falls_back_to_reference(self):
        post = self._create()

        updated = self.service.update_post(
            post.id, self.alice.id, "Edited title", "Edited content",
            image_url=post.image_url,
            image=image_file("notes.txt", "text/plain"),
        )

        self.assertEqual(updated.image_url, post.image_url)

    def test_update_without_any_image_is_unprocessable(self):
        post = self._create()

        with self.assertRaises(self.errors.UnprocessableInputError):
            self.service.update_post(post.id, self.alice.id, "Edited title", "Edited content")

    def test_delete_removes_post_reference_and_image_once(self):
        post = self._create()
        post_id = post.id
        self.notifier.events.clear()

        self.service.delete_post(post_id, self.alice.id)

        self.db.session.expire_all()
        self.assertIsNone(self.db.session.get(self.Post, post_id))
        self.assertEqual(self.user_repository.get_by_id(self.alice.id).posts, [])
        self.assertEqual(self.images.cleared, ["images/A-post-title.png"])
        self.assertEqual(self.notifier.events, [("posts", {"action": "delete", "id": post_id})])
        with self.assertRaises(self.errors.NotFoundError):
            self.service.get_post(post_id)

    def test_delete_by_non_creator_is_forbidden(self):
        post = self._create()

        with self.assertRaises(self.errors.ForbiddenError):
            self.service.delete_post(post.id, self.bob.id)

        self.assertIsNotNone(self.db.session.get(self.Post, post.id))
        self.assertEqual(self.images.cleared, [])

    def test_delete_missing_post_is_not_found(self):
        with self.assertRaises(self.errors.NotFoundError):
            self.service.delete_post(404, self.alice.id)

    def test_failed_delete_keeps_post_and_image(self):
        post = self._create()
        post_id = post.id
        self.notifier.events.clear()

        failure = OperationalError("DELETE FROM posts", {}, Exception("database is locked"))
        with mock.patch.object(Session, "commit", side_effect=failure):
            with self.assertRaises(self.errors.InfrastructureError) as ctx:
                self.service.delete_post(post_id, self.alice.id)

        self.assertEqual(ctx.exception.status_code, 500)
        self.db.session.expire_all()
        self.assertIsNotNone(self.db.session.get(self.Post, post_id))
        self.assertEqual(self.images.cleared, [])
        self.assertEqual(self.notifier.events, [])

    def test_delete_with_missing_creator_row_logs_warning(self):
        post = self._create()
        post_id, alice_id = post.id, self.alice.id
        self.db.session.execute(
            self.db.text("DELETE FROM users WHERE id = :id"), {"id": alice_id}
        )
        self.db.session.commit()
        self.db.session.expunge_all()

        with self.assertLogs("feed_api.services.post_service", level="WARNING") as logs:
            self.service.delete_post(post_id, alice_id)

        self.assertIn(f"missing user {alice_id}", logs.output[0])
        self.assertIsNone(self.db.session.get(self.Post, post_id))
        self.assertEqual(self.images.cleared, ["images/A-post-title.png"])


if __name__ == "__main__":
    unittest.main()
