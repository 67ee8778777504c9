import logging
import os
import uuid

from flask import Response, send_from_directory, stream_with_context
from minio.error import S3Error
from werkzeug.utils import secure_filename

from feed_api.errors import NotFoundError
from feed_api.extensions.minio_client import MinioClientFactory


logger = logging.getLogger(__name__)

ALLOWED_IMAGE_MIME_TYPES = {
    "image/png",
    "image/jpg",
    "image/jpeg",
}

IMAGE_URL_PREFIX = "images/"
STREAM_CHUNK_SIZE = 256 * 1024


def is_allowed_image(file_storage) -> bool:
    if file_storage is None or not getattr(file_storage, "filename", ""):
        return False
    return (getattr(file_storage, "mimetype", None) or "") in ALLOWED_IMAGE_MIME_TYPES


def _unique_name(file_storage) -> str:
    original = secure_filename(file_storage.filename) or "image"
    return f"{uuid.uuid4().hex}-{original}"


def _name_from_url(image_url):
    """Object name inside the storage for a stored ``images/...`` reference."""
    if not isinstance(image_url, str):
        return None
    normalized = image_url.replace("\\", "/").lstrip("/")
    if not normalized.startswith(IMAGE_URL_PREFIX):
        return None
    name = normalized[len(IMAGE_URL_PREFIX):]
    if not name or name != os.path.basename(name) or name in {".", ".."}:
        return None
    return name


def normalize_image_url(image_url):
    """Canonical ``images/<name>`` spelling of a reference, else it unchanged."""
    name = _name_from_url(image_url)
    if name is None:
        return image_url
    return IMAGE_URL_PREFIX + name


class LocalImageStorage:
    """Images written to a directory on the local disk."""

    def __init__(self, root: str):
        self.root = os.path.abspath(root)

    def save(self, file_storage):
        if not is_allowed_image(file_storage):
            return None

        os.makedirs(self.root, exist_ok=True)
        name = _unique_name(file_storage)
        file_storage.save(os.path.join(self.root, name))
        logger.info("Stored image %s", name)
        return IMAGE_URL_PREFIX + name

    def clear(self, image_url) -> bool:
        name = _name_from_url(image_url)
        if name is None:
            logger.warning("Refusing to clear image outside storage: %r", image_url)
            return False

        try:
            os.remove(os.path.join(self.root, name))
        except OSError as e:
            logger.warning("Failed to clear image %s: %s", image_url, e)
            return False

        logger.info("Cleared image %s", name)
        return True

    def serve(self, name):
        return send_from_directory(self.root, name)


class MinioImageStorage:
    """Images kept as objects under ``images/`` in a MinIO bucket."""

    def __init__(self, bucket: str, client_factory):
        self.bucket = bucket
        self._client_factory = client_factory
        self._bucket_ready = False

    def _client(self):
        client = self._client_factory()
        if not self._bucket_ready:
            if not client.bucket_exists(bucket_name=self.bucket):
                client.make_bucket(bucket_name=self.bucket)
            self._bucket_ready = True
        return client

    def save(self, file_storage):
        if not is_allowed_image(file_storage):
            return None

        name = _unique_name(file_storage)
        object_name = IMAGE_URL_PREFIX + name
        self._client().put_object(
            bucket_name=self.bucket,
            object_name=object_name,
            data=file_storage.stream,
            length=-1,
            part_size=10 * 1024 * 1024,
            content_type=file_storage.mimetype,
        )
        logger.info("Stored image %s in bucket %s", name, self.bucket)
        return object_name

    def clear(self, image_url) -> bool:
        name = _name_from_url(image_url)
        if name is None:
            logger.warning("Refusing to clear image outside storage: %r", image_url)
            return False

        try:
            self._client().remove_object(
                bucket_name=self.bucket,
                object_name=IMAGE_URL_PREFIX + name,
            )
        except Exception as e:
            logger.warning("Failed to clear image %s: %s", image_url, e)
            return False

        logger.info("Cleared image %s from bucket %s", name, self.bucket)
        return True

    def serve(self, name):
        try:
            minio_response = self._client().get_object(
                bucket_name=self.bucket,
                object_name=IMAGE_URL_PREFIX + name,
            )
        except S3Error as e:
            if e.code in {"NoSuchKey", "NoSuchBucket", "NoSuchObject"}:
                raise NotFoundError("Image not found.") from e
            raise

        def _stream():
            try:
                for chunk in minio_response.stream(STREAM_CHUNK_SIZE):
                    yield chunk
            finally:
                minio_response.close()
                minio_response.release_conn()

        return Response(
            stream_with_context(_stream()),
            status=200,
            content_type=minio_response.headers.get(
                "Content-Type", "application/octet-stream"
            ),
            direct_passthrough=True,
        )


def build_image_storage(config):
    backend = config.get("IMAGE_STORAGE", "local")
    if backend == "minio":
        return MinioImageStorage(
            config["MINIO_BUCKET"],
            client_factory=MinioClientFactory(config),
        )
    if backend == "local":
        return LocalImageStorage(config["IMAGE_UPLOAD_FOLDER"])
    raise ValueError(f"Unknown image storage backend: {backend}")
