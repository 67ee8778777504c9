import logging
from threading import Lock

import urllib3
from minio import Minio


logger = logging.getLogger(__name__)

MINIO_SETTINGS = (
    "MINIO_ENDPOINT",
    "MINIO_ACCESS_KEY",
    "MINIO_SECRET_KEY",
    "MINIO_SECURE",
    "MINIO_CONNECT_TIMEOUT",
    "MINIO_READ_TIMEOUT",
    "MINIO_HTTP_POOL_MAXSIZE",
)
DEFAULT_POOL_MAXSIZE = 32


class MinioClientFactory:
    """Builds the MinIO client for a config mapping on first use.

    The client is reused across calls and rebuilt only when one of the
    ``MINIO_*`` connection settings in the mapping changes.
    """

    def __init__(self, config):
        self.config = config
        self._client = None
        self._settings = None
        self._lock = Lock()

    def _current_settings(self):
        return tuple(self.config.get(key) for key in MINIO_SETTINGS)

    def _connect(self, settings):
        (
            endpoint,
            access_key,
            secret_key,
            secure,
            connect_timeout,
            read_timeout,
            pool_maxsize,
        ) = settings
        http_client = urllib3.PoolManager(
            timeout=urllib3.Timeout(connect=connect_timeout, read=read_timeout),
            retries=False,
            maxsize=pool_maxsize or DEFAULT_POOL_MAXSIZE,
        )
        logger.info("Connecting to MinIO at %s", endpoint)
        return Minio(
            endpoint,
            access_key=access_key,
            secret_key=secret_key,
            secure=bool(secure),
            http_client=http_client,
        )

    def __call__(self):
        settings = self._current_settings()
        with self._lock:
            if self._client is None or self._settings != settings:
                self._client = self._connect(settings)
                self._settings = settings
            return self._client
