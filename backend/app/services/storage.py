"""
Object storage backends.

Both backends expose the same small interface; the locator returned by
``put`` is the object key and is what gets stored on the submission record.
"""
import logging
from abc import ABC, abstractmethod
from functools import lru_cache
from pathlib import Path

import httpx
from storage3.utils import StorageException
from supabase import Client, create_client

from app import config
from app.errors import ObjectNotFound, UpstreamTimeout, UpstreamUnavailable

logger = logging.getLogger(__name__)


class ObjectStorage(ABC):
    @abstractmethod
    def put(self, data: bytes, key: str, content_type: str) -> str:
        """Store bytes under ``key`` and return the locator"""

    @abstractmethod
    def read(self, locator: str) -> bytes:
        pass

    @abstractmethod
    def delete(self, locator: str) -> None:
        pass

    @abstractmethod
    def public_url(self, locator: str) -> str:
        pass


class LocalStorage(ObjectStorage):
    """Files under a base directory, served by the app at ``url_prefix``"""

    def __init__(self, base_path: Path = None, url_prefix: str = "/uploads"):
        self.base_path = Path(base_path or config.UPLOAD_DIR)
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.url_prefix = url_prefix.rstrip("/")

    def _path(self, locator: str) -> Path:
        path = (self.base_path / locator).resolve()
        if self.base_path.resolve() not in path.parents:
            raise ObjectNotFound(locator)
        return path

    def put(self, data: bytes, key: str, content_type: str) -> str:
        path = self._path(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            raise UpstreamUnavailable(f"Could not write {key}: {e}", cause=e)
        return key

    def read(self, locator: str) -> bytes:
        path = self._path(locator)
        if not path.is_file():
            raise ObjectNotFound(locator)
        try:
            return path.read_bytes()
        except OSError as e:
            raise UpstreamUnavailable(f"Could not read {locator}: {e}", cause=e)

    def delete(self, locator: str) -> None:
        try:
            self._path(locator).unlink(missing_ok=True)
        except OSError as e:
            raise UpstreamUnavailable(f"Could not delete {locator}: {e}", cause=e)

    def public_url(self, locator: str) -> str:
        return f"{self.url_prefix}/{locator}"


class SupabaseStorage(ObjectStorage):
    """
    Objects in a Supabase Storage bucket

    Network calls go through the Supabase client, whose storage client
    carries its own request timeout.
    """

    def __init__(self, client: Client, bucket: str = None):
        self.client = client
        self.bucket = bucket or config.SUPABASE_BUCKET

    def _bucket(self):
        return self.client.storage.from_(self.bucket)

    def put(self, data: bytes, key: str, content_type: str) -> str:
        try:
            self._bucket().upload(path=key, file=data, file_options={"content-type": content_type})
        except httpx.TimeoutException as e:
            raise UpstreamTimeout(f"Supabase upload of {key} timed out: {e}")
        except (httpx.HTTPError, StorageException) as e:
            logger.error(f"Supabase upload of {key} failed: {e}")
            raise UpstreamUnavailable(f"Supabase upload failed: {e}", cause=e)
        return key

    def read(self, locator: str) -> bytes:
        try:
            return self._bucket().download(locator)
        except httpx.TimeoutException as e:
            raise UpstreamTimeout(f"Supabase download of {locator} timed out: {e}")
        except StorageException as e:
            if _is_not_found(e):
                raise ObjectNotFound(locator)
            logger.error(f"Supabase download of {locator} failed: {e}")
            raise UpstreamUnavailable(f"Supabase download failed: {e}", cause=e)
        except httpx.HTTPError as e:
            logger.error(f"Supabase download of {locator} failed: {e}")
            raise UpstreamUnavailable(f"Supabase download failed: {e}", cause=e)

    def delete(self, locator: str) -> None:
        # Supabase-py uses remove() which takes a list of paths
        try:
            self._bucket().remove([locator])
        except (httpx.HTTPError, StorageException) as e:
            raise UpstreamUnavailable(f"Supabase delete failed: {e}", cause=e)

    def public_url(self, locator: str) -> str:
        return self._bucket().get_public_url(locator)


def _is_not_found(error: StorageException) -> bool:
    status = str(getattr(error, "status", "") or getattr(error, "statusCode", ""))
    return status == "404" or "not found" in str(error).lower()


@lru_cache
def get_storage() -> ObjectStorage:
    """FastAPI dependency: Supabase when configured, local disk otherwise"""
    if config.is_supabase_configured():
        client = create_client(config.SUPABASE_URL, config.SUPABASE_SERVICE_KEY)
        logger.info(f"Using Supabase storage bucket '{config.SUPABASE_BUCKET}'")
        return SupabaseStorage(client)
    logger.info(f"Using local storage at {config.UPLOAD_DIR}")
    return LocalStorage()
