"""
Fetching images and reports by URL or storage locator.
"""
import logging

import requests

from app import config
from app.errors import ObjectNotFound, UpstreamTimeout, UpstreamUnavailable
from app.services.storage import ObjectStorage

logger = logging.getLogger(__name__)


def is_remote(ref: str) -> bool:
    return ref.startswith(("http://", "https://"))


def fetch_bytes(ref: str, storage: ObjectStorage, timeout: float = None) -> bytes:
    """
    Read raw bytes (an image or a stored report) from a URL or a storage locator

    Args:
        ref: http(s) URL or object storage locator
        storage: Backend used for locators
        timeout: Seconds before a remote fetch gives up

    Raises:
        ObjectNotFound: Nothing exists at ref
        UpstreamTimeout: The remote source did not answer in time
        UpstreamUnavailable: The remote source failed
    """
    if not is_remote(ref):
        return storage.read(ref)

    timeout = timeout if timeout is not None else config.FETCH_TIMEOUT_SECONDS
    try:
        response = requests.get(ref, timeout=timeout)
    except requests.Timeout as e:
        logger.error(f"Timed out fetching {ref}: {e}")
        raise UpstreamTimeout(f"Timed out fetching {ref!r} after {timeout}s")
    except requests.RequestException as e:
        logger.error(f"Failed to fetch {ref}: {e}")
        raise UpstreamUnavailable(f"Failed to fetch {ref!r}: {e}", cause=e)

    if response.status_code == 404:
        raise ObjectNotFound(ref)
    if response.status_code != 200:
        raise UpstreamUnavailable(f"Failed to download {ref!r}: {response.status_code}")
    return response.content

