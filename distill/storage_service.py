"""
Cloud Storage wrapper.

Objects are addressed by ``gs://bucket/name`` URIs so that the rest of the
pipeline can pass locators around without knowing about buckets and blobs.
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple

import requests
from google.api_core.exceptions import GoogleAPIError
from google.auth.exceptions import GoogleAuthError
from google.cloud import storage

from .errors import ConfigError, StorageError

logger = logging.getLogger(__name__)

# requests errors escape the storage client untranslated on network failures.
CLIENT_ERRORS = (GoogleAPIError, GoogleAuthError, requests.RequestException)


def split_uri(uri: str) -> Tuple[str, str]:
    """Split ``gs://bucket/name`` into ``(bucket, name)``."""
    if not uri.startswith("gs://"):
        raise StorageError(f"Not a Cloud Storage URI: {uri}")
    bucket, _, name = uri[len("gs://"):].partition("/")
    if not bucket or not name:
        raise StorageError(f"Not a Cloud Storage URI: {uri}")
    return bucket, name


class CloudStorage:
    """Upload, download and delete objects in one bucket."""

    def __init__(self, bucket_name: str, client: Optional[storage.Client] = None) -> None:
        self.bucket_name = bucket_name
        self._client = client or storage.Client()

    def check_bucket(self) -> None:
        """Make sure the configured bucket exists and is visible."""
        try:
            bucket = self._client.lookup_bucket(self.bucket_name)
        except CLIENT_ERRORS as exc:
            raise ConfigError(f"Error looking up bucket {self.bucket_name}: {exc}") from exc
        if bucket is None:
            raise ConfigError(f"The configured bucket '{self.bucket_name}' was not found.")

    def uri_for(self, object_name: str) -> str:
        return f"gs://{self.bucket_name}/{object_name}"

    def put(self, local_path: str, object_name: str, *, content_type: Optional[str] = None) -> str:
        blob = self._client.bucket(self.bucket_name).blob(object_name)
        try:
            blob.upload_from_filename(local_path, content_type=content_type)
        except CLIENT_ERRORS + (OSError,) as exc:
            raise StorageError(f"Failed to upload {local_path}: {exc}") from exc
        uri = self.uri_for(object_name)
        logger.info("Uploaded %s to %s", local_path, uri)
        return uri

    def download_text(self, uri: str) -> str:
        bucket_name, name = split_uri(uri)
        try:
            return self._client.bucket(bucket_name).blob(name).download_as_text()
        except CLIENT_ERRORS as exc:
            raise StorageError(f"Failed to download {uri}: {exc}") from exc

    def delete(self, uri: str) -> None:
        bucket_name, name = split_uri(uri)
        try:
            self._client.bucket(bucket_name).blob(name).delete()
        except CLIENT_ERRORS as exc:
            raise StorageError(f"Failed to delete {uri}: {exc}") from exc
        logger.info("Deleted %s", uri)
