from __future__ import annotations
"""Virtual folder operations on top of a flat S3 bucket."""
import logging
import mimetypes
from typing import Callable, Iterator

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from .exceptions import (
    DeleteFailedError,
    ListFailedError,
    NotFoundError,
    ReadFailedError,
    ValidationFailedError,
    WriteFailedError,
)
from .models import FileEntry, FileListing, FilePayload, FolderEntry
from .profiles import StorageProfile
from .utils import build_public_url, clean_key, normalize_prefix

LOGGER = logging.getLogger(__name__)

DELIMITER = "/"
# S3 DeleteObjects accepts at most this many keys per request.
DELETE_BATCH_SIZE = 1000
DEFAULT_CONTENT_TYPE = "application/octet-stream"
MISSING_KEY_CODES = frozenset({"NoSuchKey", "NotFound", "404"})

StoreError = (ClientError, BotoCoreError)


def describe_error(exc: Exception) -> str:
    """Human readable message for a botocore error."""
    if isinstance(exc, ClientError):
        error = exc.response.get("Error", {})
        message = error.get("Message")
        code = error.get("Code")
        if message and code:
            return f"{code}: {message}"
        if message or code:
            return str(message or code)
    return str(exc)


def is_missing_key(exc: Exception) -> bool:
    if not isinstance(exc, ClientError):
        return False
    return str(exc.response.get("Error", {}).get("Code", "")) in MISSING_KEY_CODES


class S3FileService:
    """Maps folder semantics onto prefix/delimiter queries of one bucket.

    The service keeps a single client for the lifetime of the instance and
    holds no other state between calls.
    """

    def __init__(
        self,
        profile: StorageProfile,
        client_factory: Callable[..., object] | None = None,
    ):
        self._profile = profile
        self._client_factory = client_factory or boto3.client
        self._client = self._create_client()

    @property
    def bucket(self) -> str:
        return self._profile.bucket

    def _create_client(self):
        config = Config(signature_version="s3v4")
        return self._client_factory(
            "s3",
            endpoint_url=self._profile.endpoint_url or None,
            region_name=self._profile.region or None,
            aws_access_key_id=self._profile.access_key,
            aws_secret_access_key=self._profile.secret_key,
            config=config,
        )

    def test_connection(self) -> None:
        """Perform a one-key listing to validate credentials and bucket."""

        if not self._profile.bucket or not self._profile.region:
            raise ValidationFailedError("Incomplete configuration: bucket and region are required")
        try:
            self._client.list_objects_v2(Bucket=self.bucket, MaxKeys=1)
        except StoreError as exc:
            LOGGER.exception("Connection test failed for bucket '%s'", self.bucket)
            raise ListFailedError(f"Connection test failed: {describe_error(exc)}") from exc

    def list_files(self, prefix: str = "") -> FileListing:
        """Return the direct children of ``prefix``.

        ``"docs"`` and ``"docs/"`` list identically. The folder's own marker
        object never appears among its files.

        Raises:
            ListFailedError: when any page of the listing fails.
        """

        list_prefix = normalize_prefix(prefix)
        listing = FileListing(prefix=list_prefix)
        LOGGER.debug("Listing '%s' in bucket '%s'", list_prefix, self.bucket)
        try:
            for page in self._iter_pages(list_prefix, delimiter=DELIMITER):
                for common in page.get("CommonPrefixes", []):
                    folder_prefix = common["Prefix"]
                    listing.folders.append(
                        FolderEntry(
                            prefix=folder_prefix,
                            name=folder_prefix[len(list_prefix):].rstrip(DELIMITER),
                        )
                    )
                for obj in page.get("Contents", []):
                    key = obj["Key"]
                    if key == list_prefix:
                        continue
                    listing.files.append(
                        FileEntry(
                            key=key,
                            name=key[len(list_prefix):],
                            size=int(obj.get("Size", 0)),
                            last_modified=obj.get("LastModified"),
                            url=self.public_url(key),
                        )
                    )
        except StoreError as exc:
            LOGGER.exception("List failed for prefix '%s'", list_prefix)
            raise ListFailedError(f"Failed to list files: {describe_error(exc)}") from exc
        LOGGER.debug(
            "Listed %d folder(s) and %d file(s) under '%s'",
            len(listing.folders),
            len(listing.files),
            list_prefix,
        )
        return listing

    def folder_size(self, prefix: str = "") -> int:
        return self.list_files(prefix).total_size

    def create_folder(self, key: str) -> str:
        """Write the zero-byte marker for ``key`` and return the marker key."""

        folder_key = normalize_prefix(key)
        if not folder_key:
            raise ValidationFailedError("A folder name is required")
        try:
            self._client.put_object(Bucket=self.bucket, Key=folder_key, Body=b"")
        except StoreError as exc:
            LOGGER.exception("Folder creation failed for '%s'", folder_key)
            raise WriteFailedError(f"Failed to create folder: {describe_error(exc)}") from exc
        LOGGER.info("Created folder marker '%s'", folder_key)
        return folder_key

    def delete_folder(self, prefix: str) -> int:
        """Delete every object under ``prefix``, marker included.

        Objects added to the prefix after the listing started are not part of
        this pass. Returns the number of deleted keys.

        Raises:
            DeleteFailedError: when listing or any delete batch fails. Some
                keys may already be gone; calling again is safe.
        """

        folder_prefix = normalize_prefix(prefix)
        if not folder_prefix:
            raise ValidationFailedError("Refusing to delete the bucket root")
        try:
            keys = [
                obj["Key"]
                for page in self._iter_pages(folder_prefix)
                for obj in page.get("Contents", [])
            ]
        except StoreError as exc:
            LOGGER.exception("Listing for folder delete failed for '%s'", folder_prefix)
            raise DeleteFailedError(f"Failed to delete folder: {describe_error(exc)}") from exc

        if not keys:
            LOGGER.debug("Folder '%s' is already empty", folder_prefix)
            return 0

        deleted = 0
        for start in range(0, len(keys), DELETE_BATCH_SIZE):
            batch = keys[start:start + DELETE_BATCH_SIZE]
            try:
                response = self._client.delete_objects(
                    Bucket=self.bucket,
                    Delete={"Objects": [{"Key": key} for key in batch], "Quiet": True},
                )
            except StoreError as exc:
                LOGGER.exception("Bulk delete failed for '%s' after %d key(s)", folder_prefix, deleted)
                raise DeleteFailedError(
                    f"Failed to delete folder: {describe_error(exc)}",
                    failed_keys=keys[start:],
                ) from exc
            errors = response.get("Errors", [])
            if errors:
                first = errors[0]
                LOGGER.error(
                    "Bulk delete under '%s' reported %d failure(s)", folder_prefix, len(errors)
                )
                raise DeleteFailedError(
                    "Failed to delete folder: "
                    f"{first.get('Key')}: {first.get('Code')}: {first.get('Message')}",
                    failed_keys=[error.get("Key") for error in errors],
                )
            deleted += len(batch)
        LOGGER.info("Deleted %d object(s) under '%s'", deleted, folder_prefix)
        return deleted

    def upload_file(self, key: str, body: bytes, content_type: str | None = None) -> None:
        """Store ``body`` at ``key``, replacing any existing object."""

        object_key = clean_key(key)
        resolved_type = content_type or mimetypes.guess_type(object_key)[0] or DEFAULT_CONTENT_TYPE
        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=object_key,
                Body=body,
                ContentType=resolved_type,
            )
        except StoreError as exc:
            LOGGER.exception("Upload failed for '%s'", object_key)
            raise WriteFailedError(f"Failed to upload file: {describe_error(exc)}") from exc
        LOGGER.info("Uploaded '%s' (%d bytes)", object_key, len(body))

    def delete_file(self, key: str) -> None:
        object_key = clean_key(key)
        try:
            self._client.delete_object(Bucket=self.bucket, Key=object_key)
        except StoreError as exc:
            if is_missing_key(exc):
                LOGGER.debug("Delete of missing key '%s' ignored", object_key)
                return
            LOGGER.exception("Delete failed for '%s'", object_key)
            raise DeleteFailedError(f"Failed to delete file: {describe_error(exc)}") from exc
        LOGGER.info("Deleted '%s'", object_key)

    def get_file_payload(self, key: str) -> FilePayload:
        """Fetch the object body and its stored content type.

        Raises:
            NotFoundError: when the key does not exist.
            ReadFailedError: for any other store failure.
        """

        object_key = clean_key(key)
        try:
            response = self._client.get_object(Bucket=self.bucket, Key=object_key)
            body = response["Body"].read()
        except StoreError as exc:
            if is_missing_key(exc):
                raise NotFoundError(object_key) from exc
            LOGGER.exception("Download failed for '%s'", object_key)
            raise ReadFailedError(f"Failed to read file: {describe_error(exc)}") from exc
        return FilePayload(
            key=object_key,
            body=body,
            content_type=response.get("ContentType") or DEFAULT_CONTENT_TYPE,
        )

    def get_file_content(self, key: str, encoding: str = "utf-8") -> str:
        return self.get_file_payload(key).body.decode(encoding, errors="replace")

    def public_url(self, key: str) -> str:
        return build_public_url(self.bucket, self._profile.resolved_public_host, key)

    def _iter_pages(self, prefix: str, delimiter: str | None = None) -> Iterator[dict]:
        request_token: str | None = None
        while True:
            list_params = {"Bucket": self.bucket, "Prefix": prefix}
            if delimiter:
                list_params["Delimiter"] = delimiter
            if request_token:
                list_params["ContinuationToken"] = request_token
            response = self._client.list_objects_v2(**list_params)
            yield response
            request_token = response.get("NextContinuationToken")
            if not response.get("IsTruncated") or not request_token:
                break
