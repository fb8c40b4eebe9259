from __future__ import annotations
"""File service facade used by the HTTP routes and the browser session."""

from concurrent.futures import ThreadPoolExecutor
import logging
from typing import Iterable, Literal, Protocol

from .exceptions import (
    NotFoundError,
    UnauthorizedError,
    ValidationFailedError,
)
from .models import FileListing, FilePayload, UploadItem
from .services import S3FileService
from .utils import SEPARATOR, clean_key

LOGGER = logging.getLogger(__name__)

Target = Literal["file", "folder"]

READ_MODES: dict[str, Target] = {
    "list": "folder",
    "folder": "folder",
    "download": "file",
    "file": "file",
}
WRITE_MODES: dict[str, Target] = {"file": "file", "folder": "folder"}
ROOT_ALIAS = "all"


class RoutingPolicy(Protocol):
    """Decides whether a request addresses a file or a folder."""

    def for_read(self, key: str, mode: str | None) -> Target: ...

    def for_write(self, key: str, mode: str | None) -> Target: ...

    def listing_prefix(self, key: str) -> str: ...


class ExplicitTypeRouting:
    """Routes on the caller supplied ``mode`` parameter."""

    def for_read(self, key: str, mode: str | None) -> Target:
        if not mode:
            return "file" if key else "folder"
        return _lookup_mode(READ_MODES, mode)

    def for_write(self, key: str, mode: str | None) -> Target:
        if not mode:
            return "file"
        return _lookup_mode(WRITE_MODES, mode)

    def listing_prefix(self, key: str) -> str:
        return key


class SeparatorRouting:
    """Legacy convention: a key without a separator names a folder.

    A top-level file is indistinguishable from a folder under this policy.
    """

    def for_read(self, key: str, mode: str | None) -> Target:
        return "file" if SEPARATOR in key.rstrip(SEPARATOR) else "folder"

    def for_write(self, key: str, mode: str | None) -> Target:
        return self.for_read(key, mode)

    def listing_prefix(self, key: str) -> str:
        return "" if key == ROOT_ALIAS else key


ROUTING_POLICIES: dict[str, type] = {
    "explicit": ExplicitTypeRouting,
    "separator": SeparatorRouting,
}


def build_routing_policy(name: str) -> RoutingPolicy:
    try:
        return ROUTING_POLICIES[name]()
    except KeyError:
        raise ValueError(f"Unknown routing policy '{name}'") from None


def status_for_error(exc: Exception) -> int:
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, UnauthorizedError):
        return 401
    if isinstance(exc, ValidationFailedError):
        return 400
    return 500


class FileManagerController:
    """Coordinates validated requests with the :class:`S3FileService`."""

    def __init__(
        self,
        service: S3FileService,
        *,
        routing: RoutingPolicy | None = None,
        max_concurrency: int = 4,
    ):
        self._service = service
        self._routing = routing or ExplicitTypeRouting()
        self._max_concurrency = max(int(max_concurrency), 1)

    @property
    def routing(self) -> RoutingPolicy:
        return self._routing

    def list_files(self, prefix: str = "") -> FileListing:
        return self._service.list_files(clean_key(prefix))

    def folder_size(self, prefix: str = "") -> int:
        return self._service.folder_size(clean_key(prefix))

    def download(self, key: str) -> FilePayload:
        return self._service.get_file_payload(self._require_key(key))

    def read_text(self, key: str) -> str:
        return self._service.get_file_content(self._require_key(key))

    def upload(self, key: str, body: bytes, content_type: str | None = None) -> str:
        object_key = self._validate_upload(key, body)
        self._service.upload_file(object_key, body, content_type)
        return object_key

    def upload_many(self, items: Iterable[UploadItem]) -> list[str]:
        """Upload every item concurrently.

        All uploads run to completion; the first failure in submission order
        is raised afterwards and successful siblings stay in place.
        """

        pending = list(items)
        if not pending:
            raise ValidationFailedError("No files to upload")
        for item in pending:
            self._validate_upload(item.key, item.body)

        workers = min(self._max_concurrency, len(pending))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [
                executor.submit(self.upload, item.key, item.body, item.content_type)
                for item in pending
            ]
        errors = [future.exception() for future in futures]
        uploaded = [future.result() for future, exc in zip(futures, errors) if exc is None]
        failures = [exc for exc in errors if exc is not None]
        if failures:
            LOGGER.warning(
                "Multi-upload finished with %d failure(s) (%d of %d stored)",
                len(failures),
                len(uploaded),
                len(pending),
            )
            raise failures[0]
        return uploaded

    def delete(self, key: str) -> None:
        self._service.delete_file(self._require_key(key))

    def create_folder(self, key: str) -> str:
        return self._service.create_folder(self._require_key(key))

    def delete_folder(self, key: str) -> int:
        return self._service.delete_folder(self._require_key(key))

    def share_url(self, key: str) -> str:
        return self._service.public_url(self._require_key(key))

    def handle_get(
        self,
        key: str | None,
        mode: str | None,
        prefix: str | None = None,
    ) -> FileListing | FilePayload:
        """Read ``key`` as the routing policy decides.

        A ``prefix`` given without a ``key`` names a folder and lists it
        unless ``mode`` says otherwise.
        """

        if not key and prefix is not None:
            key, mode = prefix, mode or "list"
        cleaned = clean_key(key)
        if self._routing.for_read(cleaned, mode) == "folder":
            return self.list_files(self._routing.listing_prefix(cleaned))
        return self.download(cleaned)

    def handle_post(
        self,
        key: str | None,
        mode: str | None,
        body: bytes = b"",
        content_type: str | None = None,
    ) -> tuple[Target, str]:
        cleaned = self._require_key(key)
        if self._routing.for_write(cleaned, mode) == "folder":
            return "folder", self.create_folder(cleaned)
        return "file", self.upload(cleaned, body, content_type)

    def handle_delete(self, key: str | None, mode: str | None) -> tuple[Target, int]:
        cleaned = self._require_key(key)
        if self._routing.for_write(cleaned, mode) == "folder":
            return "folder", self.delete_folder(cleaned)
        self.delete(cleaned)
        return "file", 1

    def _validate_upload(self, key: str | None, body: bytes) -> str:
        object_key = self._require_key(key)
        if object_key.endswith(SEPARATOR):
            raise ValidationFailedError(f"File keys cannot end with a separator: {object_key}")
        if not body:
            raise ValidationFailedError(f"Cannot upload an empty file: {object_key}")
        return object_key

    @staticmethod
    def _require_key(key: str | None) -> str:
        cleaned = clean_key(key)
        if not cleaned:
            raise ValidationFailedError("A key is required")
        return cleaned


def _lookup_mode(modes: dict[str, Target], mode: str) -> Target:
    try:
        return modes[mode.strip().lower()]
    except KeyError:
        raise ValidationFailedError(
            f"Unknown mode '{mode}', expected one of: {', '.join(sorted(modes))}"
        ) from None
