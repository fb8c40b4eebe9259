from __future__ import annotations
"""Per-request browsing state built around one folder listing."""
from dataclasses import dataclass, field

from .exceptions import ValidationFailedError
from .models import Breadcrumb, FileEntry, FileListing, FolderEntry
from .utils import SEPARATOR, build_breadcrumbs

SORT_KEYS = ("name", "date", "size")


@dataclass
class BrowserSession:
    """Navigation state owned by the caller; the service layer never sees it.

    ``sort_by`` orders files only. Folders always come first, by name.
    """

    listing: FileListing = field(default_factory=FileListing)
    sort_by: str = "date"
    root_label: str = "Home"

    def __post_init__(self) -> None:
        if self.sort_by not in SORT_KEYS:
            raise ValidationFailedError(f"sort must be one of {', '.join(SORT_KEYS)}")

    @property
    def current_path(self) -> str:
        return self.listing.prefix.rstrip(SEPARATOR)

    @property
    def breadcrumbs(self) -> list[Breadcrumb]:
        return build_breadcrumbs(self.current_path, self.root_label)

    def sorted_folders(self) -> list[FolderEntry]:
        return sorted(self.listing.folders, key=lambda entry: entry.name.lower())

    def sorted_files(self) -> list[FileEntry]:
        files = self.listing.files
        if self.sort_by == "name":
            return sorted(files, key=lambda entry: entry.name.lower())
        if self.sort_by == "size":
            return sorted(files, key=lambda entry: entry.size, reverse=True)
        return sorted(
            files,
            key=lambda entry: entry.last_modified.timestamp() if entry.last_modified else 0.0,
            reverse=True,
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "prefix": self.listing.prefix,
            "path": self.current_path,
            "sortBy": self.sort_by,
            "breadcrumbs": [{"name": crumb.name, "path": crumb.path} for crumb in self.breadcrumbs],
            "folders": [entry.to_dict() for entry in self.sorted_folders()],
            "files": [entry.to_dict() for entry in self.sorted_files()],
            "totalSize": self.listing.total_size,
        }
