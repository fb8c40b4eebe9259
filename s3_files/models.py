from __future__ import annotations
"""Data models representing virtual folder listings."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass
class FileEntry:
    """A stored object shown as a file inside a folder listing."""

    key: str
    name: str
    size: int = 0
    last_modified: Optional[datetime] = None
    url: str = ""

    def to_dict(self) -> dict[str, object]:
        return {
            "key": self.key,
            "name": self.name,
            "size": self.size,
            "lastModified": _isoformat(self.last_modified),
            "url": self.url,
        }


@dataclass
class FolderEntry:
    """A folder inferred from a common prefix of the listing."""

    prefix: str
    name: str

    def to_dict(self) -> dict[str, str]:
        return {"prefix": self.prefix, "name": self.name}


@dataclass
class FileListing:
    """One-level snapshot of a folder."""

    prefix: str = ""
    files: list[FileEntry] = field(default_factory=list)
    folders: list[FolderEntry] = field(default_factory=list)

    @property
    def total_size(self) -> int:
        """Sum of the direct file children; sub-folders are not counted."""
        return sum(entry.size for entry in self.files)

    def to_dict(self) -> dict[str, object]:
        return {
            "prefix": self.prefix,
            "files": [entry.to_dict() for entry in self.files],
            "folders": [entry.to_dict() for entry in self.folders],
            "totalSize": self.total_size,
        }


@dataclass
class FilePayload:
    """Body and metadata of a downloaded object."""

    key: str
    body: bytes
    content_type: str = "application/octet-stream"

    @property
    def content_length(self) -> int:
        return len(self.body)


@dataclass(frozen=True)
class UploadItem:
    """A single member of a multi-file upload."""

    key: str
    body: bytes
    content_type: Optional[str] = None


@dataclass(frozen=True)
class Breadcrumb:
    name: str
    path: str


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)
