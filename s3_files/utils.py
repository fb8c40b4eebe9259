from __future__ import annotations
"""Helpers for key handling, URLs and package metadata."""
from dataclasses import dataclass
from importlib.metadata import PackageNotFoundError, metadata, version
from urllib.parse import quote

from .exceptions import ValidationFailedError
from .models import Breadcrumb

DIST_NAME = "pys3files"
SEPARATOR = "/"


@dataclass(frozen=True)
class PackageInfo:
    name: str
    version: str
    summary: str
    homepage: str | None


def load_package_info(dist_name: str = DIST_NAME) -> PackageInfo:
    try:
        distribution_metadata = metadata(dist_name)
        package_version = version(dist_name)
    except PackageNotFoundError:
        return PackageInfo(
            name="S3 File Manager",
            version="",
            summary="Folder-style file management over an S3 bucket.",
            homepage=None,
        )
    homepage = distribution_metadata.get("Home-page")
    for entry in distribution_metadata.get_all("Project-URL") or []:
        label, _, link = entry.partition(",")
        if label.strip().lower() == "homepage" and not homepage:
            homepage = link.strip()
    return PackageInfo(
        name=distribution_metadata.get("Name"),
        version=package_version,
        summary=distribution_metadata.get("Summary") or "",
        homepage=homepage or None,
    )


def clean_key(key: str | None) -> str:
    """Strip whitespace and leading separators from a caller supplied key."""
    if not key:
        return ""
    return key.strip().lstrip(SEPARATOR)


def normalize_prefix(prefix: str | None) -> str:
    """Return ``prefix`` terminated by a separator, or ``""`` for the root."""
    cleaned = clean_key(prefix)
    if cleaned and not cleaned.endswith(SEPARATOR):
        cleaned += SEPARATOR
    return cleaned


def compose_key(prefix: str, name: str) -> str:
    """Join a folder and a single name; the name is kept as given."""
    if not name or not name.strip():
        raise ValidationFailedError("Object name cannot be empty")
    if SEPARATOR in name or name in (".", ".."):
        raise ValidationFailedError(f"Invalid object name '{name}'")
    return f"{normalize_prefix(prefix)}{name}"


def parent_of(key: str) -> str:
    """Parent folder path of ``key`` without a trailing separator."""
    cleaned = clean_key(key).rstrip(SEPARATOR)
    if SEPARATOR not in cleaned:
        return ""
    return cleaned.rsplit(SEPARATOR, 1)[0]


def leaf_name(key: str) -> str:
    cleaned = clean_key(key).rstrip(SEPARATOR)
    return cleaned.rsplit(SEPARATOR, 1)[-1]


def build_breadcrumbs(path: str, root_label: str = "Home") -> list[Breadcrumb]:
    parts = [part for part in clean_key(path).split(SEPARATOR) if part]
    crumbs = [Breadcrumb(name=root_label, path="")]
    for index, part in enumerate(parts):
        crumbs.append(Breadcrumb(name=part, path=SEPARATOR.join(parts[: index + 1])))
    return crumbs


def build_public_url(bucket: str, host: str, key: str) -> str:
    return f"https://{bucket}.{host}/{quote(key, safe='/')}"


def content_disposition(key: str, disposition: str = "attachment") -> str:
    filename = leaf_name(key) or "download"
    return f'{disposition}; filename="{quote(filename)}"'

