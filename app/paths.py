"""Rebuild folder structure from a flat list of uploaded files.

Files reach the service through three adapters: some carry an explicit
``path``, some encode the folder in the name with ``/`` and some with
``\\``. They all go through :func:`resolve_path` so there is one canonical
grouping. Hyphens are never treated as a separator here.
"""

from dataclasses import dataclass, replace
from datetime import datetime


@dataclass(frozen=True)
class UploadedFile:
    name: str
    content: bytes
    path: str = ""
    media_type: str | None = None
    last_modified: datetime | None = None


def resolve_path(file: UploadedFile) -> tuple[str, str]:
    """Return ``(directory, bare_name)`` for one file."""
    if file.path:
        return file.path, file.name
    for separator in ("/", "\\"):
        if separator in file.name:
            *parts, name = file.name.split(separator)
            return separator.join(parts), name
    return "", file.name


def group_by_directory(files: list[UploadedFile]) -> dict[str, list[UploadedFile]]:
    grouping: dict[str, list[UploadedFile]] = {}
    for file in files:
        directory, name = resolve_path(file)
        grouping.setdefault(directory, []).append(replace(file, name=name, path=directory))
    return grouping


def has_folders(grouping: dict[str, list[UploadedFile]]) -> bool:
    return any(directory for directory in grouping)
