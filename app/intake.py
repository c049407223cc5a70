from datetime import datetime, timezone

from fastapi import UploadFile

from app.errors import InvalidInput, PayloadTooLarge
from app.paths import UploadedFile

CHUNK_SIZE = 1024 * 1024


def from_epoch_millis(value: int | None) -> datetime | None:
    if value is None:
        return None
    try:
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as exc:
        raise InvalidInput("last_modified must be a timestamp in milliseconds") from exc


def read_upload(
    source: UploadFile,
    *,
    path: str = "",
    last_modified: int | None = None,
    remaining_bytes: int,
) -> UploadedFile:
    chunks = []
    total = 0
    while True:
        chunk = source.file.read(CHUNK_SIZE)
        if not chunk:
            break
        total += len(chunk)
        if total > remaining_bytes:
            raise PayloadTooLarge()
        chunks.append(chunk)
    return UploadedFile(
        name=source.filename or "",
        content=b"".join(chunks),
        path=path,
        media_type=source.content_type,
        last_modified=from_epoch_millis(last_modified),
    )


def read_uploads(
    sources: list[UploadFile],
    paths: list[str] | None = None,
    last_modified: list[int] | None = None,
    *,
    max_size_bytes: int,
    max_files: int,
) -> list[UploadedFile]:
    """Read multipart uploads into memory with their optional metadata.

    ``paths`` and ``last_modified`` (epoch milliseconds, as browsers report
    it) are parallel to ``sources``; missing entries mean no value. Paths
    are passed through verbatim. The size limit applies to the combined
    payload.
    """
    if len(sources) > max_files:
        raise InvalidInput(f"too many files, at most {max_files} allowed")
    paths = paths or []
    last_modified = last_modified or []
    uploads = []
    remaining = max_size_bytes
    for index, source in enumerate(sources):
        if not source.filename:
            raise InvalidInput("every file needs a filename")
        upload = read_upload(
            source,
            path=paths[index] if index < len(paths) else "",
            last_modified=last_modified[index] if index < len(last_modified) else None,
            remaining_bytes=remaining,
        )
        remaining -= len(upload.content)
        uploads.append(upload)
    return uploads
