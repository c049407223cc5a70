import io
from datetime import datetime, timezone

import pytest
from fastapi import UploadFile
from starlette.datastructures import Headers

from app.errors import InvalidInput, PayloadTooLarge
from app.intake import read_uploads


def upload(name, content, content_type="text/plain"):
    return UploadFile(
        file=io.BytesIO(content),
        filename=name,
        headers=Headers({"content-type": content_type}),
    )


def test_metadata_is_paired_by_position():
    files = read_uploads(
        [upload("a.txt", b"a"), upload("b.png", b"\x89", "image/png")],
        ["docs"],
        [1767225600000],
        max_size_bytes=100,
        max_files=10,
    )

    assert files[0].path == "docs"
    assert files[0].last_modified == datetime(2026, 1, 1, tzinfo=timezone.utc)
    assert files[0].media_type == "text/plain"
    assert files[1].path == ""
    assert files[1].last_modified is None
    assert files[1].media_type == "image/png"


def test_explicit_path_is_kept_verbatim():
    files = read_uploads([upload("a.txt", b"a")], [" my docs/ "], max_size_bytes=100, max_files=10)

    assert files[0].path == " my docs/ "


def test_combined_size_limit():
    with pytest.raises(PayloadTooLarge):
        read_uploads(
            [upload("a.txt", b"a" * 60), upload("b.txt", b"b" * 60)],
            max_size_bytes=100,
            max_files=10,
        )


def test_file_count_limit():
    with pytest.raises(InvalidInput):
        read_uploads([upload(f"{n}.txt", b"") for n in range(3)], max_size_bytes=100, max_files=2)
