import base64
import logging
import posixpath
from dataclasses import dataclass

import httpx

from app.errors import MissingCredential, RelayFailed
from app.paths import UploadedFile

logger = logging.getLogger(__name__)

BINARY_MARKER = "Binary file"
FOLDER_SUFFIX = " (folder structure preserved)"
MAX_UPSTREAM_MESSAGE = 200


@dataclass(frozen=True)
class CreatedGist:
    url: str
    file_names: list[str]


def display_name(directory: str, name: str) -> str:
    if not directory:
        return name
    return directory.replace("\\", "/") + "/" + name


def numbered(name: str, counter: int) -> str:
    stem, ext = posixpath.splitext(name)
    return f"{stem} ({counter}){ext}"


def encode_content(content: bytes, preview_chars: int = 100) -> str:
    """Decode as UTF-8 text, or describe a binary payload with a base64 preview.

    The placeholder is for display only; the original bytes cannot be
    recovered from it.
    """
    try:
        return content.decode("utf-8")
    except UnicodeDecodeError:
        encoded = base64.b64encode(content).decode("ascii")
        preview = encoded[:preview_chars]
        if len(encoded) > preview_chars:
            preview += "..."
        return f"{BINARY_MARKER} ({len(content)} bytes, base64): {preview}"


def build_gist_files(
    grouping: dict[str, list[UploadedFile]], preview_chars: int = 100
) -> dict[str, dict[str, str]]:
    files: dict[str, dict[str, str]] = {}
    counters: dict[str, int] = {}
    for directory, entries in grouping.items():
        for entry in entries:
            base = display_name(directory, entry.name)
            candidate = base
            if base in files:
                while candidate in files:
                    counters[base] = counters.get(base, 1) + 1
                    candidate = numbered(base, counters[base])
                logger.debug("Renamed duplicate %s to %s", base, candidate)
            else:
                counters.setdefault(base, 1)
            files[candidate] = {"content": encode_content(entry.content, preview_chars)}
    return files


def summarize_error(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    message = body.get("message") if isinstance(body, dict) else None
    if not message:
        message = response.reason_phrase or f"HTTP {response.status_code}"
    return str(message)[:MAX_UPSTREAM_MESSAGE]


class GistClient:
    """Creates secret gists through the GitHub REST API."""

    def __init__(
        self,
        token: str | None,
        *,
        api_url: str = "https://api.github.com",
        timeout: float = 30.0,
        description: str = "Uploaded via One-Time Gist Uploader",
        preview_chars: int = 100,
        transport: httpx.BaseTransport | None = None,
    ):
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.description = description
        self.preview_chars = preview_chars
        self.transport = transport

    def describe(self, contains_folders: bool) -> str:
        return self.description + (FOLDER_SUFFIX if contains_folders else "")

    def create_gist(self, grouping: dict[str, list[UploadedFile]], *, contains_folders: bool = False) -> CreatedGist:
        if not self.token:
            logger.error("Refusing to create gist: GitHub token is not configured")
            raise MissingCredential("GitHub token is not configured")

        files = build_gist_files(grouping, self.preview_chars)
        payload = {
            "description": self.describe(contains_folders),
            "public": False,
            "files": files,
        }
        headers = {
            "Authorization": f"token {self.token}",
            "Accept": "application/vnd.github.v3+json",
        }

        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.post(f"{self.api_url}/gists", json=payload, headers=headers)
        except httpx.HTTPError as exc:
            logger.error("GitHub API request failed: %s", exc)
            raise RelayFailed("could not reach GitHub API") from exc

        if response.is_error:
            message = summarize_error(response)
            logger.error("GitHub API error %s creating gist with %d files: %s", response.status_code, len(files), message)
            raise RelayFailed(f"GitHub API error: {message}", upstream_status=response.status_code)

        try:
            body = response.json()
        except ValueError:
            body = None
        gist_url = body.get("html_url") if isinstance(body, dict) else None
        if not gist_url:
            logger.error("GitHub API response had no html_url")
            raise RelayFailed("GitHub API returned no gist URL", upstream_status=response.status_code)
        logger.info("Created gist %s with %d files", gist_url, len(files))
        return CreatedGist(url=gist_url, file_names=list(files))
