import logging

from app.errors import InvalidInput, InvalidOrExpiredToken
from app.gist import GistClient
from app.paths import UploadedFile, group_by_directory, has_folders
from app.tokens import TokenManager, redact

logger = logging.getLogger(__name__)


class UploadOrchestrator:
    def __init__(self, tokens: TokenManager, gists: GistClient):
        self.tokens = tokens
        self.gists = gists

    def upload(self, token: str, files: list[UploadedFile]) -> str:
        """Relay ``files`` to a new gist and redeem ``token``.

        There is no rollback: if the token cannot be consumed after the gist
        was created, the gist stays behind and the caller gets an error.
        """
        token = (token or "").strip()
        if not token or not files:
            raise InvalidInput("Missing token or files")

        record = self.tokens.get(token)
        if record is None or record.used:
            logger.warning("Upload rejected for token %s: absent or already used", redact(token))
            raise InvalidOrExpiredToken()
        if not self.tokens.is_fresh(record):
            logger.warning("Upload rejected for token %s: expired", redact(token))
            self.tokens.flag_expired(token)
            raise InvalidOrExpiredToken()

        grouping = group_by_directory(files)
        contains_folders = has_folders(grouping)
        gist = self.gists.create_gist(grouping, contains_folders=contains_folders)

        try:
            self.tokens.consume(token, gist.url, file_names=gist.file_names, contains_folders=contains_folders)
        except InvalidOrExpiredToken:
            logger.error("Token %s was redeemed concurrently; gist %s is orphaned", redact(token), gist.url)
            raise
        return gist.url
