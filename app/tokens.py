import logging
import secrets
import sqlite3
import string
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from app.errors import InvalidOrExpiredToken, StoreUnavailable
from app.models import TokenRecord
from app.repository import TokenRepository

logger = logging.getLogger(__name__)

TOKEN_ALPHABET = string.ascii_letters + string.digits + "_-"
MAX_ISSUE_ATTEMPTS = 5


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_token(length: int) -> str:
    return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(length))


def redact(token: str) -> str:
    return token[:3] + "..."


class TokenManager:
    """Issues, validates and consumes one-time upload tokens.

    Validity is always recomputed from ``created_at``; the stored
    ``expired`` flag only records that an expiry was observed once.
    """

    def __init__(
        self,
        repository: TokenRepository,
        *,
        ttl_seconds: int = 24 * 60 * 60,
        token_length: int = 10,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.repository = repository
        self.ttl = timedelta(seconds=ttl_seconds)
        self.token_length = token_length
        self.clock = clock

    def now(self) -> datetime:
        return self.clock().astimezone(timezone.utc)

    def issue(self) -> TokenRecord:
        created_at = self.now()
        for _ in range(MAX_ISSUE_ATTEMPTS):
            token = new_token(self.token_length)
            try:
                row = self.repository.create_token(
                    token=token,
                    created_at=created_at,
                    expires_at=created_at + self.ttl,
                )
            except sqlite3.IntegrityError:
                logger.warning("Token collision on insert, regenerating")
                continue
            logger.info("Issued token %s (expires %s)", redact(token), row["expires_at"].isoformat())
            return TokenRecord(**row)
        raise StoreUnavailable("could not allocate a unique token")

    def get(self, token: str) -> TokenRecord | None:
        row = self.repository.get_token(token)
        return TokenRecord(**row) if row else None

    def is_fresh(self, record: TokenRecord) -> bool:
        return self.now() - record.created_at <= self.ttl

    def flag_expired(self, token: str) -> None:
        try:
            self.repository.mark_expired(token)
        except StoreUnavailable:
            logger.warning("Could not flag token %s as expired", redact(token))

    def validate(self, token: str) -> bool:
        record = self.get(token)
        if record is None or record.used:
            return False
        if not self.is_fresh(record):
            self.flag_expired(token)
            return False
        return True

    def consume(
        self,
        token: str,
        gist_url: str,
        *,
        file_names: list[str],
        contains_folders: bool,
    ) -> None:
        now = self.now()
        updated = self.repository.consume(
            token=token,
            gist_url=gist_url,
            used_at=now,
            created_after=now - self.ttl,
            file_count=len(file_names),
            file_names=file_names,
            contains_folders=contains_folders,
        )
        if not updated:
            logger.warning("Token %s could not be consumed: absent, used or expired", redact(token))
            raise InvalidOrExpiredToken(f"token {redact(token)} is not redeemable")
        logger.info("Token %s consumed with %d files -> %s", redact(token), len(file_names), gist_url)
