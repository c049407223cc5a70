import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime

from app.errors import StoreUnavailable

logger = logging.getLogger(__name__)


def to_iso(value: datetime) -> str:
    return value.isoformat(timespec="microseconds")


def _row_to_dict(row: sqlite3.Row) -> dict:
    record = dict(row)
    record["used"] = bool(record["used"])
    record["expired"] = bool(record["expired"])
    if record.get("contains_folders") is not None:
        record["contains_folders"] = bool(record["contains_folders"])
    if record.get("file_names") is not None:
        record["file_names"] = json.loads(record["file_names"])
    for key in ("created_at", "expires_at", "used_at"):
        if record.get(key):
            record[key] = datetime.fromisoformat(record[key])
    return record


class TokenRepository:
    def __init__(self, db_path: str, timeout: float = 5.0):
        self.db_path = db_path
        self.timeout = timeout

    @contextmanager
    def _connect(self):
        try:
            conn = sqlite3.connect(self.db_path, timeout=self.timeout)
        except sqlite3.Error as exc:
            logger.error("Cannot open token store at %s: %s", self.db_path, exc)
            raise StoreUnavailable() from exc
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.IntegrityError:
            raise
        except sqlite3.Error as exc:
            logger.error("Token store operation failed: %s", exc)
            raise StoreUnavailable() from exc
        finally:
            conn.close()

    def init(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS tokens (
                    token TEXT PRIMARY KEY,
                    created_at TEXT NOT NULL,
                    expires_at TEXT NOT NULL,
                    used INTEGER NOT NULL DEFAULT 0,
                    expired INTEGER NOT NULL DEFAULT 0,
                    gist_url TEXT,
                    used_at TEXT,
                    file_count INTEGER,
                    file_names TEXT,
                    contains_folders INTEGER
                );
                """
            )

    def create_token(self, *, token: str, created_at: datetime, expires_at: datetime) -> dict:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO tokens(token, created_at, expires_at, used, expired, gist_url)
                VALUES(?, ?, ?, 0, 0, NULL)
                """,
                (token, to_iso(created_at), to_iso(expires_at)),
            )
            row = conn.execute("SELECT * FROM tokens WHERE token = ?", (token,)).fetchone()
        return _row_to_dict(row)

    def get_token(self, token: str) -> dict | None:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM tokens WHERE token = ?", (token,)).fetchone()
        return _row_to_dict(row) if row else None

    def mark_expired(self, token: str) -> None:
        with self._connect() as conn:
            conn.execute("UPDATE tokens SET expired = 1 WHERE token = ?", (token,))

    def consume(
        self,
        *,
        token: str,
        gist_url: str,
        used_at: datetime,
        created_after: datetime,
        file_count: int,
        file_names: list[str],
        contains_folders: bool,
    ) -> bool:
        """Flip ``used`` to true if the token is still unused and inside its window.

        Runs as a single conditional UPDATE so concurrent redemptions of the
        same token cannot both succeed. Returns whether a row was updated.
        """
        with self._connect() as conn:
            # take the write lock first so a competing redeemer waits instead of failing busy
            conn.execute("BEGIN IMMEDIATE")
            cursor = conn.execute(
                """
                UPDATE tokens
                SET used = 1,
                    gist_url = ?,
                    used_at = ?,
                    file_count = ?,
                    file_names = ?,
                    contains_folders = ?
                WHERE token = ? AND used = 0 AND created_at >= ?
                """,
                (
                    gist_url,
                    to_iso(used_at),
                    file_count,
                    json.dumps(file_names),
                    int(contains_folders),
                    token,
                    to_iso(created_after),
                ),
            )
            return cursor.rowcount == 1
