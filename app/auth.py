import hmac
import logging

from app.errors import ConfigurationError

logger = logging.getLogger(__name__)


class AdminGate:
    def __init__(self, password: str | None):
        self.password = password.encode("utf-8") if password else None

    def verify(self, candidate: str) -> bool:
        if self.password is None:
            logger.error("Admin login attempted but no admin password is configured")
            raise ConfigurationError("Admin password not set")
        return hmac.compare_digest(self.password, candidate.encode("utf-8"))
