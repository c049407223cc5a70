"""Error taxonomy for the uploader.

Every error carries the HTTP status it maps to and a message that is safe
to show to whoever holds an upload link. Details that may leak state or
upstream bodies stay in the log.
"""


class UploaderError(Exception):
    status_code = 500
    code = "error"
    public_message = "request failed"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.public_message)
        if message is not None and self.status_code < 500:
            self.public_message = message


class ConfigurationError(UploaderError):
    status_code = 500
    code = "configuration_error"
    public_message = "server configuration error"


class MissingCredential(ConfigurationError):
    public_message = "server configuration error: GitHub token is not configured"


class InvalidInput(UploaderError):
    status_code = 400
    code = "bad_request"
    public_message = "missing token or files"


class PayloadTooLarge(UploaderError):
    status_code = 413
    code = "payload_too_large"
    public_message = "upload exceeds the maximum allowed size"


class InvalidOrExpiredToken(UploaderError):
    status_code = 400
    code = "invalid_token"
    public_message = "This upload link is invalid or has already been used"

    def __init__(self, message: str | None = None):
        # the caller never learns which of absent/used/expired applied
        super().__init__(message)
        self.public_message = type(self).public_message


InvalidOrUsedToken = InvalidOrExpiredToken


class StoreUnavailable(UploaderError):
    status_code = 503
    code = "store_unavailable"
    public_message = "token store is unavailable, try again later"


class RelayFailed(UploaderError):
    status_code = 502
    code = "relay_failed"
    public_message = "Failed to create gist"

    def __init__(self, message: str | None = None, *, upstream_status: int | None = None):
        super().__init__(message)
        self.upstream_status = upstream_status
        if message:
            self.public_message = f"{type(self).public_message}: {message}"
