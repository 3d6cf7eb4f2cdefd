class GindexError(Exception):
    pass


class MalformedRequest(GindexError):
    pass


class AuthorizationDenied(GindexError):
    pass


class AuthorizationServiceUnavailable(GindexError):
    pass


class Timeout(GindexError):
    pass


class GitError(GindexError):
    pass


class ExtractionError(GindexError):
    """Raised when an object's content cannot be turned into index text."""


class SizeLimitExceeded(ExtractionError):
    def __init__(self, size: int, limit: int):
        super().__init__(f"{size} bytes exceeds limit of {limit} bytes")
        self.size = size
        self.limit = limit


class UnsupportedFormat(ExtractionError):
    pass


class EncryptedDocument(ExtractionError):
    pass


class MalformedDocument(ExtractionError):
    pass


class TruncatedHeader(ExtractionError):
    pass


class BackendUnavailable(GindexError):
    pass


class BackendRejected(GindexError):
    def __init__(self, status_code: int | None, body: str):
        super().__init__(f"backend rejected request ({status_code}): {body}")
        self.status_code = status_code
        self.body = body
