from __future__ import annotations


class ScribeQueryError(Exception):
    kind = "InternalError"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(ScribeQueryError):
    """Missing or malformed input, raised before any network call."""

    kind = "ValidationError"


class BackendUnavailable(ScribeQueryError):
    """A vector store or model provider call failed."""

    kind = "BackendUnavailable"

    def __init__(self, operation: str, collection: str | None = None, cause: BaseException | None = None) -> None:
        target = f" on {collection!r}" if collection else ""
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"{operation} failed{target}{detail}")
        self.operation = operation
        self.collection = collection
        self.cause = cause


class ProviderDisabled(ScribeQueryError):
    """The provider has no usable credentials. Not retryable."""

    kind = "ProviderDisabled"


class StreamAbort(ScribeQueryError):
    kind = "StreamAbort"
