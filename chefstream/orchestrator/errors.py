"""Errors that reach the HTTP response.

Everything else (cache read/write failures, corrupted rows) is absorbed
where it happens and only shows up through the error hook.
"""


class SearchError(Exception):
    """Base for user-visible failures: carries the response code, status and retry hint."""

    status_code: int = 500

    def __init__(self, message: str, code: str, retryable: bool, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.retryable = retryable
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code, "retryable": self.retryable}


class RequestValidationFailed(SearchError):
    """Bad or missing input. The client must fix the request."""

    status_code = 400

    def __init__(self, message: str = "Search query is required"):
        super().__init__(message, "VALIDATION_ERROR", retryable=False)


class InternalError(SearchError):
    def __init__(self, message: str = "An unexpected error occurred"):
        super().__init__(message, "INTERNAL_ERROR", retryable=True, status_code=500)
