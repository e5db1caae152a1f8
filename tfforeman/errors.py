"""Exceptions raised by the Foreman client.

All of them derive from `ForemanError` so that callers can intercept every
client failure with a single `except` clause. None of them is ever retried by
the client itself.

"""


class ForemanError(Exception):
    """Base class for all Foreman client errors."""


class TransportError(ForemanError):
    """Connection level failure, eg DNS, TLS or a timeout."""

    def __init__(self, method: str, url: str, reason: str):
        self.method = method
        self.url = url
        self.reason = reason
        super().__init__(f"{method} {url} failed: {reason}")


class StatusError(ForemanError):
    """Foreman responded with a non-2xx status code."""

    def __init__(self, endpoint: str, status_code: int, body: str):
        self.endpoint = endpoint
        self.status_code = status_code
        self.body = body
        super().__init__(
            "HTTP Error:{\n"
            f"  endpoint:   [{endpoint}]\n"
            f"  statusCode: [{status_code}]\n"
            f"  respBody:   [{body}]\n"
            "}"
        )


class NotFoundError(StatusError):
    """Foreman responded with 404."""


class DecodeError(ForemanError):
    """The response body was not JSON or did not have the expected shape."""

    def __init__(self, endpoint: str, reason: str):
        self.endpoint = endpoint
        self.reason = reason
        super().__init__(f"cannot decode response from {endpoint}: {reason}")


class CardinalityError(ForemanError):
    """A lookup that must produce exactly one result did not."""

    def __init__(self, kind: str, expected: int, actual: int):
        self.kind = kind
        self.expected = expected
        self.actual = actual
        if actual == 0:
            msg = f"Data source {kind} returned no results"
        else:
            msg = f"Data source {kind} returned more than {expected} result ({actual})"
        super().__init__(msg)


class TaskError(ForemanError):
    """An asynchronous Foreman task failed or did not finish in time."""

    def __init__(self, task_id: str, reason: str):
        self.task_id = task_id
        self.reason = reason
        super().__init__(f"task {task_id}: {reason}")
