# errors.py
"""
Failure kinds raised by the exchange engine.

Every error carries a stable ``kind`` for machine checks and a human readable
``reason``. The request layer maps kinds to transport status codes.
"""


class SwapError(Exception):
    kind = "error"

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason

    def to_dict(self) -> dict:
        return {"kind": self.kind, "detail": self.reason}


class NotFound(SwapError):
    """Entity is absent, or the caller may not see it."""
    kind = "not_found"


class Forbidden(SwapError):
    """Caller does not own the resource it acts on."""
    kind = "forbidden"


class InvalidRequest(SwapError):
    """Business rule violation."""
    kind = "invalid_request"


class Conflict(InvalidRequest):
    """Lost a race on a conditional write. Retryable."""
    kind = "conflict"


class ServerFault(SwapError):
    """A write group could not complete. Nothing was committed."""
    kind = "server_fault"
