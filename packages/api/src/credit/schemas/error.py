# This project was developed with assistance from AI tools.
"""RFC 7807 problem body returned by every credit desk error handler."""

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Problem Details (https://datatracker.ietf.org/doc/html/rfc7807).

    ``type`` is ``about:blank`` for plain HTTP errors and the error class
    name (``OutOfOrderError``, ``AlreadyTerminalError`` ...) for refused
    financing or title transfer transitions, so clients can branch on it.
    """

    type: str = Field(
        default="about:blank",
        description="Problem type: about:blank or the credit error class name.",
    )
    title: str = Field(description="HTTP status phrase.")
    status: int = Field(description="HTTP status code.")
    detail: str = Field(default="", description="Why the request was refused.")
    instance: str = Field(default="", description="Request path that produced the problem.")
    request_id: str = Field(default="", description="Correlation ID echoed from X-Request-Id.")
    errors: list[dict] | None = Field(
        default=None,
        description="Field-level validation errors, for 422 request validation failures.",
    )
