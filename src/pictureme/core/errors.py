"""Exception hierarchy for the PictureMe core.

Every error raised by the core derives from :class:`PictureMeError` so the
service layer can translate them into HTTP responses in one place.

Hierarchy
---------
::

    PictureMeError
    ├── TransportError
    │   ├── Unauthorized          401, never retried by the transport
    │   ├── RequestFailed         any other non-2xx status
    │   │   └── RateLimited       429 after the retry budget ran out
    │   └── TransportFailure      no response at all, budget exhausted
    ├── GenerationExhausted       every generation attempt failed
    ├── ValidationError           batch cannot start
    ├── PrimingError              shared album style could not be generated
    ├── RegenerationInFlight      item already has an attempt running
    ├── DecodeError               source image is not decodable
    └── EmptyAlbum                no successful items to compose
"""


class PictureMeError(Exception):
    """Base class for all PictureMe errors."""


class TransportError(PictureMeError):
    """A request to the remote endpoint failed terminally."""


class Unauthorized(TransportError):
    """The remote endpoint rejected the credentials (HTTP 401)."""

    def __init__(self, message: str = "API request failed with status 401: Unauthorized"):
        super().__init__(message)
        self.status_code = 401


class RequestFailed(TransportError):
    """The remote endpoint answered with a non-success status.

    Attributes:
        status_code: HTTP status returned by the server.
        server_message: ``error.message`` from the response body, if any.
    """

    def __init__(self, status_code: int, server_message: str | None = None):
        self.status_code = status_code
        self.server_message = server_message
        detail = server_message or "Unknown error"
        super().__init__(f"API request failed with status {status_code}: {detail}")


class RateLimited(RequestFailed):
    """HTTP 429 persisted after every transport retry was spent."""


class TransportFailure(TransportError):
    """Network-level failure (no HTTP response) after the retry budget."""


class GenerationExhausted(PictureMeError):
    """All generation attempts for one payload failed.

    Attributes:
        attempts: Number of attempts that were made.
        last_error: Message of the last underlying failure.
    """

    def __init__(self, attempts: int, last_error: str | None):
        self.attempts = attempts
        self.last_error = last_error or "Unknown error"
        super().__init__(
            f"Image generation failed after {attempts} attempts. Last error: {self.last_error}"
        )


class ValidationError(PictureMeError):
    """User-friendly validation error.

    Raised before a batch starts.  The message is intended to be displayed
    directly to the user.
    """


class PrimingError(PictureMeError):
    """The batch-wide style could not be generated; the batch was not started."""


class RegenerationInFlight(PictureMeError):
    """A regeneration for the same item is already running."""


class DecodeError(PictureMeError):
    """Image bytes could not be decoded."""


class EmptyAlbum(PictureMeError):
    """An album was requested but no item finished successfully."""

    def __init__(self, message: str = "There are no successful images to include in an album."):
        super().__init__(message)
