"""Error taxonomy for the news digest pipeline."""


class NewsDigestError(Exception):
    """Base error; carries the HTTP status and the message shown to clients."""

    status_code = 500
    public_message = "Failed to process news request"

    def __init__(self, message: str | None = None, *, public_message: str | None = None):
        super().__init__(message or self.public_message)
        if public_message is not None:
            self.public_message = public_message


class ClientInputError(NewsDigestError):
    """A required request field is missing or unusable."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message, public_message=message)


class AuthError(NewsDigestError):
    """Missing, invalid or expired credential."""

    status_code = 401
    public_message = "Invalid or expired token"


class DownstreamFormatError(NewsDigestError):
    """The language model replied with something other than the required record."""


class DownstreamCallError(NewsDigestError):
    """A language-model call failed outright."""


class FeedUnavailable(NewsDigestError):
    """The news feed could not be fetched or parsed. Contained by the feed client."""


class SideEffectError(NewsDigestError):
    """Activity logging or broadcasting failed. Never surfaced to clients."""
