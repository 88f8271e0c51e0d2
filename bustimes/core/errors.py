"""Error taxonomy shared by the transit engine and the HTTP layer."""


class TransitError(Exception):
    kind = "transit_error"


class ConfigurationError(TransitError):
    """A required setting (usually the feed credential) is missing."""

    kind = "configuration_error"


class FeedUnavailable(TransitError):
    """The real-time feed could not be fetched."""

    kind = "feed_unavailable"


class UpstreamError(FeedUnavailable):
    """The feed provider answered with a non-success status."""

    kind = "upstream_error"

    def __init__(self, status_code: int, body_excerpt: str = "") -> None:
        self.status_code = status_code
        self.body_excerpt = body_excerpt
        message = f"Feed provider returned HTTP {status_code}"
        if body_excerpt:
            message = f"{message}: {body_excerpt}"
        super().__init__(message)


class DecodeError(FeedUnavailable):
    """The feed payload is not a valid GTFS-realtime message."""

    kind = "decode_error"


class NotFoundError(TransitError):
    kind = "not_found"


class SourceUnavailable(TransitError):
    """A static data source is missing, unreadable or blank."""

    kind = "source_unavailable"
