"""Error taxonomy shared by the pipelines and the HTTP layer.

Only InvalidRequestError ever reaches the caller as-is. Upstream errors are
contained inside the fetcher or scorer that raised them and replaced with a
fallback value.
"""


class EduScoutError(Exception):
    """Base class for application errors."""


class InvalidRequestError(EduScoutError):
    """Request is missing required input or carries an invalid value (HTTP 400)."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class UpstreamUnavailableError(EduScoutError):
    """An external API failed, timed out or is not configured."""


class MalformedUpstreamResponseError(EduScoutError):
    """An external API answered with something we could not parse."""
