"""Error taxonomy for the traffic query pipeline.

Every error carries a user-facing message. All but ConfigurationError are
scoped to a single query: the datasource records them in that query's result
slot and moves on to the next one.
"""


class GtmTrafficError(Exception):
    """Base class for all pipeline errors."""

    kind = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigurationError(GtmTrafficError):
    """Credentials could not be decoded. Fatal for the whole batch."""

    kind = "configuration"


class InvalidQuery(GtmTrafficError):
    """The query body sent by the front end failed validation."""

    kind = "invalid_query"


class NoZonesSpecified(GtmTrafficError):
    kind = "no_zones"

    def __init__(self, message: str = "Enter zone names") -> None:
        super().__init__(message)


class WindowBeforeRetentionHorizon(GtmTrafficError):
    kind = "before_retention"

    def __init__(self, message: str = "Time range is before available data") -> None:
        super().__init__(message)


class TransportError(GtmTrafficError):
    """The reporting endpoint could not be reached. Not retried."""

    kind = "transport"


class RemoteRejection(GtmTrafficError):
    """The reporting endpoint answered with a non-success status."""

    kind = "remote_rejection"

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code


class MalformedResponse(GtmTrafficError):
    """A success response whose body is not a report."""

    kind = "malformed_response"


class MalformedSample(GtmTrafficError):
    """A report row whose start time cannot be parsed."""

    kind = "malformed_sample"
