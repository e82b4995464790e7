"""Error taxonomy for the fetch cycle."""


class RatepollError(Exception):
    """Base exception for ratepoll."""


class ConfigError(RatepollError):
    """Raised when configuration values are invalid."""


class FetchError(RatepollError):
    """Raised when a single fetch unit cannot produce an outcome."""

    stage = "fetch"


class RequestBuildError(FetchError):
    """Raised when the GET request cannot be prepared."""

    stage = "request"


class TransportError(FetchError):
    """Raised when the request/response exchange fails on the wire."""

    stage = "transport"


class DecompressionError(FetchError):
    """Raised when the response body cannot be decompressed."""

    stage = "decompress"


class DecodeError(FetchError):
    """Raised when the payload is not a valid rates summary."""

    stage = "decode"
