"""Exception taxonomy for market data providers."""


__all__ = [
    "InvalidRequestError",
    "MalformedResponseError",
    "MissingCredentialError",
    "NoDataError",
    "ProviderError",
    "TickwatchError",
    "UpstreamUnavailableError",
]


class TickwatchError(Exception):
    """Base class for all tickwatch errors."""
    pass


class ProviderError(TickwatchError):
    """Raised by a market data provider."""
    pass


class MissingCredentialError(ProviderError):
    """Raised when connect() is called without an API key."""
    pass


class InvalidRequestError(ProviderError):
    """Raised when a subscription request cannot be honoured."""
    pass


class UpstreamUnavailableError(ProviderError):
    """Raised when the upstream API cannot be reached or refuses the request."""
    pass


class MalformedResponseError(ProviderError):
    """Raised when an upstream payload cannot be decoded into the expected shape."""
    pass


class NoDataError(ProviderError):
    """Raised when a well-formed upstream payload carries no usable value."""
    pass
