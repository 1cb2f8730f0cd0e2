"""Error taxonomy for upstream provider failures."""


class ProviderError(Exception):
    """Base class for errors raised by upstream data providers."""

    def __init__(self, message: str, provider: str = "", status_code: int | None = None) -> None:
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


class ProviderUnavailable(ProviderError):
    """Network failure, timeout or 5xx response. Safe to retry."""


class RateLimited(ProviderError):
    """Provider answered 429 or the local token bucket is exhausted."""

    def __init__(
        self,
        message: str,
        provider: str = "",
        status_code: int | None = None,
        retry_after_ms: int = 0,
    ) -> None:
        super().__init__(message, provider, status_code)
        self.retry_after_ms = retry_after_ms


class MalformedResponse(ProviderError):
    """Response body did not match the expected schema."""


class NotFound(ProviderError):
    """Requested token, price or address is unknown to the provider."""


class PartialFailure(ProviderError):
    """
    Some items of a batch failed while others succeeded.

    Parameters
    ----------
    message : str
        Summary message
    failed : dict[str, Exception]
        Mapping of item key to the error that ended its resolution

    """

    def __init__(self, message: str, failed: dict[str, Exception]) -> None:
        super().__init__(message)
        self.failed = failed
