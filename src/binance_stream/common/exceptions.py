import logging
from abc import ABC
from typing import Optional

import aiohttp

logger = logging.getLogger(__name__)


class StreamClientError(Exception, ABC):
    """Base exception for the stream client."""


class MessageDecodeError(StreamClientError):
    """Raised when an inbound text frame cannot be decoded."""

    def __init__(self, message: str, raw: str, original_exception: Optional[Exception] = None):
        super().__init__(message)
        self.raw = raw
        self.original_exception = original_exception


class TransportError(StreamClientError):
    """Raised when a frame cannot be written to the transport."""


class AsyncBinanceApiError(StreamClientError):
    """Base exception for errors returned by the Binance REST API."""

    def __init__(
        self,
        message: str,
        response: Optional[aiohttp.ClientResponse] = None,
        code: Optional[int] = None,
        msg: Optional[str] = None,
    ):
        super().__init__(message)
        self.response = response
        self.code = code
        self.msg = msg

    @property
    def status(self) -> Optional[int]:
        return self.response.status if self.response is not None else None

    def __str__(self) -> str:
        base_message = super().__str__()
        if self.msg is not None:
            return f"{base_message} (Status: {self.status}, Code: {self.code}, Message: {self.msg})"
        if self.response is not None:
            return f"{base_message} (Status: {self.status})"
        return base_message


class AsyncUnauthorizedError(AsyncBinanceApiError):
    """Raised on 401/403 authentication errors."""

    def __init__(self, response: Optional[aiohttp.ClientResponse] = None, **kwargs):
        super().__init__("UnauthorizedError - Please check your API key", response, **kwargs)


class AsyncBadRequestError(AsyncBinanceApiError):
    """Raised on 400 bad request errors."""

    def __init__(self, response: Optional[aiohttp.ClientResponse] = None, **kwargs):
        super().__init__("Bad request - Please check your input parameters", response, **kwargs)


class AsyncServerError(AsyncBinanceApiError):
    """Raised on 429 and 5XX server errors."""

    def __init__(self, response: Optional[aiohttp.ClientResponse] = None, **kwargs):
        super().__init__("Server error - Please try again later", response, **kwargs)


class AsyncResponseParsingError(AsyncBinanceApiError):
    """Raised when response parsing fails."""

    def __init__(self, response: Optional[aiohttp.ClientResponse] = None, **kwargs):
        super().__init__("Failed to parse JSON response", response, **kwargs)


class AsyncUnknownError(AsyncBinanceApiError):
    """Raised for unexpected errors."""

    def __init__(self, response: Optional[aiohttp.ClientResponse] = None, **kwargs):
        super().__init__("An unexpected error occurred", response, **kwargs)


__all__ = [
    "StreamClientError",
    "MessageDecodeError",
    "TransportError",
    "AsyncBinanceApiError",
    "AsyncUnauthorizedError",
    "AsyncBadRequestError",
    "AsyncServerError",
    "AsyncResponseParsingError",
    "AsyncUnknownError",
]
