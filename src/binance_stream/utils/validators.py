import logging
from typing import Any, Optional

import aiohttp

from binance_stream.common.exceptions import (
    AsyncBadRequestError,
    AsyncBinanceApiError,
    AsyncResponseParsingError,
    AsyncServerError,
    AsyncUnauthorizedError,
    AsyncUnknownError,
)

logger = logging.getLogger(__name__)

ERROR_MAP: dict[int, type[AsyncBinanceApiError]] = {
    400: AsyncBadRequestError,
    401: AsyncUnauthorizedError,
    403: AsyncUnauthorizedError,
    404: AsyncBadRequestError,
    429: AsyncServerError,  # Rate limiting
    418: AsyncServerError,  # IP ban after ignoring 429s
    500: AsyncServerError,
    502: AsyncServerError,
    503: AsyncServerError,
    504: AsyncServerError,
}


async def validate_async_response(response: aiohttp.ClientResponse) -> Any:
    """Validate a Binance REST response and return its decoded JSON body.

    Binance reports failures as ``{"code": -2015, "msg": "..."}``; when present
    these are attached to the raised exception.

    Args:
        response: The aiohttp response object

    Raises:
        Various AsyncBinanceApiError subclasses based on the error condition
    """
    if 200 <= response.status < 300:
        try:
            return await response.json(content_type=None)
        except ValueError as e:
            logger.error("Failed to parse JSON response: %s", e)
            raise AsyncResponseParsingError(response) from e

    text = await response.text()
    code: Optional[int] = None
    msg: Optional[str] = None
    try:
        body = await response.json(content_type=None)
        if isinstance(body, dict):
            code = body.get("code")
            msg = body.get("msg")
    except ValueError:
        logger.debug("Error body is not JSON: %s", text[:200])

    if error_class := ERROR_MAP.get(response.status):
        logger.error("API error: %s - %s", response.status, text)
        raise error_class(response, code=code, msg=msg)

    logger.error("Unknown error: %s - %s", response.status, text)
    raise AsyncUnknownError(response, code=code, msg=msg)
