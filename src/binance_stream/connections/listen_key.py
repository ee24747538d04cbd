"""Listen key lifecycle for the futures user-data stream.

A listen key is the session token embedded in the user-data WebSocket URL. It
is created with ``POST /fapi/v1/listenKey`` and expires after 60 minutes unless
renewed with ``PUT /fapi/v1/listenKey``; both calls authenticate with the
``X-MBX-APIKEY`` header.
"""

import asyncio
import logging
from types import TracebackType
from typing import Awaitable, Callable, Optional

import aiohttp
from injector import inject

from binance_stream.common.exceptions import AsyncBinanceApiError, AsyncResponseParsingError
from binance_stream.connections import Credentials
from binance_stream.utils.validators import validate_async_response

logger = logging.getLogger(__name__)

LISTEN_KEY_PATH = "/fapi/v1/listenKey"
RENEW_INTERVAL_SECONDS = 55 * 60


class ListenKeyClient:
    @inject
    def __init__(self, credentials: Credentials) -> None:
        self.credentials = credentials
        self.session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "ListenKeyClient":
        return self

    async def __aexit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        await self.close()

    @property
    def url(self) -> str:
        return self.credentials.rest_url + LISTEN_KEY_PATH

    def get_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                headers={"X-MBX-APIKEY": self.credentials.require_api_key()}
            )
        return self.session

    def stream_url(self, token: str) -> str:
        return f"{self.credentials.user_data_ws_url}/{token}"

    async def acquire_session_token(self) -> str:
        """Create a listen key.

        Raises:
            AsyncBinanceApiError: the API rejected the request.
        """
        session = self.get_session()
        async with session.post(self.url) as response:
            data = await validate_async_response(response)

        if not isinstance(data, dict) or "listenKey" not in data:
            raise AsyncResponseParsingError(response)

        listen_key: str = data["listenKey"]
        logger.info("Listen key acquired")
        return listen_key

    async def renew(self, token: str) -> bool:
        """Extend the validity of ``token``. Returns False when the renewal failed."""
        session = self.get_session()
        try:
            async with session.put(self.url, data={"listenKey": token}) as response:
                await validate_async_response(response)
        except (AsyncBinanceApiError, aiohttp.ClientError) as e:
            logger.error("Failed to renew listen key: %s", e)
            return False

        logger.info("Listen key renewed successfully.")
        return True

    async def keep_alive(
        self,
        token: str,
        interval: float = RENEW_INTERVAL_SECONDS,
        on_failure: Optional[Callable[[], Awaitable[None]]] = None,
    ) -> None:
        """Renew ``token`` every ``interval`` seconds until a renewal fails."""
        try:
            while True:
                await asyncio.sleep(interval)
                if not await self.renew(token):
                    break
        except asyncio.CancelledError:
            logger.info("Listen key renewal stopped")
            raise

        logger.error("Listen key renewal task ended")
        if on_failure is not None:
            await on_failure()

    async def close(self) -> None:
        if self.session is not None:
            await self.session.close()
            self.session = None
            logger.info("Listen key session closed")
