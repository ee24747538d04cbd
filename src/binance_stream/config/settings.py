from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from binance_stream.config.enumerations import OverflowPolicy

SPOT_WS_URLS: dict[bool, str] = {
    True: "wss://testnet.binance.vision/ws",  # testnet
    False: "wss://stream.binance.com:9443/ws",  # mainnet
}

FUTURES_WS_URLS: dict[bool, str] = {
    True: "wss://fstream.binancefuture.com/ws",
    False: "wss://fstream.binance.com/ws",
}

FUTURES_REST_URLS: dict[bool, str] = {
    True: "https://testnet.binancefuture.com",
    False: "https://fapi.binance.com",
}

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


class StreamSettings(BaseSettings):
    """Runtime knobs for the stream client, overridable from the environment."""

    model_config = SettingsConfigDict(
        env_prefix="BINANCE_STREAM_",
        env_file=".env",
        extra="ignore",
    )

    testnet: bool = False
    topics: List[str] = Field(default_factory=lambda: ["ethusdt@trade"])
    stats_interval: float = Field(default=5.0, gt=0)
    pong_interval: float = Field(default=180.0, gt=0)
    reconnect_delay: float = Field(default=3.0, ge=0)
    command_queue_size: int = Field(default=100, gt=0)
    command_overflow: OverflowPolicy = OverflowPolicy.BLOCK
    listen_key_renew_interval: float = Field(default=55 * 60, gt=0)
    connect_timeout: float = Field(default=10.0, gt=0)
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def check_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in VALID_LOG_LEVELS:
            raise ValueError(f"Invalid log level: '{value}'")
        return level

    @property
    def spot_ws_url(self) -> str:
        return SPOT_WS_URLS[self.testnet]

    @property
    def futures_ws_url(self) -> str:
        return FUTURES_WS_URLS[self.testnet]

    @property
    def futures_rest_url(self) -> str:
        return FUTURES_REST_URLS[self.testnet]
