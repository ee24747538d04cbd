from typing import Optional

from binance_stream.config import ConfigurationManager, StreamSettings


class Credentials:
    api_key: Optional[str]
    is_testnet: bool
    rest_url: str
    user_data_ws_url: str

    def __init__(self, config: ConfigurationManager, settings: StreamSettings):
        """Binance credentials and the endpoints they are valid for.

        Args:
            config: Configuration manager for reading env vars.
            settings: Stream settings selecting mainnet or testnet endpoints.
        """
        self.is_testnet = settings.testnet
        self.api_key = config.get("BINANCE_API_KEY")
        self.rest_url = settings.futures_rest_url
        self.user_data_ws_url = settings.futures_ws_url

    def require_api_key(self) -> str:
        if not self.api_key:
            raise ValueError("Missing BINANCE_API_KEY environment variable")
        return self.api_key
