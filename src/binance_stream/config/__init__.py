from binance_stream.config.manager import ConfigurationManager, DotEnvConfigManager
from binance_stream.config.settings import StreamSettings

__all__ = ["ConfigurationManager", "DotEnvConfigManager", "StreamSettings"]
