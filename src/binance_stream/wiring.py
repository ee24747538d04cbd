from injector import Injector, Module, provider, singleton

from binance_stream.config import ConfigurationManager, DotEnvConfigManager, StreamSettings
from binance_stream.connections import Credentials


class StreamModule(Module):
    """Binds settings, configuration and credentials for one client process."""

    def __init__(self, settings: StreamSettings, env_file: str = ".env") -> None:
        self.settings = settings
        self.env_file = env_file

    @singleton
    @provider
    def provide_settings(self) -> StreamSettings:
        return self.settings

    @singleton
    @provider
    def provide_config(self) -> ConfigurationManager:
        config = DotEnvConfigManager(env_file=self.env_file)
        config.initialize()
        return config

    @singleton
    @provider
    def provide_credentials(
        self, config: ConfigurationManager, settings: StreamSettings
    ) -> Credentials:
        return Credentials(config=config, settings=settings)


def create_injector(settings: StreamSettings, env_file: str = ".env") -> Injector:
    return Injector([StreamModule(settings, env_file=env_file)])
