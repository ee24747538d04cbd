import logging
import os
from abc import ABC, abstractmethod
from typing import Dict, Optional

from dotenv import dotenv_values

logger = logging.getLogger(__name__)


class ConfigurationManager(ABC):
    """Abstract base class defining the configuration manager interface."""

    @abstractmethod
    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Get a configuration value."""
        pass

    @abstractmethod
    def initialize(self, force: bool = False) -> None:
        """Load the configuration source."""
        pass


class DotEnvConfigManager(ConfigurationManager):
    """Configuration read from a .env file, overridden by the process environment."""

    def __init__(self, env_file: Optional[str] = None) -> None:
        self.env_file = env_file or ".env"
        self.values: Dict[str, str] = {}
        self.initialized = False

    def initialize(self, force: bool = False) -> None:
        """Load variables from the .env file and the process environment.

        Args:
            force: Reload even if already initialized
        """
        if self.initialized and not force:
            return

        file_values = {
            key: value for key, value in dotenv_values(self.env_file).items() if value is not None
        }
        if file_values:
            logger.info("Loaded %d variables from %s", len(file_values), self.env_file)
        else:
            logger.debug("No variables found in env file: %s", self.env_file)

        self.values = {**file_values, **os.environ}
        self.initialized = True

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Get a configuration value.

        Args:
            key: Configuration key
            default: Default value if key doesn't exist
        """
        self.initialize()
        return self.values.get(key, default)
