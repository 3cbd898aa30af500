"""
Factory for creating memory store backends.
"""

from souvenir.config import StoreConfig
from souvenir.core.store.base import MemoryStore
from souvenir.core.store.sqlite_store import SQLiteMemoryStore
from souvenir.utils.exceptions import ConfigurationError


class StoreFactory:
    """Factory for creating memory store backends from configuration."""

    @staticmethod
    def create(config: StoreConfig) -> MemoryStore:
        """
        Create memory store from configuration.

        Raises:
            ConfigurationError: If the backend is unsupported
        """
        if config.backend == "sqlite":
            return SQLiteMemoryStore(db_path=config.db_path)
        raise ConfigurationError(f"Unsupported store backend: {config.backend}")
