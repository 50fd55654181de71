"""Wire a storage backend and an engine from configuration."""

from __future__ import annotations

import logging

from cognitive_hypermedia.core.config import AppConfig, StorageConfig
from cognitive_hypermedia.core.registry import StateMachineRegistry
from cognitive_hypermedia.core.store import CognitiveStore
from cognitive_hypermedia.storage.adapter import StorageAdapter
from cognitive_hypermedia.storage.json_file import JsonFileStorageAdapter
from cognitive_hypermedia.storage.memory import InMemoryStorageAdapter

logger = logging.getLogger(__name__)


class StorageFactory:
    @staticmethod
    def create_adapter(config: StorageConfig) -> StorageAdapter:
        if config.backend == "json":
            logger.info("Using JSON file storage", extra={"path": str(config.path)})
            return JsonFileStorageAdapter(config.path)
        logger.info("Using in-memory storage")
        return InMemoryStorageAdapter()

    @staticmethod
    def create_store(
        config: AppConfig | None = None, registry: StateMachineRegistry | None = None
    ) -> CognitiveStore:
        cfg = config or AppConfig()
        return CognitiveStore(
            StorageFactory.create_adapter(cfg.storage),
            registry,
            config=cfg.engine,
        )
