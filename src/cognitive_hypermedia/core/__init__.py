"""Core package initialization."""

from cognitive_hypermedia.core.config import AppConfig, EngineConfig, StorageConfig
from cognitive_hypermedia.core.registry import StateMachineRegistry
from cognitive_hypermedia.core.resource import Collection, PaginationInfo, Resource
from cognitive_hypermedia.core.statemachine import StateMachine, StateMachineDefinition
from cognitive_hypermedia.core.store import CognitiveStore, CollectionOptions

__all__ = [
    "AppConfig",
    "CognitiveStore",
    "Collection",
    "CollectionOptions",
    "EngineConfig",
    "PaginationInfo",
    "Resource",
    "StateMachine",
    "StateMachineDefinition",
    "StateMachineRegistry",
    "StorageConfig",
]
