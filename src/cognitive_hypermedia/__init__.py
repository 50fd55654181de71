"""Cognitive Hypermedia.

Typed, persistent resources whose lifecycle is governed by declarative state
machines. Each resource representation carries the actions that are legal from
its current state.
"""

__version__ = "0.1.0"

from cognitive_hypermedia.core.errors import CognitiveStoreError
from cognitive_hypermedia.core.registry import StateMachineRegistry
from cognitive_hypermedia.core.store import CognitiveStore

__all__ = ["__version__", "CognitiveStore", "CognitiveStoreError", "StateMachineRegistry"]
