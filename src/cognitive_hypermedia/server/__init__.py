"""FastAPI server adapter for cognitive-hypermedia.

This module exposes a REST API over the resource engine.

Design intent:
- Keep state machine and persistence logic in `cognitive_hypermedia.core` and
  `cognitive_hypermedia.storage`
- Keep server-specific concerns (routing, CORS, error payloads) here
"""

from __future__ import annotations

__all__ = ["create_app"]

from cognitive_hypermedia.server.app import create_app
