"""Alpine Package Manager (interactive component installer for Alpine Linux).

Core design goals:
- Declarative component catalog (YAML)
- Dependency-closed, priority-ordered installation queue
- Idempotent installs backed by on-disk installation records
- User-driven continue/abort on per-component failures
- Centralized logging
"""

__all__ = []
__version__ = "1.0.0"
