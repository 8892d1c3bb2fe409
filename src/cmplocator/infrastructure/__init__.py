"""Infrastructure domain: config, editor launching, and file watching.

Note: ``cmplocator.infrastructure.watcher`` is not re-exported here because it
pulls in ``rich`` and ``watchfiles`` lazily at watch time. Import it directly::

    from cmplocator.infrastructure.watcher import RebuildScheduler, watch
"""

from cmplocator.infrastructure.config import ConfigError, LocatorConfig, load_config
from cmplocator.infrastructure.editor import EditorDispatcher, OpenRequest

__all__ = [
    "ConfigError",
    "EditorDispatcher",
    "LocatorConfig",
    "OpenRequest",
    "load_config",
]
