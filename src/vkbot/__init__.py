from __future__ import annotations

__version__ = "0.4.0"

from .bot import Bot  # noqa: E402
from .config import BotSettings, ConfigError  # noqa: E402
from .context import Context  # noqa: E402
from .events import EventKind  # noqa: E402
from .router import DuplicateHandlerError, Router, UnknownEventError  # noqa: E402

__all__ = [
    "Bot",
    "BotSettings",
    "ConfigError",
    "Context",
    "DuplicateHandlerError",
    "EventKind",
    "Router",
    "UnknownEventError",
    "__version__",
]
