"""Session options, defaults and loading."""

from .defaults import (
    DEFAULT_CACHE_MAX_SIZE,
    DEFAULT_WATCHDOG_TIMEOUT_SECONDS,
    PuppetOptions,
    get_default_options,
)
from .loader import ConfigLoader

__all__ = [
    "DEFAULT_CACHE_MAX_SIZE",
    "DEFAULT_WATCHDOG_TIMEOUT_SECONDS",
    "PuppetOptions",
    "get_default_options",
    "ConfigLoader",
]
