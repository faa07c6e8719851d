"""Default configuration parameters for puppet sessions."""

from dataclasses import dataclass, field
from typing import Any, Optional

DEFAULT_WATCHDOG_TIMEOUT_SECONDS = 60
DEFAULT_CACHE_MAX_SIZE = 1000


@dataclass(frozen=True)
class PuppetOptions:
    """Session construction options shared by every backend."""
    name: str = "puppet"
    backend: str = "mock"

    # Overrides the backend's default liveness timeout when set
    watchdog_timeout_seconds: Optional[float] = None

    # Backend connection parameters
    endpoint: Optional[str] = None
    token: Optional[str] = None

    # Per entity kind payload cache capacity
    cache_max_size: int = DEFAULT_CACHE_MAX_SIZE

    # Anything only a specific backend understands
    backend_options: dict[str, Any] = field(default_factory=dict)


def get_default_options() -> PuppetOptions:
    """Get the default options instance."""
    return PuppetOptions()
