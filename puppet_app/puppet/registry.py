"""
Backend selection for puppet sessions.

Backends are registered by name and chosen from ``PuppetOptions.backend``
when the session is constructed. The automation layer only ever sees the
Puppet interface.
"""

from typing import Any, Optional

import structlog

from ..config.defaults import PuppetOptions, get_default_options
from ..errors import ConfigurationError
from .base import Puppet
from .mock import PuppetMock

logger = structlog.get_logger(__name__)

_BACKENDS: dict[str, type[Puppet]] = {
    "mock": PuppetMock,
}


def register_backend(name: str, puppet_class: type[Puppet]) -> None:
    """Register a concrete backend under ``name``."""
    if not (isinstance(puppet_class, type) and issubclass(puppet_class, Puppet)):
        raise TypeError(f"{puppet_class!r} is not a Puppet subclass")
    if name in _BACKENDS and _BACKENDS[name] is not puppet_class:
        logger.warning(
            "Replacing registered puppet backend",
            backend=name,
            old=_BACKENDS[name].__name__,
            new=puppet_class.__name__
        )
    _BACKENDS[name] = puppet_class


def available_backends() -> list[str]:
    return sorted(_BACKENDS)


def get_backend(name: str) -> type[Puppet]:
    """Look up a backend class by name."""
    if name not in _BACKENDS:
        raise ConfigurationError(
            f"Unknown puppet backend: {name}",
            context={"backend": name, "available": available_backends()}
        )
    return _BACKENDS[name]


def create_puppet(options: Optional[PuppetOptions] = None, **kwargs: Any) -> Puppet:
    """Construct the backend named by ``options.backend``."""
    options = options or get_default_options()
    puppet_class = get_backend(options.backend)

    logger.info(
        "Creating puppet",
        puppet=options.name,
        backend=options.backend,
        puppet_class=puppet_class.__name__
    )
    return puppet_class(options, **kwargs)
