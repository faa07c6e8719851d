"""Configuration loader with 3-tier parameter precedence."""

from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Optional

import structlog
import yaml

from ..errors import ConfigurationError
from .defaults import PuppetOptions, get_default_options
from .validation import ConfigValidator

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ConfigLoader:
    """Manages session options loading with 3-tier precedence."""

    config_dir: Path
    defaults: PuppetOptions

    @classmethod
    def create(cls, config_dir: Optional[Path] = None) -> "ConfigLoader":
        """Create a ConfigLoader instance."""
        if config_dir is None:
            config_dir = Path(__file__).parent.parent.parent / "config"

        return cls(
            config_dir=Path(config_dir),
            defaults=get_default_options(),
        )

    def load_puppet_config(self, name: str) -> dict[str, Any]:
        """Load per-puppet configuration overrides from puppets.yaml."""
        puppets_file = self.config_dir / "puppets.yaml"

        if not puppets_file.exists():
            return {}

        with open(puppets_file) as f:
            puppets_config = yaml.safe_load(f) or {}

        return puppets_config.get("puppets", {}).get(name, {}) or {}  # type: ignore[no-any-return]

    def merge_config(
        self,
        name: str,
        overrides: Optional[dict[str, Any]] = None
    ) -> dict[str, Any]:
        """
        Merge configuration with 3-tier precedence.

        Priority order:
        1. Explicit overrides (highest priority)
        2. Per-puppet entries from puppets.yaml
        3. Global defaults (lowest priority)
        """
        config = asdict(self.defaults)
        config["name"] = name

        config = self._deep_merge(config, self.load_puppet_config(name))

        if overrides:
            config = self._deep_merge(config, overrides)

        return config

    def load_options(
        self,
        name: str,
        overrides: Optional[dict[str, Any]] = None
    ) -> PuppetOptions:
        """Merge, validate and build the options for one puppet session."""
        config = self.merge_config(name, overrides)

        errors = ConfigValidator.validate_options(config)
        if errors:
            error_msgs = [f"{err.field}: {err.message} (got: {err.value})" for err in errors]
            logger.error(
                "Puppet options validation failed",
                puppet=name,
                errors=error_msgs
            )
            raise ConfigurationError(
                f"Invalid options for puppet {name}: {'; '.join(error_msgs)}",
                errors=errors,
                context={"puppet": name}
            )

        return PuppetOptions(**config)

    def _deep_merge(self, base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        """Deep merge two dictionaries."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result
