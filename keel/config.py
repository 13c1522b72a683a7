"""
Config system - typed container configuration with layered loading.

Merge order (later overrides earlier):
1. ``ContainerConfig`` defaults
2. YAML file
3. ``.env`` file (``KEEL_*`` keys only)
4. Environment variables (``KEEL_*`` prefix)
5. Manual overrides
"""

from dataclasses import MISSING, asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union
import logging
import os

import yaml
from dotenv import dotenv_values

logger = logging.getLogger("keel.config")


class ConfigError(Exception):
    """Raised when configuration validation fails."""
    pass


@dataclass(frozen=True)
class ContainerConfig:
    """
    Container settings.

    Attributes:
        start_hook: Default hook name used by ``start``
        stop_hook: Default hook name used by ``stop``
        detect_cycles: Detect multi-hop dependency cycles while resolving
        log_level: Level used by ``configure_logging``
    """
    start_hook: str = "start"
    stop_hook: str = "stop"
    detect_cycles: bool = True
    log_level: str = "WARNING"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ConfigLoader:
    """
    Loads and merges ``ContainerConfig`` from multiple sources.

    Usage:
        config = ConfigLoader.load("keel.yaml", env_file=".env")
        container = Container(config=config)
    """

    def __init__(self, env_prefix: str = "KEEL_"):
        self.env_prefix = env_prefix
        self.config_data: Dict[str, Any] = {}

    @classmethod
    def load(
        cls,
        path: Optional[Union[str, Path]] = None,
        *,
        env_file: Optional[Union[str, Path]] = None,
        env_prefix: str = "KEEL_",
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> ContainerConfig:
        """
        Load configuration from all sources.

        Args:
            path: Optional YAML file
            env_file: Optional ``.env`` file
            env_prefix: Prefix for environment variables
            overrides: Manual overrides (highest precedence)

        Returns:
            Validated ContainerConfig

        Raises:
            ConfigError: On unreadable files, unknown keys or bad types
        """
        loader = cls(env_prefix=env_prefix)

        if path is not None:
            loader._load_yaml_file(Path(path))

        if env_file is not None:
            loader._load_env_file(Path(env_file))

        loader._load_from_env(os.environ)

        if overrides:
            loader.config_data.update(overrides)

        return loader.build()

    def build(self) -> ContainerConfig:
        """Instantiate ``ContainerConfig`` from the merged data."""
        known = {f.name: f for f in fields(ContainerConfig)}

        unknown = sorted(set(self.config_data) - set(known))
        if unknown:
            raise ConfigError(f"Unknown config keys: {', '.join(unknown)}")

        kwargs = {}
        for name, field_info in known.items():
            if name not in self.config_data:
                continue
            value = self.config_data[name]
            expected = type(field_info.default) if field_info.default is not MISSING else object
            if not isinstance(value, expected):
                raise ConfigError(
                    f"Config field '{name}' expected {expected.__name__}, "
                    f"got {type(value).__name__}"
                )
            kwargs[name] = value

        return ContainerConfig(**kwargs)

    def _load_yaml_file(self, path: Path) -> None:
        """Load config from YAML file. The file may nest keys under ``keel:``."""
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")

        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e

        if not data:
            return
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")

        section = data.get("keel", data)
        if not isinstance(section, dict):
            raise ConfigError(f"'keel' section in {path} must be a mapping")
        self.config_data.update(section)

    def _load_env_file(self, path: Path) -> None:
        """Load ``KEEL_*`` keys from a ``.env`` file."""
        if not path.exists():
            return
        self._load_from_env(dotenv_values(path))

    def _load_from_env(self, environ: Mapping[str, Optional[str]]) -> None:
        """Load prefixed variables naming a config field; other prefixed keys are skipped."""
        known = {f.name for f in fields(ContainerConfig)}
        for key, value in environ.items():
            if not key.startswith(self.env_prefix) or value is None:
                continue
            name = key[len(self.env_prefix):].lower()
            if name not in known:
                logger.debug(f"Ignoring unrelated environment variable {key}")
                continue
            self.config_data[name] = self._parse_value(value)

    @staticmethod
    def _parse_value(value: str) -> Any:
        """Parse string value to appropriate type."""
        if value.lower() in ("true", "yes", "1"):
            return True
        if value.lower() in ("false", "no", "0"):
            return False

        try:
            return int(value)
        except ValueError:
            pass

        return value


def configure_logging(level: Union[str, int] = "WARNING") -> None:
    """Install a basic handler on the ``keel`` logger hierarchy."""
    logger = logging.getLogger("keel")
    if isinstance(level, str):
        numeric = logging.getLevelName(level.upper())
        if not isinstance(numeric, int):
            raise ConfigError(f"Unknown log level: {level}")
        level = numeric

    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
        logger.addHandler(handler)
