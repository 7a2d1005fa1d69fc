"""
Configuration management for the MediaMetaStream companion.

Handles:
- Service type and domain to browse for
- Resolution and connection timeouts
- Stream endpoint scheme

Discovered peers are never written here; they live only for the
lifetime of the process.
"""

import json
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional
import logging

logger = logging.getLogger(__name__)

# Default paths
DEFAULT_DATA_DIR = Path.home() / ".mmscompanion"

DEFAULT_SERVICE_TYPE = "_mms._tcp"
DEFAULT_DOMAIN = "local."
DEFAULT_RESOLVE_TIMEOUT = 5.0
DEFAULT_CONNECT_TIMEOUT = 10.0
DEFAULT_STREAM_SCHEME = "ws"


@dataclass
class Config:
    """
    Main companion configuration.

    Stored at ~/.mmscompanion/config.json
    """
    # Discovery
    service_type: str = DEFAULT_SERVICE_TYPE
    domain: str = DEFAULT_DOMAIN
    resolve_timeout: float = DEFAULT_RESOLVE_TIMEOUT

    # Stream
    stream_scheme: str = DEFAULT_STREAM_SCHEME
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    heartbeat: Optional[float] = None  # aiohttp ping interval, None disables

    # Paths
    data_dir: Path = field(default_factory=lambda: DEFAULT_DATA_DIR)

    @property
    def config_path(self) -> Path:
        return self.data_dir / "config.json"

    @property
    def browse_type(self) -> str:
        """Fully qualified DNS-SD type, e.g. ``_mms._tcp.local.``"""
        domain = self.domain if self.domain.endswith(".") else f"{self.domain}."
        return f"{self.service_type}.{domain}"

    def ensure_data_dir(self) -> None:
        """Create data directory if it doesn't exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def to_dict(self) -> dict:
        return {
            "service_type": self.service_type,
            "domain": self.domain,
            "resolve_timeout": self.resolve_timeout,
            "stream_scheme": self.stream_scheme,
            "connect_timeout": self.connect_timeout,
            "heartbeat": self.heartbeat,
        }

    def save(self) -> None:
        """Save configuration to disk."""
        self.ensure_data_dir()

        with open(self.config_path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

        logger.debug(f"Configuration saved to {self.config_path}")

    def set_value(self, key: str, value: str) -> None:
        """
        Set a field from its string form (as typed on the command line).

        Raises:
            KeyError: if the key is not a known setting
            ValueError: if the value cannot be converted
        """
        if key not in self.to_dict():
            raise KeyError(key)

        if key in ("resolve_timeout", "connect_timeout"):
            converted = float(value)
            if converted <= 0:
                raise ValueError(f"{key} must be positive")
        elif key == "heartbeat":
            converted = None if value.lower() in ("", "none", "off") else float(value)
        else:
            converted = value

        setattr(self, key, converted)

    @classmethod
    def load(cls, data_dir: Optional[Path] = None) -> "Config":
        """Load configuration from disk."""
        data_dir = data_dir or DEFAULT_DATA_DIR
        config_path = data_dir / "config.json"

        if not config_path.exists():
            return cls(data_dir=data_dir)

        with open(config_path, 'r') as f:
            data = json.load(f)

        # Filter to only known fields to handle config evolution
        known_fields = {f.name for f in fields(cls)} - {"data_dir"}
        filtered = {k: v for k, v in data.items() if k in known_fields}
        return cls(data_dir=data_dir, **filtered)

    @classmethod
    def exists(cls, data_dir: Optional[Path] = None) -> bool:
        """Check if configuration exists."""
        data_dir = data_dir or DEFAULT_DATA_DIR
        return (data_dir / "config.json").exists()


# Global config instance
_config: Optional[Config] = None


def get_config(data_dir: Optional[Path] = None) -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config.load(data_dir)
    return _config


def set_config(config: Config) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config


def reset_config() -> None:
    """Reset the global configuration instance."""
    global _config
    _config = None
