# Agent configuration for SAMPi
# Defaults overridden by an optional config.json

import json
import logging
import socket
import sys
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional, Union

from .exceptions import ConfigError

logger = logging.getLogger(__name__)


def _default_artifact_path() -> str:
    return str(Path(sys.argv[0]).resolve())


@dataclass
class AgentConfig:
    """Configuration for the ECR reader agent"""

    # Serial input
    serial_port: str = '/dev/ttyUSB0'
    baudrate: int = 9600
    # Read lines from a captured file instead of serial ('-' for stdin)
    replay_path: Optional[str] = None

    # Config files and output locations
    plu_path: str = 'config/plu.txt'
    shops_path: str = 'config/shops.csv'
    output_dir: str = 'ecr_data'
    log_dir: str = 'log'

    # Inclusive business hours (24h clock)
    opening_hour: int = 6
    closing_hour: int = 23

    currency_symbol: str = '£'

    # Use header times instead of the wall clock to detect a new hour
    debug_clock: bool = True
    # Keep ingesting outside business hours and log parser detail
    verbose_parser: bool = True

    poll_interval: float = 0.2
    idle_poll_seconds: float = 60

    # Self-update
    update_url: Optional[str] = None
    update_check_minutes: int = 20
    artifact_path: str = field(default_factory=_default_artifact_path)

    hostname: str = field(default_factory=socket.gethostname)

    @classmethod
    def load(cls, path: Optional[Union[str, Path]] = None) -> 'AgentConfig':
        """Load config from a JSON file; a missing file means all defaults"""
        if path is None:
            return cls()

        path = Path(path)
        if not path.exists():
            logger.info("No config file at %s, using defaults", path)
            return cls()

        try:
            with open(path, encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"Could not read config file {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a JSON object")

        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            logger.warning("Ignoring unknown config keys: %s", ", ".join(sorted(unknown)))

        config = cls(**{k: v for k, v in data.items() if k in known})
        config.validate()
        return config

    def validate(self):
        for name in ('opening_hour', 'closing_hour'):
            value = getattr(self, name)
            if not isinstance(value, int) or not 0 <= value <= 23:
                raise ConfigError(f"{name} must be an hour between 0 and 23, got {value!r}")
        if not self.currency_symbol:
            raise ConfigError("currency_symbol must not be empty")
