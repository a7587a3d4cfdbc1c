"""Configuration management."""

from pathlib import Path
from typing import Optional

import yaml

from tmichat.models import Config


def load_config(config_path: Optional[Path] = None) -> Config:
    """Load configuration from YAML file."""
    if config_path is None:
        config_path = Path("config.yaml")

    if not config_path.exists():
        # Return default config
        return Config()

    with open(config_path) as f:
        data = yaml.safe_load(f)

    return Config(**(data or {}))
