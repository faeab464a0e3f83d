"""Configuration management for Merkle Checkpoint."""

import json
import os
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

from . import CONFIG_FILE, MCKPT_DIR
from .combiners import COMBINERS, Combiner, get_combiner

LEAF_FORMATS = ("text", "hex")


class CheckpointConfig(BaseModel):
    """Configuration for Merkle Checkpoint."""

    version: int = Field(default=1, ge=1)
    combiner: Literal["adler32", "crc32"] = "adler32"
    leaf_format: Literal["text", "hex"] = "text"  # How leaf lines are read
    skip_blank_lines: bool = True

    def get_combiner(self) -> Combiner:
        """Instantiate the configured combining function."""
        return get_combiner(self.combiner)

    def parse_leaf(self, line: str) -> bytes:
        """Convert one line of a leaf file to a signature."""
        if self.leaf_format == "hex":
            return bytes.fromhex(line)
        return line.encode("utf-8")


def get_mckpt_dir(project_root: Path) -> Path:
    """Get the .merkle-checkpoint directory path."""
    return project_root / MCKPT_DIR


def get_config_path(project_root: Path) -> Path:
    """Get the config file path."""
    return get_mckpt_dir(project_root) / CONFIG_FILE


def load_config(project_root: Path) -> CheckpointConfig:
    """Load configuration from the project's config file.

    Falls back to defaults if file doesn't exist.
    Environment variables can override config values.
    """
    config_path = get_config_path(project_root)

    if config_path.exists():
        with open(config_path) as f:
            data = json.load(f)
        config = CheckpointConfig.model_validate(data)
    else:
        config = CheckpointConfig()

    # Apply environment variable overrides
    config = _apply_env_overrides(config)

    return config


def save_config(config: CheckpointConfig, project_root: Path) -> None:
    """Save configuration to the project's config file."""
    config_path = get_config_path(project_root)
    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, "w") as f:
        json.dump(config.model_dump(), f, indent=2)


def create_default_config(
    combiner: Literal["adler32", "crc32"] = "adler32",
) -> CheckpointConfig:
    """Create a default configuration with the specified combiner."""
    return CheckpointConfig(combiner=combiner)


def _apply_env_overrides(config: CheckpointConfig) -> CheckpointConfig:
    """Apply environment variable overrides to config."""
    data = config.model_dump()

    # MCKPT_COMBINER
    if combiner := os.environ.get("MCKPT_COMBINER"):
        if combiner in COMBINERS:
            data["combiner"] = combiner

    # MCKPT_LEAF_FORMAT
    if leaf_format := os.environ.get("MCKPT_LEAF_FORMAT"):
        if leaf_format in LEAF_FORMATS:
            data["leaf_format"] = leaf_format

    return CheckpointConfig.model_validate(data)
