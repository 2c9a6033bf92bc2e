"""Config loading and persistence."""

from __future__ import annotations

import contextlib
import os
import tempfile
from pathlib import Path
from typing import Any

import yaml
from loguru import logger

from changuard.config.schema import Config
from changuard.core.errors import PersistenceFailure


def load_config(path: str | Path) -> dict[str, Any]:
    """Load config from YAML file. Use SafeLoader. Returns raw dict."""
    path = Path(path)
    if not path.exists():
        logger.warning("Config file not found: {}", path)
        return {}

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
        if not isinstance(data, dict):
            logger.warning("Config file {} has invalid structure (expected dict)", path)
            return {}
        return data
    except yaml.YAMLError as exc:
        logger.error("Failed to parse config {}: {}", path, exc)
        raise


def load_config_with_env(path: str | Path) -> dict[str, Any]:
    """Load config from YAML after loading .env, so env overrides are visible to Config."""
    from dotenv import load_dotenv

    load_dotenv()
    return load_config(path)


class ConfigStore:
    """YAML file backing the global config. Load once, save after every allow-list change."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load(self) -> Config:
        """Read and validate the config file."""
        config = Config()
        config.reload(load_config_with_env(self.path))
        return config

    def save(self, config: Config) -> None:
        """Atomically rewrite the file with the full config. Raises PersistenceFailure."""
        tmp_name: str | None = None
        try:
            with tempfile.NamedTemporaryFile(
                "w", dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp", delete=False
            ) as f:
                tmp_name = f.name
                yaml.safe_dump(config.to_dict(), f, sort_keys=False, default_flow_style=False)
            os.replace(tmp_name, self.path)
        except (OSError, yaml.YAMLError) as exc:
            if tmp_name:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_name)
            raise PersistenceFailure(
                f"Failed to write config {self.path}: {exc}",
                code="config_write_failed",
                details={"path": str(self.path)},
                original_error=exc,
            ) from exc
        logger.debug("Config written to {}", self.path)
