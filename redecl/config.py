"""
Lint configuration.

Loaded from a JSON file (``.redecl.json`` in the workspace root by default).
Both snake_case and camelCase keys are accepted:

    {
      "resolve_bindings": true,
      "includeTests": false,
      "exclude_dirs": ["vendor", "third_party"],
      "maxFileBytes": 1000000
    }

A missing file yields the defaults; an unreadable or invalid file is logged
and also yields the defaults.
"""

import json
import logging
import os
from typing import List, Optional

from pydantic import BaseModel, ValidationError

from redecl.go_parser import DEFAULT_MAX_FILE_BYTES

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = ".redecl.json"

_DEFAULT_EXCLUDE_DIRS = [".git", "vendor", "node_modules", ".idea", ".vscode"]

# camelCase spellings -> field names
_ALIASES = {
    "resolveBindings": "resolve_bindings",
    "includeTests": "include_tests",
    "excludeDirs": "exclude_dirs",
    "maxFileBytes": "max_file_bytes",
}


class LintConfig(BaseModel):
    resolve_bindings: bool = True
    include_tests: bool = True
    exclude_dirs: List[str] = list(_DEFAULT_EXCLUDE_DIRS)
    max_file_bytes: int = DEFAULT_MAX_FILE_BYTES


def _normalise(data: dict) -> dict:
    return {_ALIASES.get(key, key): value for key, value in data.items()}


def load_config(path: Optional[str]) -> LintConfig:
    """Load a LintConfig from ``path``; fall back to defaults on any problem."""
    if not path or not os.path.isfile(path):
        if path:
            logger.info("No config at %s, using defaults", path)
        return LintConfig()

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        logger.error("Invalid JSON in %s: %s", path, e)
        return LintConfig()
    except (OSError, UnicodeDecodeError) as e:
        logger.error("Cannot read config %s: %s", path, e)
        return LintConfig()

    if not isinstance(data, dict):
        logger.error("Config %s must contain a JSON object", path)
        return LintConfig()

    try:
        config = LintConfig(**_normalise(data))
    except ValidationError as e:
        logger.error("Invalid config values in %s: %s", path, e)
        return LintConfig()

    logger.info("Loaded config from %s", path)
    return config


def find_config(workspace_root: str) -> Optional[str]:
    """Return the workspace config file path if one exists."""
    candidate = os.path.join(workspace_root, CONFIG_FILE_NAME)
    return candidate if os.path.isfile(candidate) else None
