"""
Configuration loader — reads the desired-state document.

The document is JSON (as written by the audit) or YAML, validated
against the Pydantic models. Any problem is a ``ConfigError`` raised
before a single side effect happens.
"""

from __future__ import annotations

import json
import logging
import shutil
from pathlib import Path
from typing import TypeVar

import yaml
from pydantic import ValidationError

from macsetup.core.models.config import ConfigDocument, DesiredState

logger = logging.getLogger(__name__)

# Default filenames (relative to the working directory)
DESIRED_CONFIG_FILE = "mac-config-desired.json"
BASE_CONFIG_FILE = "mac-config-base.json"

YAML_SUFFIXES = (".yml", ".yaml")

DocumentT = TypeVar("DocumentT", bound=ConfigDocument)


class ConfigError(Exception):
    """Raised when the desired-state document is missing or invalid."""


def default_desired_path(directory: Path | None = None) -> Path:
    return (directory or Path.cwd()) / DESIRED_CONFIG_FILE


def default_base_path(directory: Path | None = None) -> Path:
    return (directory or Path.cwd()) / BASE_CONFIG_FILE


def _parse(path: Path, raw: str) -> object:
    if path.suffix.lower() in YAML_SUFFIXES:
        try:
            return yaml.safe_load(raw)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {path}: {e}") from e


def load_document(path: Path, model: type[DocumentT]) -> DocumentT:
    """Load and validate a configuration document.

    Raises:
        ConfigError: If the file is missing, unparsable or invalid.
    """
    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading %s from %s", model.__name__, path)

    try:
        raw = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    data = _parse(path, raw)
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a mapping in {path}, got {type(data).__name__}")

    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e


def load_desired(path: Path) -> DesiredState:
    """Load the desired-state document."""
    desired = load_document(path, DesiredState)
    logger.info(
        "Loaded desired state: %d taps, %d formulae, %d casks, %d store apps, %d direct downloads",
        len(desired.taps),
        len(desired.formulae),
        len(desired.casks),
        len(desired.store_apps),
        len(desired.direct_downloads),
    )
    return desired


def create_desired_from_base(desired_path: Path, base_path: Path) -> bool:
    """First run: seed the desired document from the base snapshot.

    Returns:
        True if the desired file was created, False if there is no base.
    """
    if not base_path.is_file():
        return False
    desired_path.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(base_path, desired_path)
    logger.info("Created %s from %s", desired_path, base_path)
    return True
