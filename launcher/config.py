"""
config.py
---------
Launcher configuration.

Values are taken, highest precedence first, from explicit overrides (CLI
options), ``RUNTIME_DEPENDENCY_*`` environment variables, the application's
container metadata (``runtime-manifest.yaml``), and built-in defaults.

The application container is either a directory or a zip archive
(e.g. a ``.pyz`` built with zipapp).
"""

from __future__ import annotations

import logging
import os
import zipfile
from enum import Enum
from pathlib import Path
from typing import Any, Mapping

import yaml
from box import Box
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from connectors.remote_resolver import DEFAULT_CACHE_DIR
from descriptor.models import RuntimeDescriptor
from descriptor.parser import parse_descriptor
from launcher.errors import ConfigurationError

logger = logging.getLogger(__name__)

MANIFEST_NAME = "runtime-manifest.yaml"
DESCRIPTOR_NAME = "runtime-dependencies.txt"
LEGACY_DESCRIPTOR_NAME = "META-INF/runtime-dependencies.txt"

DEFAULT_LIBRARY_PATH = Path("libs")
DEFAULT_EXTENSION = "zip"

ENV_PREFIX = "RUNTIME_DEPENDENCY_"

# settings field -> (metadata key, environment variable)
CONFIG_KEYS = {
    "entry_point": ("entry-point", f"{ENV_PREFIX}ENTRY_POINT"),
    "library_path": ("library-path", f"{ENV_PREFIX}LIBRARY_PATH"),
    "cache_dir": ("cache-dir", f"{ENV_PREFIX}CACHE_DIR"),
    "mode": ("mode", f"{ENV_PREFIX}MODE"),
    "artifact_extension": ("artifact-extension", f"{ENV_PREFIX}ARTIFACT_EXTENSION"),
    "include_central": ("maven-central", f"{ENV_PREFIX}MAVEN_CENTRAL"),
}


class LaunchMode(str, Enum):
    LOCAL = "local"
    REMOTE = "remote"


class ApplicationContainer:
    """Read access to files packaged with the application."""

    def __init__(self, location: str | os.PathLike):
        self.location = Path(location)

    def read_text(self, name: str) -> str | None:
        """Return the UTF-8 text of ``name`` inside the container, or None if absent."""
        if self.location.is_dir():
            path = self.location / name
            if not path.is_file():
                return None
            data = path.read_bytes()
        else:
            try:
                with zipfile.ZipFile(self.location) as archive:
                    try:
                        data = archive.read(name)
                    except KeyError:
                        return None
            except (OSError, zipfile.BadZipFile) as exc:
                raise ConfigurationError(f"Cannot read application archive {self.location}: {exc}") from exc
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ConfigurationError(f"{name} in {self.location} is not valid UTF-8: {exc}") from exc

    def read_metadata(self) -> Box:
        """Container metadata as a Box; empty when the application has none."""
        text = self.read_text(MANIFEST_NAME)
        if text is None:
            return Box()
        try:
            data = yaml.safe_load(text) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Invalid {MANIFEST_NAME} in {self.location}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigurationError(f"{MANIFEST_NAME} in {self.location} must be a mapping")
        return Box(data)

    def read_descriptor(self) -> RuntimeDescriptor:
        """Parse the bundled dependency descriptor; no descriptor means no dependencies."""
        text = self.read_text(DESCRIPTOR_NAME)
        if text is None:
            text = self.read_text(LEGACY_DESCRIPTOR_NAME)
        if text is None:
            logger.warning("No %s found in %s", DESCRIPTOR_NAME, self.location)
            return RuntimeDescriptor()
        return parse_descriptor(text)


class LauncherSettings(BaseModel):
    """Effective configuration of one launcher run."""

    model_config = ConfigDict(frozen=True)

    application: Path
    entry_point: str | None = None
    library_path: Path = DEFAULT_LIBRARY_PATH
    cache_dir: Path = DEFAULT_CACHE_DIR
    mode: LaunchMode = LaunchMode.LOCAL
    artifact_extension: str = Field(default=DEFAULT_EXTENSION, min_length=1)
    include_central: bool = False

    @property
    def container(self) -> ApplicationContainer:
        return ApplicationContainer(self.application)

    @classmethod
    def load(cls, application: str | os.PathLike, overrides: Mapping[str, Any] | None = None,
             environ: Mapping[str, str] | None = None) -> LauncherSettings:
        """
        Build the settings for ``application``.

        Args:
            application: Application directory or archive.
            overrides: Explicit values keyed by field name; None values are ignored.
            environ: Environment used for RUNTIME_DEPENDENCY_* lookups; defaults to os.environ.

        Raises:
            ConfigurationError: application missing, metadata unreadable, or a value invalid.
        """
        application = Path(application)
        if not application.exists():
            raise ConfigurationError(f"Application not found: {application}")

        overrides = overrides or {}
        environ = os.environ if environ is None else environ
        metadata = ApplicationContainer(application).read_metadata()

        values: dict[str, Any] = {"application": application}
        for field, (metadata_key, env_name) in CONFIG_KEYS.items():
            for candidate in (overrides.get(field), environ.get(env_name), metadata.get(metadata_key)):
                if candidate is not None and candidate != "":
                    values[field] = candidate
                    break

        try:
            settings = cls.model_validate(values)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid launcher configuration: {exc}") from exc
        return settings.model_copy(update={"cache_dir": settings.cache_dir.expanduser()})
