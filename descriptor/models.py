"""Pydantic models for the runtime dependency descriptor."""

from __future__ import annotations

from pathlib import Path
from typing import Union

from pydantic import BaseModel, ConfigDict, Field

DEPENDENCY_PREFIX = "DEP:"
REPOSITORY_PREFIX = "REPO:"


class DependencyCoordinate(BaseModel):
    """A (group, artifact, version) triple identifying one library artifact."""

    model_config = ConfigDict(frozen=True)

    group_id: str
    artifact_id: str
    version: str

    def __str__(self) -> str:
        return f"{self.group_id}:{self.artifact_id}:{self.version}"

    def to_record(self) -> str:
        return f"{DEPENDENCY_PREFIX}{self}"

    def file_name(self, extension: str) -> str:
        """File name of the artifact, e.g. ``lib-1.0.0.zip``."""
        return f"{self.artifact_id}-{self.version}.{extension.lstrip('.')}"

    def maven_path(self, extension: str) -> str:
        """Relative path of the artifact in a Maven-layout repository."""
        group_path = self.group_id.replace(".", "/")
        return f"{group_path}/{self.artifact_id}/{self.version}/{self.file_name(extension)}"


class RepositoryDescriptor(BaseModel):
    """A remote repository declared in the descriptor."""

    model_config = ConfigDict(frozen=True)

    name: str
    url: str
    needs_auth: bool = False
    credential_env_prefix: str = ""

    def to_record(self) -> str:
        needs_auth = "true" if self.needs_auth else "false"
        return f"{REPOSITORY_PREFIX}{self.name}:{self.url}:{needs_auth}:{self.credential_env_prefix}"


class RuntimeDescriptor(BaseModel):
    """Dependencies and repositories of one bootstrapped run.

    Order of ``dependencies`` is the resolution order and, through it, the
    layering order of the acquired artifacts.
    """

    model_config = ConfigDict(frozen=True)

    dependencies: tuple[DependencyCoordinate, ...] = ()
    repositories: tuple[RepositoryDescriptor, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.dependencies and not self.repositories


# ---------------------------------------------------------------------------
# parser records


class DependencyRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    line_number: int
    coordinate: DependencyCoordinate


class RepositoryRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    line_number: int
    repository: RepositoryDescriptor


class MalformedRecord(BaseModel):
    """A descriptor line that could not be interpreted; dropped by the parser."""

    model_config = ConfigDict(frozen=True)

    line_number: int
    text: str


DescriptorRecord = Union[DependencyRecord, RepositoryRecord, MalformedRecord]


class ResolvedArtifact(BaseModel):
    """An artifact file on disk, produced by one acquisition strategy.

    ``coordinate`` is ``None`` when the artifact was found in a local library
    directory.
    """

    model_config = ConfigDict(frozen=True)

    location: Path
    coordinate: DependencyCoordinate | None = Field(default=None)


__all__ = [
    "DEPENDENCY_PREFIX",
    "REPOSITORY_PREFIX",
    "DependencyCoordinate",
    "DependencyRecord",
    "DescriptorRecord",
    "MalformedRecord",
    "RepositoryDescriptor",
    "RepositoryRecord",
    "ResolvedArtifact",
    "RuntimeDescriptor",
]
