"""Runtime dependency descriptor: models and parser."""

from .models import (
    DependencyCoordinate,
    DependencyRecord,
    DescriptorRecord,
    MalformedRecord,
    RepositoryDescriptor,
    RepositoryRecord,
    ResolvedArtifact,
    RuntimeDescriptor,
)
from .parser import format_descriptor, parse_descriptor, parse_records

__all__ = [
    "DependencyCoordinate",
    "DependencyRecord",
    "DescriptorRecord",
    "MalformedRecord",
    "RepositoryDescriptor",
    "RepositoryRecord",
    "ResolvedArtifact",
    "RuntimeDescriptor",
    "format_descriptor",
    "parse_descriptor",
    "parse_records",
]
