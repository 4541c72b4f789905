"""Line-oriented parser for ``runtime-dependencies.txt``.

Format::

    # comment
    DEP:<groupId>:<artifactId>:<version>
    REPO:<name>:<url>:<needsAuth:true|false>:<credentialEnvPrefix>

Parsing is lenient: a bad line is reported as a ``MalformedRecord`` and
dropped, it never aborts the rest of the descriptor.
"""

from __future__ import annotations

import logging

from .models import (
    DEPENDENCY_PREFIX,
    REPOSITORY_PREFIX,
    DependencyCoordinate,
    DependencyRecord,
    DescriptorRecord,
    MalformedRecord,
    RepositoryDescriptor,
    RepositoryRecord,
    RuntimeDescriptor,
)

logger = logging.getLogger(__name__)

DESCRIPTOR_HEADER = (
    "# Runtime dependencies manifest",
    "# Format: DEP:groupId:artifactId:version",
    "# Format: REPO:name:url:needsAuth:envPrefix",
)


def parse_records(text: str | None) -> list[DescriptorRecord]:
    """Turn descriptor text into records, one per non-comment line.

    Line numbers are 1-based.
    """
    records: list[DescriptorRecord] = []
    if not text:
        return records
    for line_number, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith(DEPENDENCY_PREFIX):
            records.append(_parse_dependency(line_number, line))
        elif line.startswith(REPOSITORY_PREFIX):
            records.append(_parse_repository(line_number, line))
        else:
            records.append(MalformedRecord(line_number=line_number, text=line))
    return records


def parse_descriptor(text: str | None) -> RuntimeDescriptor:
    """Parse descriptor text into a ``RuntimeDescriptor``; malformed lines are dropped."""
    dependencies: list[DependencyCoordinate] = []
    repositories: list[RepositoryDescriptor] = []
    for record in parse_records(text):
        if isinstance(record, DependencyRecord):
            dependencies.append(record.coordinate)
        elif isinstance(record, RepositoryRecord):
            repositories.append(record.repository)
        else:
            logger.debug("Skipping malformed descriptor line %d: %r", record.line_number, record.text)
    return RuntimeDescriptor(dependencies=tuple(dependencies), repositories=tuple(repositories))


def format_descriptor(descriptor: RuntimeDescriptor) -> str:
    """Serialize a descriptor back to text, header comments included."""
    lines = list(DESCRIPTOR_HEADER)
    lines.append("")
    lines.extend(dep.to_record() for dep in descriptor.dependencies)
    lines.append("")
    lines.extend(repo.to_record() for repo in descriptor.repositories)
    return "\n".join(lines) + "\n"


# ---------------------------------------------------------------------------
# helpers


def _parse_dependency(line_number: int, line: str) -> DescriptorRecord:
    parts = line[len(DEPENDENCY_PREFIX):].split(":")
    if len(parts) != 3:
        return MalformedRecord(line_number=line_number, text=line)
    group_id, artifact_id, version = parts
    coordinate = DependencyCoordinate(group_id=group_id, artifact_id=artifact_id, version=version)
    return DependencyRecord(line_number=line_number, coordinate=coordinate)


def _parse_repository(line_number: int, line: str) -> DescriptorRecord:
    # The url may contain ':' itself, so the name is cut at the first colon
    # and the auth fields are recovered from the end.
    content = line[len(REPOSITORY_PREFIX):]
    first_colon = content.find(":")
    if first_colon == -1:
        return MalformedRecord(line_number=line_number, text=line)

    name = content[:first_colon]
    last_colon = content.rfind(":")
    second_last_colon = content.rfind(":", 0, last_colon)

    if second_last_colon <= first_colon:
        repository = RepositoryDescriptor(name=name, url=content[first_colon + 1:])
    else:
        repository = RepositoryDescriptor(
            name=name,
            url=content[first_colon + 1:second_last_colon],
            needs_auth=content[second_last_colon + 1:last_colon].strip().lower() == "true",
            credential_env_prefix=content[last_colon + 1:],
        )
    return RepositoryRecord(line_number=line_number, repository=repository)


__all__ = ["DESCRIPTOR_HEADER", "format_descriptor", "parse_descriptor", "parse_records"]
