from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from descriptor.models import DependencyCoordinate

RUNTIME_SCOPE = "runtime"


@dataclass(frozen=True)
class RemoteRepository:
    """A repository as handed to a resolver: descriptor data plus credentials.

    Args:
        name (str): The repository name from the descriptor.
        url (str): Base URL of a Maven-layout repository.
            Examples: "https://repo.example.com/releases"
        auth (tuple | None): (username, password) for basic auth, or None.
    """
    name: str
    url: str
    auth: tuple[str, str] | None = field(default=None, repr=False)

    @property
    def is_authenticated(self) -> bool:
        return self.auth is not None


@dataclass(frozen=True)
class ResolutionRequest:
    """Resolve ``root`` and its transitive dependencies of ``scope``.

    Every repository in ``repositories`` is eligible; the resolver picks the
    first one, in order, that has the artifact.
    """
    root: DependencyCoordinate
    repositories: tuple[RemoteRepository, ...]
    scope: str = RUNTIME_SCOPE


class ArtifactResolver(Protocol):
    """Interface Protocol for artifact resolvers.
    To be implemented by actual transports (see maven_connector).
    """

    def resolve(self, request: ResolutionRequest) -> list[Path]:
        """
        Return the files of the requested artifact and its transitive
        dependencies, root first. Raise on any unresolvable artifact.
        """
        ...

    def close(self) -> None: ...
