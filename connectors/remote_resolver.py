"""
remote_resolver.py
------------------
Acquires artifacts from remote repositories.

Turns descriptor repositories into resolver repositories (attaching
credentials from the environment where asked), then resolves every
coordinate in descriptor order. The first failure aborts the whole
acquisition: a partial set of remote artifacts is never returned.
"""

import logging
import os
from pathlib import Path
from typing import Iterable, Mapping

from connectors.maven_connector import CachingMavenResolver
from connectors.resolver_interface import RUNTIME_SCOPE, ArtifactResolver, RemoteRepository, ResolutionRequest
from descriptor.models import DependencyCoordinate, RepositoryDescriptor, ResolvedArtifact
from launcher.errors import ArtifactResolutionError

logger = logging.getLogger(__name__)

DEFAULT_CACHE_DIR = Path("~/.runtime-dependencies")


def build_repositories(repositories: Iterable[RepositoryDescriptor],
                       environ: Mapping[str, str] | None = None) -> tuple[RemoteRepository, ...]:
    """
    Build resolver repositories, attaching credentials read from
    ``{prefix}_USERNAME`` / ``{prefix}_PASSWORD`` for repositories that ask
    for them. Missing credentials are not an error: the repository may still
    serve public artifacts.
    """
    environ = os.environ if environ is None else environ
    result = []
    for descriptor in repositories:
        auth = None
        if descriptor.needs_auth and descriptor.credential_env_prefix:
            username = environ.get(f"{descriptor.credential_env_prefix}_USERNAME")
            password = environ.get(f"{descriptor.credential_env_prefix}_PASSWORD")
            if username is not None and password is not None:
                auth = (username, password)
                logger.info("Authentication enabled for repository: %s", descriptor.name)
            else:
                logger.info("No credentials found for repository: %s", descriptor.name)
        result.append(RemoteRepository(name=descriptor.name, url=descriptor.url, auth=auth))
    return tuple(result)


class RemoteArtifactResolver:
    """
    Resolve descriptor coordinates through an ArtifactResolver.

    Args:
        cache_dir: Local cache directory, used when no resolver is given.
        resolver (ArtifactResolver | None): The resolution contract; defaults to a
            CachingMavenResolver over ``cache_dir``.
        environ (Mapping | None): Source of repository credentials; defaults to os.environ.
    """

    def __init__(self, cache_dir=DEFAULT_CACHE_DIR, resolver: ArtifactResolver | None = None,
                 environ: Mapping[str, str] | None = None, extension: str = "zip"):
        self.cache_dir = Path(cache_dir).expanduser()
        self.resolver: ArtifactResolver = resolver or CachingMavenResolver(self.cache_dir, extension=extension)
        self.environ = environ

    def resolve(self, coordinates: Iterable[DependencyCoordinate],
                repositories: Iterable[RepositoryDescriptor]) -> list[ResolvedArtifact]:
        remote_repositories = build_repositories(repositories, self.environ)
        logger.info("Using cache directory: %s", self.cache_dir)

        artifacts: list[ResolvedArtifact] = []
        try:
            for coordinate in coordinates:
                logger.info("Resolving: %s", coordinate)
                request = ResolutionRequest(root=coordinate, repositories=remote_repositories, scope=RUNTIME_SCOPE)
                artifacts.extend(self._resolve_one(request))
        finally:
            self.resolver.close()
        return artifacts

    def _resolve_one(self, request: ResolutionRequest) -> list[ResolvedArtifact]:
        try:
            files = self.resolver.resolve(request)
        except ArtifactResolutionError:
            logger.error("ERROR resolving dependency: %s", request.root)
            raise
        except Exception as exc:
            logger.error("ERROR resolving dependency %s: %s", request.root, exc)
            raise ArtifactResolutionError(f"Failed to resolve {request.root}: {exc}") from exc

        resolved = []
        for file in files:
            path = Path(file)
            if not path.is_file():
                raise ArtifactResolutionError(f"Resolver returned missing file for {request.root}: {path}")
            logger.info("  -> %s", path.name)
            resolved.append(ResolvedArtifact(location=path, coordinate=request.root))
        return resolved
