"""
maven_connector.py
------------------
Caching resolver for Maven-layout artifact repositories, over httpx.

Artifacts are stored in the local cache directory using the repository
layout (``group/path/artifact/version/artifact-version.ext``), so a second run
finds them without touching the network. Transitive dependencies are read
from each artifact's ``.pom``.
"""

from __future__ import annotations

import logging
import os
import re
from collections import deque
from pathlib import Path
from xml.etree import ElementTree

import httpx

from connectors.resolver_interface import RUNTIME_SCOPE, RemoteRepository, ResolutionRequest
from descriptor.models import DependencyCoordinate
from launcher.errors import ArtifactNotFoundError, ArtifactResolutionError

logger = logging.getLogger(__name__)

MAVEN_CENTRAL = RemoteRepository(name="central", url="https://repo.maven.apache.org/maven2")
DEFAULT_TIMEOUT = 30.0
POM_EXTENSION = "pom"

# dependency scopes followed for each requested scope
SCOPE_INCLUDES = {
    RUNTIME_SCOPE: frozenset({"compile", "runtime"}),
    "compile": frozenset({"compile"}),
}

_PROPERTY_RE = re.compile(r"\$\{([^}]+)\}")


##### Sessions #####
class MavenRepositorySession:
    """
    An HTTP session to one repository.
    Uses basic auth when the repository carries credentials.

    Args:
        repository (RemoteRepository): The repository to talk to.
        transport (httpx.BaseTransport | None): Optional transport, e.g. httpx.MockTransport in tests.
        timeout (float): Timeout in seconds for every request.
    """
    def __init__(self, repository: RemoteRepository, transport: httpx.BaseTransport | None = None,
                 timeout: float = DEFAULT_TIMEOUT):
        self.repository = repository
        self.base_URL = repository.url.rstrip("/")
        self._client = httpx.Client(auth=repository.auth, transport=transport, timeout=timeout,
                                    follow_redirects=True)

    def url_for(self, path: str) -> str:
        return f"{self.base_URL}/{path.lstrip('/')}"

    def request(self, method: str, path: str, **kwargs) -> httpx.Response:
        """
        Make an HTTP request to the repository.
        raise_for_status() is called on the response.

        Args:
            method (str): The HTTP method (GET, HEAD).
            path (str): Path relative to the repository URL.
            **kwargs: Additional arguments to pass to httpx request.
        """
        response = self._client.request(method, self.url_for(path), **kwargs)
        response.raise_for_status()
        return response

    def download(self, path: str, destination: Path) -> bool:
        """
        Stream ``path`` into ``destination``.
        Returns False when the repository does not have it (404).
        The file only appears at ``destination`` once complete.
        """
        with self._client.stream("GET", self.url_for(path)) as response:
            if response.status_code == 404:
                return False
            response.raise_for_status()
            destination.parent.mkdir(parents=True, exist_ok=True)
            partial = destination.with_name(destination.name + ".part")
            try:
                with open(partial, "wb") as fh:
                    for chunk in response.iter_bytes():
                        fh.write(chunk)
            except BaseException:
                partial.unlink(missing_ok=True)
                raise
            os.replace(partial, destination)
        return True

    def close(self):
        self._client.close()


##### Resolver #####
class CachingMavenResolver:
    """
    Resolves coordinates against Maven-layout repositories into a local cache.
    Implements connectors.resolver_interface.ArtifactResolver.

    Args:
        cache_dir: Local cache directory (Maven layout).
        extension (str): Extension of the library artifacts, e.g. "zip".
        include_central (bool): Append Maven Central after the configured repositories
            when the descriptor does not list it.
        transport: Optional httpx transport shared by all sessions.
    """

    def __init__(self, cache_dir: str | os.PathLike, extension: str = "zip", include_central: bool = False,
                 transport: httpx.BaseTransport | None = None, timeout: float = DEFAULT_TIMEOUT):
        self.cache_dir = Path(cache_dir).expanduser()
        self.extension = extension.lstrip(".")
        self.include_central = include_central
        self._transport = transport
        self._timeout = timeout
        # key: (url, user) -> session, one session per repository and identity
        self._sessions: dict[tuple[str, str | None], MavenRepositorySession] = {}

    def resolve(self, request: ResolutionRequest) -> list[Path]:
        repositories = self.effective_repositories(request.repositories)
        scopes = SCOPE_INCLUDES.get(request.scope, SCOPE_INCLUDES[RUNTIME_SCOPE])

        files: list[Path] = []
        seen: set[tuple[str, str]] = set()
        queue = deque([request.root])
        # breadth-first, so the nearest declaration of an artifact wins
        while queue:
            coordinate = queue.popleft()
            key = (coordinate.group_id, coordinate.artifact_id)
            if key in seen:
                continue
            seen.add(key)

            files.append(self._fetch(coordinate, self.extension, repositories))
            pom = self._fetch(coordinate, POM_EXTENSION, repositories, required=False)
            if pom is None:
                logger.warning("No POM for %s, transitive dependencies skipped", coordinate)
                continue
            queue.extend(read_pom_dependencies(pom, scopes))
        return files

    def effective_repositories(self, repositories) -> list[RemoteRepository]:
        result = list(repositories)
        if self.include_central and not any(_same_url(r.url, MAVEN_CENTRAL.url) for r in result):
            result.append(MAVEN_CENTRAL)
        return result

    def cache_path(self, coordinate: DependencyCoordinate, extension: str) -> Path:
        return self.cache_dir / coordinate.maven_path(extension)

    def close(self):
        for session in self._sessions.values():
            session.close()
        self._sessions.clear()

    def _session(self, repository: RemoteRepository) -> MavenRepositorySession:
        user = repository.auth[0] if repository.auth else None
        key = (repository.url, user)
        if key not in self._sessions:
            self._sessions[key] = MavenRepositorySession(repository, transport=self._transport,
                                                         timeout=self._timeout)
        return self._sessions[key]

    def _fetch(self, coordinate: DependencyCoordinate, extension: str, repositories: list[RemoteRepository],
               required: bool = True) -> Path | None:
        target = self.cache_path(coordinate, extension)
        if target.is_file():
            logger.debug("Using cached %s", target)
            return target

        path = coordinate.maven_path(extension)
        last_error: Exception | None = None
        for repository in repositories:
            try:
                if self._session(repository).download(path, target):
                    logger.info("Downloaded %s from %s", target.name, repository.name)
                    return target
            except httpx.HTTPError as exc:
                logger.warning("Repository %s failed for %s: %s", repository.name, path, exc)
                last_error = exc

        if not required:
            return None
        raise ArtifactNotFoundError(coordinate, [r.name for r in repositories]) from last_error


# ---------------------------------------------------------------------------
# POM handling


def read_pom_dependencies(pom_path: Path, scopes=SCOPE_INCLUDES[RUNTIME_SCOPE]) -> list[DependencyCoordinate]:
    """
    Direct dependencies declared in a POM whose scope is in ``scopes``.
    Optional dependencies are left out. Versions are interpolated from
    project coordinates and <properties>; a dependency whose version cannot
    be determined is skipped.
    """
    try:
        root = ElementTree.parse(pom_path).getroot()
    except ElementTree.ParseError as exc:
        raise ArtifactResolutionError(f"Invalid POM {pom_path}: {exc}") from exc

    ns = root.tag[:root.tag.index("}") + 1] if root.tag.startswith("{") else ""
    properties = _pom_properties(root, ns)

    coordinates = []
    dependencies = root.find(f"{ns}dependencies")
    if dependencies is None:
        return coordinates
    for dependency in dependencies.findall(f"{ns}dependency"):
        scope = _text(dependency, ns, "scope") or "compile"
        if scope not in scopes:
            continue
        if (_text(dependency, ns, "optional") or "").lower() == "true":
            continue
        group_id = _interpolate(_text(dependency, ns, "groupId"), properties)
        artifact_id = _interpolate(_text(dependency, ns, "artifactId"), properties)
        version = _interpolate(_text(dependency, ns, "version"), properties)
        if not group_id or not artifact_id or not version or "${" in version:
            logger.warning("Skipping dependency %s:%s in %s: no usable version", group_id, artifact_id, pom_path.name)
            continue
        coordinates.append(DependencyCoordinate(group_id=group_id, artifact_id=artifact_id, version=version))
    return coordinates


def _pom_properties(root: ElementTree.Element, ns: str) -> dict[str, str]:
    parent = root.find(f"{ns}parent")
    group_id = _text(root, ns, "groupId") or (_text(parent, ns, "groupId") if parent is not None else None)
    version = _text(root, ns, "version") or (_text(parent, ns, "version") if parent is not None else None)
    properties: dict[str, str] = {}
    if group_id:
        properties["project.groupId"] = group_id
    if version:
        properties["project.version"] = version
        properties["version"] = version
    declared = root.find(f"{ns}properties")
    if declared is not None:
        for child in declared:
            if child.text:
                properties[child.tag[len(ns):]] = child.text.strip()
    return properties


def _text(element: ElementTree.Element, ns: str, tag: str) -> str | None:
    child = element.find(f"{ns}{tag}")
    if child is None or child.text is None:
        return None
    return child.text.strip()


def _interpolate(value: str | None, properties: dict[str, str]) -> str | None:
    if value is None:
        return None
    return _PROPERTY_RE.sub(lambda m: properties.get(m.group(1), m.group(0)), value)


def _same_url(a: str, b: str) -> bool:
    return a.rstrip("/").lower() == b.rstrip("/").lower()
