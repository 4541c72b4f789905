from pathlib import Path

import pytest

from connectors.maven_connector import CachingMavenResolver
from connectors.remote_resolver import RemoteArtifactResolver, build_repositories
from connectors.resolver_interface import RUNTIME_SCOPE
from descriptor.models import DependencyCoordinate, RepositoryDescriptor
from launcher.errors import ArtifactResolutionError


def coord(text):
    group_id, artifact_id, version = text.split(":")
    return DependencyCoordinate(group_id=group_id, artifact_id=artifact_id, version=version)


PUBLIC = RepositoryDescriptor(name="public", url="https://repo.example.com/public")
ACME = RepositoryDescriptor(name="acme", url="https://maven.acme.io/private", needs_auth=True,
                            credential_env_prefix="ACME")


class RecordingResolver:
    """ArtifactResolver double: returns prepared files per coordinate and records requests."""

    def __init__(self, files_by_coordinate, fail_on=None):
        self.files_by_coordinate = files_by_coordinate
        self.fail_on = fail_on
        self.requests = []
        self.closed = False

    def resolve(self, request):
        self.requests.append(request)
        if request.root == self.fail_on:
            raise RuntimeError(f"connection reset while fetching {request.root}")
        return self.files_by_coordinate[request.root]

    def close(self):
        self.closed = True


@pytest.fixture
def artifact_files(tmp_path):
    def make(*names):
        paths = []
        for name in names:
            path = tmp_path / name
            path.write_bytes(b"PK")
            paths.append(path)
        return paths
    return make


def test_credentials_attached_only_where_configured():
    """Scenario: second repository needs auth with prefix ACME and both variables are set."""
    environ = {"ACME_USERNAME": "deploy", "ACME_PASSWORD": "hunter2"}
    public, acme = build_repositories([PUBLIC, ACME], environ)
    assert public.auth is None
    assert acme.auth == ("deploy", "hunter2")
    assert acme.url == ACME.url


@pytest.mark.parametrize("environ", [
    {},
    {"ACME_USERNAME": "deploy"},
    {"ACME_PASSWORD": "hunter2"},
])
def test_incomplete_credentials_are_not_fatal(environ):
    (acme,) = build_repositories([ACME], environ)
    assert acme.auth is None


def test_needs_auth_without_prefix_reads_nothing():
    repo = RepositoryDescriptor(name="odd", url="https://odd.example.com", needs_auth=True)
    (built,) = build_repositories([repo], {"_USERNAME": "x", "_PASSWORD": "y"})
    assert built.auth is None


def test_credentials_ignored_when_not_needed():
    repo = RepositoryDescriptor(name="pub", url="https://pub.example.com", credential_env_prefix="PUB")
    (built,) = build_repositories([repo], {"PUB_USERNAME": "x", "PUB_PASSWORD": "y"})
    assert built.auth is None


def test_credentials_not_in_repr():
    (acme,) = build_repositories([ACME], {"ACME_USERNAME": "deploy", "ACME_PASSWORD": "hunter2"})
    assert "hunter2" not in repr(acme)


def test_resolve_in_descriptor_order_with_all_repositories(artifact_files):
    lib, lib_dep, tools = artifact_files("lib-1.0.zip", "dep-2.0.zip", "tools-3.0.zip")
    contract = RecordingResolver({
        coord("g:lib:1.0"): [lib, lib_dep],
        coord("g:tools:3.0"): [tools],
    })
    resolver = RemoteArtifactResolver(resolver=contract, environ={})

    artifacts = resolver.resolve([coord("g:lib:1.0"), coord("g:tools:3.0")], [PUBLIC, ACME])

    assert [a.location for a in artifacts] == [lib, lib_dep, tools]
    assert [a.coordinate for a in artifacts] == [coord("g:lib:1.0"), coord("g:lib:1.0"), coord("g:tools:3.0")]
    assert [r.root for r in contract.requests] == [coord("g:lib:1.0"), coord("g:tools:3.0")]
    for request in contract.requests:
        assert [r.name for r in request.repositories] == ["public", "acme"]
        assert request.scope == RUNTIME_SCOPE
    assert contract.closed


def test_duplicate_coordinates_are_resolved_twice(artifact_files):
    (lib,) = artifact_files("lib-1.0.zip")
    contract = RecordingResolver({coord("g:lib:1.0"): [lib]})
    artifacts = RemoteArtifactResolver(resolver=contract, environ={}).resolve(
        [coord("g:lib:1.0"), coord("g:lib:1.0")], [PUBLIC])
    assert len(contract.requests) == 2
    assert len(artifacts) == 2


def test_failure_aborts_whole_acquisition(artifact_files):
    """Scenario: the second coordinate fails; nothing from the first is returned."""
    (lib,) = artifact_files("lib-1.0.zip")
    contract = RecordingResolver({coord("g:lib:1.0"): [lib]}, fail_on=coord("g:broken:1.0"))
    resolver = RemoteArtifactResolver(resolver=contract, environ={})

    with pytest.raises(ArtifactResolutionError) as excinfo:
        resolver.resolve([coord("g:lib:1.0"), coord("g:broken:1.0"), coord("g:never:1.0")], [PUBLIC])

    assert "g:broken:1.0" in str(excinfo.value)
    assert isinstance(excinfo.value.__cause__, RuntimeError)
    assert [r.root for r in contract.requests] == [coord("g:lib:1.0"), coord("g:broken:1.0")]
    assert contract.closed


def test_missing_file_from_resolver_is_a_failure(tmp_path):
    contract = RecordingResolver({coord("g:lib:1.0"): [tmp_path / "not-there.zip"]})
    with pytest.raises(ArtifactResolutionError):
        RemoteArtifactResolver(resolver=contract, environ={}).resolve([coord("g:lib:1.0")], [PUBLIC])


def test_end_to_end_with_caching_resolver(tmp_path, fake_repo):
    fake_repo.credentials["maven.acme.io"] = ("deploy", "hunter2")
    fake_repo.add_artifact(ACME.url, coord("com.acme:core:1.2"), content=b"core")
    contract = CachingMavenResolver(tmp_path / "cache", include_central=False, transport=fake_repo.transport)
    resolver = RemoteArtifactResolver(tmp_path / "cache", resolver=contract,
                                      environ={"ACME_USERNAME": "deploy", "ACME_PASSWORD": "hunter2"})

    (artifact,) = resolver.resolve([coord("com.acme:core:1.2")], [PUBLIC, ACME])

    assert artifact.location == tmp_path / "cache" / "com/acme/core/1.2/core-1.2.zip"
    assert artifact.location.read_bytes() == b"core"
    assert fake_repo.requests_to("repo.example.com")
    assert all("Authorization" not in r.headers for r in fake_repo.requests_to("repo.example.com"))


def test_default_cache_dir_is_under_home(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    resolver = RemoteArtifactResolver(environ={})
    assert resolver.cache_dir == Path(tmp_path) / ".runtime-dependencies"
    assert isinstance(resolver.resolver, CachingMavenResolver)
