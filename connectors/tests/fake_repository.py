"""Fake Maven repositories for connector tests."""

import base64

import httpx


def make_pom(group_id, artifact_id, version, dependencies=(), properties=None, parent=None):
    """Build a POM document; dependencies are (groupId, artifactId, version, scope, optional) tuples."""
    deps_xml = ""
    for group, artifact, dep_version, scope, optional in dependencies:
        deps_xml += "<dependency>"
        deps_xml += f"<groupId>{group}</groupId><artifactId>{artifact}</artifactId>"
        if dep_version is not None:
            deps_xml += f"<version>{dep_version}</version>"
        if scope is not None:
            deps_xml += f"<scope>{scope}</scope>"
        if optional:
            deps_xml += "<optional>true</optional>"
        deps_xml += "</dependency>"
    props_xml = ""
    if properties:
        props_xml = "<properties>" + "".join(f"<{k}>{v}</{k}>" for k, v in properties.items()) + "</properties>"
    parent_xml = ""
    if parent:
        parent_xml = f"<parent><groupId>{parent[0]}</groupId><artifactId>{parent[1]}</artifactId><version>{parent[2]}</version></parent>"
    own_group = f"<groupId>{group_id}</groupId>" if group_id else ""
    own_version = f"<version>{version}</version>" if version else ""
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<project xmlns="http://maven.apache.org/POM/4.0.0">'
        f"<modelVersion>4.0.0</modelVersion>{parent_xml}{own_group}"
        f"<artifactId>{artifact_id}</artifactId>{own_version}{props_xml}"
        f"<dependencies>{deps_xml}</dependencies>"
        "</project>"
    ).encode()


class FakeRepository:
    """
    In-memory Maven repositories behind an httpx.MockTransport.
    Files are keyed by full URL; hosts in ``credentials`` answer 401 without matching basic auth.
    """

    def __init__(self):
        self.files: dict[str, bytes] = {}
        self.credentials: dict[str, tuple[str, str]] = {}
        self.failing: dict[str, int] = {}
        self.requests: list[httpx.Request] = []

    def add(self, base_url, path, content):
        self.files[f"{base_url.rstrip('/')}/{path}"] = content

    def add_artifact(self, base_url, coordinate, content=b"PK\x05\x06" + b"\0" * 18, extension="zip", pom=None):
        self.add(base_url, coordinate.maven_path(extension), content)
        if pom is not None:
            self.add(base_url, coordinate.maven_path("pom"), pom)

    def requests_to(self, host):
        return [r for r in self.requests if r.url.host == host]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        host = request.url.host
        if host in self.failing:
            return httpx.Response(self.failing[host])
        if host in self.credentials:
            user, password = self.credentials[host]
            expected = "Basic " + base64.b64encode(f"{user}:{password}".encode()).decode()
            if request.headers.get("Authorization") != expected:
                return httpx.Response(401)
        content = self.files.get(str(request.url))
        if content is None:
            return httpx.Response(404)
        return httpx.Response(200, content=content)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)
