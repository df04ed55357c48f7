import base64
import json
import re
from hashlib import sha256
from pathlib import Path

import httpx
import pytest

from ociattach.oci.client import Client

REGISTRY = "registry.example.com"
REPOSITORY = "owner/repo"

UPLOAD_RE = re.compile(r"^/v2/(?P<repo>.+)/blobs/uploads/(?P<session>[^/]*)$")
CONTENT_RE = re.compile(r"^/v2/(?P<repo>.+)/(?P<kind>blobs|manifests)/(?P<ref>[^/]+)$")


def sha256_digest(data: bytes) -> str:
    return f"sha256:{sha256(data).hexdigest()}"


class FakeRegistry:
    """In-memory registry served through httpx.MockTransport"""

    def __init__(self):
        self.blobs: dict[str, bytes] = {}
        self.manifests: dict[str, tuple[bytes, str]] = {}
        self.requests: list[httpx.Request] = []
        # Echo OCI-Subject on manifests with a subject, like a referrers capable registry
        self.referrers = True
        self.location = "/v2/{repo}/blobs/uploads/123?_state=abc"
        self.api_version = "registry/2.0"
        self.overrides: dict[tuple[str, str], httpx.Response | Exception] = {}
        self.transport = httpx.MockTransport(self.handler)

    def calls(self, method: str, path_prefix: str = "") -> list[httpx.Request]:
        return [
            request
            for request in self.requests
            if request.method == method and request.url.path.startswith(path_prefix)
        ]

    def add_manifest(self, reference: str, body: dict | bytes, media_type: str):
        data = body if isinstance(body, bytes) else json.dumps(body).encode("utf-8")
        self.manifests[reference] = (data, media_type)

    def manifest_json(self, reference: str) -> dict:
        return json.loads(self.manifests[reference][0])

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if (request.method, path) in self.overrides:
            override = self.overrides[(request.method, path)]
            if isinstance(override, Exception):
                raise override
            return override

        if path == "/v2/":
            return httpx.Response(
                200, headers={"Docker-Distribution-API-Version": self.api_version}
            )
        if match := UPLOAD_RE.match(path):
            if request.method == "POST":
                location = self.location.format(**match.groupdict())
                return httpx.Response(202, headers={"Location": location})
            if request.method == "PUT":
                digest = request.url.params["digest"]
                assert request.headers["content-type"] == "application/octet-stream"
                assert sha256_digest(request.content) == digest
                self.blobs[digest] = request.content
                return httpx.Response(201, headers={"Location": f"/v2/blobs/{digest}"})
        if match := CONTENT_RE.match(path):
            if match["kind"] == "blobs":
                return self._blob(request, match["ref"])
            return self._manifest(request, match["ref"])
        return httpx.Response(404)

    def _blob(self, request, digest):
        if digest not in self.blobs:
            return httpx.Response(404)
        return httpx.Response(200, headers={"Content-Length": str(len(self.blobs[digest]))})

    def _manifest(self, request, reference):
        if request.method == "PUT":
            return self._put_manifest(request, reference)
        if reference not in self.manifests:
            return httpx.Response(
                404,
                json={"errors": [{"code": "MANIFEST_UNKNOWN", "message": "unknown"}]},
            )
        data, media_type = self.manifests[reference]
        content_digest = reference if ":" in reference else sha256_digest(data)
        headers = {
            "Content-Type": media_type,
            "Docker-Content-Digest": content_digest,
            "ETag": f'"{sha256_digest(data)}"',
        }
        if request.method == "HEAD":
            return httpx.Response(
                200, headers=headers | {"Content-Length": str(len(data))}
            )
        return httpx.Response(200, content=data, headers=headers)

    def _put_manifest(self, request, reference):
        data = request.content
        if (etag := request.headers.get("If-Match")) is not None:
            current = self.manifests.get(reference)
            if current is None or etag != f'"{sha256_digest(current[0])}"':
                return httpx.Response(412)
        self.manifests[reference] = (data, request.headers["content-type"])
        self.manifests[sha256_digest(data)] = (data, request.headers["content-type"])
        headers = {"Docker-Content-Digest": sha256_digest(data)}
        subject = json.loads(data).get("subject")
        if self.referrers and subject:
            headers["OCI-Subject"] = subject["digest"]
        return httpx.Response(201, headers=headers)


@pytest.fixture
def registry() -> FakeRegistry:
    return FakeRegistry()


@pytest.fixture
def client(registry):
    with Client(
        registry=REGISTRY, repository=REPOSITORY, transport=registry.transport
    ) as client:
        yield client


def write_docker_config(path: Path, auths: dict) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps({"auths": auths}))
    return path


def basic_auth(username: str, password: str) -> str:
    return base64.b64encode(f"{username}:{password}".encode()).decode()


@pytest.fixture
def docker_config(tmp_path, monkeypatch) -> Path:
    """Docker credential file with credentials for the test registry"""
    monkeypatch.setenv("DOCKER_CONFIG", str(tmp_path / ".docker"))
    return write_docker_config(
        tmp_path / ".docker" / "config.json",
        {REGISTRY: {"auth": basic_auth("username", "password")}},
    )
