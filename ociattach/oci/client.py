from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import urljoin, urlsplit

import httpx

from ociattach.oci.descriptor import (
    DOCKER_MANIFEST,
    DOCKER_MANIFEST_LIST,
    OCI_INDEX,
    OCI_MANIFEST,
    OCTET_STREAM,
    Descriptor,
    digest,
)
from ociattach.oci.errors import (
    AuthenticationError,
    IndexConflict,
    InvalidManifest,
    MissingUploadLocation,
    UnexpectedStatus,
    check_status,
)

logger = logging.getLogger(__name__)

DOCKER_HUB = "registry-1.docker.io"
LOOPBACK = ("localhost", "127.0.0.1", "::1")

HEADER_API_VERSION = "Docker-Distribution-API-Version"
HEADER_CONTENT_DIGEST = "Docker-Content-Digest"
HEADER_OCI_SUBJECT = "OCI-Subject"

MANIFEST_ACCEPT = ", ".join(
    [OCI_MANIFEST, OCI_INDEX, DOCKER_MANIFEST, DOCKER_MANIFEST_LIST]
)


def _base_url(registry: str) -> str:
    """Use http for loopback registries, https otherwise"""
    hostname = urlsplit(f"//{registry}").hostname
    scheme = "http" if hostname in LOOPBACK else "https"
    if registry == "docker.io":
        registry = DOCKER_HUB
    return f"{scheme}://{registry}"


def _media_type(response: httpx.Response) -> str:
    return response.headers.get("content-type", "").split(";")[0].strip()


def _json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError as e:
        raise InvalidManifest(f"{response.url} did not return valid JSON") from e


def _parse_www_auth(www_authenticate: str) -> tuple[str, dict[str, str]]:
    """Parse the WWW-Authenticate header into its scheme and parameters"""
    scheme, _, params = www_authenticate.partition(" ")
    result = {}
    for item in params.split(","):
        if "=" not in item:
            continue
        key, value = item.split("=", 1)
        result[key.strip()] = value.strip().strip('"')
    return scheme.lower(), result


class BearerAuth(httpx.Auth):
    """Attaches HTTP Bearer Authentication to the given Request object."""

    def __init__(self, token: str):
        self.token = token

    def auth_flow(self, request):
        request.headers["Authorization"] = f"Bearer {self.token}"
        yield request


@dataclass(frozen=True, slots=True)
class ClientOptions:
    """Settings passed through to the HTTP transport"""

    timeout: float = 30.0
    retries: int = 0


@dataclass(frozen=True, slots=True)
class FetchedManifest:
    body: Any
    media_type: str
    etag: str | None = None


@dataclass(frozen=True, slots=True)
class UploadedManifest:
    digest: str
    size: int
    subject_digest: str | None = None


class Client:
    """Client for the OCI registry API, bound to a single repository."""

    def __init__(
        self,
        registry: str,
        repository: str,
        username: str | None = None,
        password: str | None = None,
        options: ClientOptions | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.registry = registry
        self.repository = repository
        self.registry_url = _base_url(registry)
        self.username = username
        self.password = password
        self.options = options or ClientOptions()
        self._transport = transport
        self._session = None
        self._authenticated = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    @property
    def session(self) -> httpx.Client:
        if self._session is None:
            self._session = httpx.Client(
                transport=self._transport
                or httpx.HTTPTransport(retries=self.options.retries),
                timeout=httpx.Timeout(self.options.timeout),
                follow_redirects=True,
                max_redirects=2,
            )
        return self._session

    def head(self, uri, **kwargs):
        return self.session.head(f"{self.registry_url}{uri}", **kwargs)

    def get(self, uri, **kwargs):
        return self.session.get(f"{self.registry_url}{uri}", **kwargs)

    def post(self, uri, **kwargs):
        return self.session.post(f"{self.registry_url}{uri}", **kwargs)

    def put(self, uri, **kwargs):
        return self.session.put(f"{self.registry_url}{uri}", **kwargs)

    def close(self):
        if self._session is not None:
            self._session.close()
            self._session = None

    def sign_in(self):
        """Authenticate against the registry, once per client"""
        if self._authenticated:
            return
        result = self.get("/v2/")
        if result.status_code == 401:
            scheme, challenge = _parse_www_auth(
                result.headers.get("WWW-Authenticate", "")
            )
            logger.debug("Authentication challenge: %s %s", scheme, challenge)
            if scheme == "basic":
                self.session.auth = httpx.BasicAuth(*self._credentials())
            elif "realm" not in challenge:
                raise AuthenticationError(
                    f"{self.registry_url} sent an unsupported challenge"
                )
            else:
                self.authenticate(
                    token_url=challenge["realm"],
                    service=challenge.get("service"),
                )
        else:
            check_status(result)
        self._authenticated = True

    def _credentials(self) -> tuple[str, str]:
        if not self.password:
            raise AuthenticationError(
                f"{self.registry_url} requires authentication, "
                f"provide a username and/or password."
            )
        return self.username or "", self.password

    def authenticate(self, token_url: str, service: str | None):
        """Use the token api with basic authentication to get a token

        ref: https://distribution.github.io/distribution/spec/auth/token/
        """
        username, password = self._credentials()
        params = {"scope": f"repository:{self.repository}:pull,push"}
        if service:
            params["service"] = service
        response = self.session.get(
            token_url, params=params, auth=(username, password)
        )
        if response.status_code == 401:
            raise AuthenticationError(f"Invalid credentials for {self.registry_url}")
        check_status(response)
        body = response.json()
        token = body.get("token") or body.get("access_token")
        if not token:
            raise AuthenticationError(f"No token returned by {token_url}")
        self.session.auth = BearerAuth(token)

    def version_check(self) -> str:
        """Return the distribution API version advertised by the registry"""
        response = self.get("/v2/")
        check_status(response)
        return response.headers.get(HEADER_API_VERSION, "")

    def upload_blob(self, blob: bytes) -> str:
        """Push a blob, returns its digest

        ref: https://github.com/opencontainers/distribution-spec/blob/main/spec.md#pushing-blobs
        """
        blob_digest = digest(blob)

        # Check if the blob already exists
        response = self.head(f"/v2/{self.repository}/blobs/{blob_digest}")
        if response.status_code == 200:
            logger.info("Blob already exists: %s@%s", self.repository, blob_digest)
            return blob_digest

        # Push the blob using the POST then PUT method
        response = self.post(f"/v2/{self.repository}/blobs/uploads/")
        check_status(response)
        location = response.headers.get("location")
        if not location:
            raise MissingUploadLocation("OCI API: missing upload location")

        # Location may be relative to the registry or absolute, and carry
        # session state in its query string
        upload_url = httpx.URL(urljoin(f"{self.registry_url}/", location))
        response = self.session.put(
            upload_url.copy_merge_params({"digest": blob_digest}),
            content=blob,
            headers={"content-type": OCTET_STREAM},
        )
        self._log_error(response)
        check_status(response)
        if response.status_code != 201:
            raise UnexpectedStatus(
                "OCI API: unexpected status for upload", response=response
            )
        return blob_digest

    def check_manifest(self, reference: str) -> Descriptor:
        """Return the descriptor of an existing manifest"""
        response = self.head(
            f"/v2/{self.repository}/manifests/{reference}",
            headers={"Accept": MANIFEST_ACCEPT},
        )
        check_status(response)
        size = int(response.headers.get("content-length", 0))
        if not size:
            logger.debug("No Content-Length for %s, fetching the manifest", reference)
            response = self.get(
                f"/v2/{self.repository}/manifests/{reference}",
                headers={"Accept": MANIFEST_ACCEPT},
            )
            check_status(response)
            size = len(response.content)
        return Descriptor(
            mediaType=_media_type(response) or OCI_MANIFEST,
            digest=response.headers.get(HEADER_CONTENT_DIGEST, reference),
            size=size,
        )

    def get_manifest(self, reference: str) -> FetchedManifest:
        response = self.get(
            f"/v2/{self.repository}/manifests/{reference}",
            headers={"Accept": MANIFEST_ACCEPT},
        )
        check_status(response)
        return FetchedManifest(
            body=_json(response),
            media_type=_media_type(response),
            etag=response.headers.get("etag"),
        )

    def upload_manifest(
        self,
        manifest: str | bytes,
        reference: str | None = None,
        media_type: str | None = None,
        etag: str | None = None,
    ) -> UploadedManifest:
        """Push a manifest by `reference`, or by its digest when not given

        ref: https://github.com/opencontainers/distribution-spec/blob/main/spec.md#pushing-manifests
        """
        if isinstance(manifest, str):
            manifest = manifest.encode("utf-8")
        manifest_digest = digest(manifest)
        headers = {"content-type": media_type or OCI_MANIFEST}
        if etag is not None:
            headers["If-Match"] = etag

        logger.debug("Pushing manifest: %s", manifest)
        response = self.put(
            f"/v2/{self.repository}/manifests/{reference or manifest_digest}",
            content=manifest,
            headers=headers,
        )
        self._log_error(response)
        if response.status_code == 412 and etag is not None:
            raise IndexConflict(
                "OCI API: manifest was modified concurrently", response=response
            )
        check_status(response)
        if response.status_code != 201:
            raise UnexpectedStatus(
                "OCI API: unexpected status for upload", response=response
            )
        return UploadedManifest(
            digest=manifest_digest,
            size=len(manifest),
            subject_digest=response.headers.get(HEADER_OCI_SUBJECT),
        )

    @staticmethod
    def _log_error(response: httpx.Response):
        # ref: https://github.com/opencontainers/distribution-spec/blob/main/spec.md#error-codes
        if not response.is_success and "application/json" in response.headers.get(
            "content-type", ""
        ):
            logger.error(response.text)
