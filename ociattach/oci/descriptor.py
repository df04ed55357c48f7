import re
from hashlib import sha256
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from ociattach.oci.client import Client

OCI_MANIFEST = "application/vnd.oci.image.manifest.v1+json"
OCI_INDEX = "application/vnd.oci.image.index.v1+json"
OCI_EMPTY = "application/vnd.oci.empty.v1+json"
OCTET_STREAM = "application/octet-stream"

DOCKER_MANIFEST = "application/vnd.docker.distribution.manifest.v2+json"
DOCKER_MANIFEST_LIST = "application/vnd.docker.distribution.manifest.list.v2+json"

# ref: https://github.com/opencontainers/image-spec/blob/main/descriptor.md#digests
DIGEST_PATTERN = r"[a-z0-9]+(?:[+._-][a-z0-9]+)*:[a-zA-Z0-9=_-]+"
DIGEST_RE = re.compile(DIGEST_PATTERN)


def digest(data: bytes) -> str:
    """Return the sha256 content digest of `data`"""
    return f"sha256:{sha256(data).hexdigest()}"


def digest_to_tag(value: str) -> str:
    """Convert a digest into a tag following the referrers tag schema

    ref: https://github.com/opencontainers/distribution-spec/blob/main/spec.md#referrers-tag-schema
    """
    return value.replace(":", "-", 1)


class Descriptor(BaseModel):
    """
    ref: https://github.com/opencontainers/image-spec/blob/main/descriptor.md
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    mediaType: str
    digest: str
    size: int
    artifactType: str | None = None
    urls: list[str] | None = None
    annotations: dict[str, str] | None = None
    data: bytes | None = Field(exclude=True, default=None)

    @classmethod
    def from_bytes(cls, data: bytes, media_type: str, **kwargs) -> "Descriptor":
        return cls(
            mediaType=media_type,
            digest=digest(data),
            size=len(data),
            data=data,
            **kwargs,
        )

    def push(self, client: "Client") -> str:
        if self.data is None:
            raise ValueError(f"Missing {self.__class__.__name__}.data")
        pushed = client.upload_blob(self.data)
        if pushed != self.digest:
            raise ValueError(f"Digest mismatch, expected {self.digest} got {pushed}")
        return pushed
