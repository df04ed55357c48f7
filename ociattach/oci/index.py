import logging
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from ociattach.oci.descriptor import OCI_INDEX, Descriptor
from ociattach.oci.errors import HTTPError, UnsupportedIndexMediaType

if TYPE_CHECKING:
    from ociattach.oci.client import Client, UploadedManifest

logger = logging.getLogger(__name__)


class Index(BaseModel):
    """
    ref: https://github.com/opencontainers/image-spec/blob/main/image-index.md
    """

    model_config = ConfigDict(extra="allow")

    schemaVersion: int = 2
    mediaType: str = OCI_INDEX
    artifactType: str | None = None
    manifests: list[Descriptor] = []
    subject: Descriptor | None = None
    annotations: dict[str, str] | None = None

    # Where the index lives and the entity tag it was fetched with
    reference: str = Field(exclude=True)
    etag: str | None = Field(exclude=True, default=None)

    def __contains__(self, digest: str) -> bool:
        return any(manifest.digest == digest for manifest in self.manifests)

    def add_manifest(self, descriptor: Descriptor) -> bool:
        """Add `descriptor` unless an entry with the same digest exists

        Returns True when the index changed.
        """
        if descriptor.digest in self:
            logger.info(
                "'%s' already listed in '%s', skipping.",
                descriptor.digest,
                self.reference,
            )
            return False
        self.manifests.append(descriptor)
        return True

    @classmethod
    def pull(cls, reference: str, client: "Client") -> "Index":
        """Fetch the index at `reference`, or start an empty one on 404"""
        try:
            fetched = client.get_manifest(reference)
        except HTTPError as e:
            if e.status_code != 404:
                raise
            logger.info("No index at '%s', creating a new one", reference)
            return cls(reference=reference)

        if fetched.media_type != OCI_INDEX or not isinstance(fetched.body, dict):
            raise UnsupportedIndexMediaType(
                f"Expected referrer manifest type {OCI_INDEX}, "
                f"got {fetched.media_type}"
            )
        logger.debug(fetched.body)
        return cls.model_validate(
            fetched.body | {"reference": reference, "etag": fetched.etag}
        )

    def push(self, client: "Client") -> "UploadedManifest":
        return client.upload_manifest(
            self.model_dump_json(exclude_none=True),
            reference=self.reference,
            media_type=self.mediaType,
            etag=self.etag,
        )
