import logging
from collections.abc import Callable
from dataclasses import dataclass

from ociattach.oci.client import Client
from ociattach.oci.compat import supports_referrers
from ociattach.oci.config import EmptyConfig
from ociattach.oci.credentials import Credentials
from ociattach.oci.descriptor import Descriptor, digest_to_tag
from ociattach.oci.index import Index
from ociattach.oci.layer import Layer
from ociattach.oci.manifest import Manifest

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class OCIImage:
    """An image in a registry that artifacts can be attached to."""

    client: Client
    credentials: Credentials | None = None
    supports_referrers: Callable[[str], bool] = supports_referrers

    def add_artifact(
        self,
        subject_digest: str,
        artifact: bytes | str,
        media_type: str,
        annotations: dict[str, str] | None = None,
    ) -> Descriptor:
        """Attach `artifact` to the image manifest at `subject_digest`

        Returns the descriptor of the referrer manifest that was pushed.
        ref: https://github.com/opencontainers/distribution-spec/blob/main/spec.md#pushing-manifests-with-subject
        """
        if self.credentials is not None:
            self.client.sign_in()

        # Fails when the image does not exist
        subject = self.client.check_manifest(subject_digest)

        layer = Layer.from_artifact(artifact, media_type=media_type)
        layer.push(client=self.client)
        config = EmptyConfig()
        config.push(client=self.client)

        manifest = Manifest(
            artifactType=media_type,
            config=config,
            layers=[layer],
            subject=subject,
            annotations=annotations,
        )
        if not self.supports_referrers(self.client.registry):
            logger.info(
                "%s does not support referrers, omitting subject", self.client.registry
            )
            manifest = manifest.downgrade()

        descriptor = manifest.descriptor
        uploaded = self.client.upload_manifest(
            descriptor.data, media_type=descriptor.mediaType
        )

        # Without an OCI-Subject header the registry did not index the referrer
        if uploaded.subject_digest is None:
            self._add_to_referrers_tag(
                subject_digest,
                descriptor.model_copy(
                    update={"artifactType": media_type, "annotations": annotations}
                ),
            )

        return Descriptor(
            mediaType=descriptor.mediaType,
            digest=uploaded.digest,
            size=uploaded.size,
        )

    def _add_to_referrers_tag(self, subject_digest: str, artifact: Descriptor):
        """Maintain the referrers index by tag for registries without the API

        Concurrent writers on the same subject can overwrite each other unless
        the registry honours If-Match, which then raises IndexConflict.
        ref: https://github.com/opencontainers/distribution-spec/blob/main/spec.md#referrers-tag-schema
        """
        index = Index.pull(reference=digest_to_tag(subject_digest), client=self.client)
        if index.add_manifest(artifact):
            logger.info("Updating referrers index '%s'", index.reference)
            index.push(client=self.client)
