from functools import cached_property

from pydantic import BaseModel

from ociattach.oci.descriptor import OCI_MANIFEST, Descriptor


class Manifest(BaseModel):
    """
    ref: https://github.com/opencontainers/image-spec/blob/main/manifest.md
    """

    schemaVersion: int = 2
    mediaType: str = OCI_MANIFEST
    artifactType: str | None = None
    config: Descriptor
    layers: list[Descriptor] = []
    subject: Descriptor | None = None
    annotations: dict[str, str] | None = None

    def downgrade(self) -> "Manifest":
        """Return a copy without the fields older registries reject"""
        return Manifest(
            schemaVersion=self.schemaVersion,
            mediaType=self.mediaType,
            config=self.config,
            layers=self.layers,
            annotations=self.annotations,
        )

    @cached_property
    def descriptor(self) -> Descriptor:
        data = self.model_dump_json(exclude_none=True).encode("utf-8")
        return Descriptor.from_bytes(data, media_type=self.mediaType)
