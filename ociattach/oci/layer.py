from ociattach.oci.descriptor import Descriptor


class Layer(Descriptor):
    @classmethod
    def from_artifact(cls, artifact: bytes | str, media_type: str) -> "Layer":
        """Create a new layer holding the artifact payload as-is"""
        if isinstance(artifact, str):
            artifact = artifact.encode("utf-8")
        return cls.from_bytes(artifact, media_type=media_type)
