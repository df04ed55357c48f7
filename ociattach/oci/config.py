from pydantic import Field

from .descriptor import OCI_EMPTY, Descriptor


class EmptyConfig(Descriptor):
    """The canonical `{}` config blob used by artifact manifests

    ref: https://github.com/opencontainers/image-spec/blob/main/manifest.md#guidance-for-an-empty-descriptor
    """

    mediaType: str = OCI_EMPTY
    digest: str = (
        "sha256:44136fa355b3678a1146ad16f7e8649e94fb4fc21fe77e8310c060f61caaff8a"
    )
    size: int = 2
    data: bytes | None = Field(exclude=True, default=b"{}")
