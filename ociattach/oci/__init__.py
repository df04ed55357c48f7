"""OCI client library for Python

This module attaches artifacts to images in an OCI registry as referrers.
"""
import logging
from pathlib import Path

from .client import Client, ClientOptions
from .compat import RegistryClassifier, supports_referrers
from .credentials import Credentials, get_registry_credentials
from .descriptor import Descriptor
from .image import OCIImage
from .name import ImageName, parse_image_name

logger = logging.getLogger(__name__)


def attach_artifact_to_image(
    image_name: str,
    subject_digest: str,
    artifact: bytes | str,
    media_type: str,
    annotations: dict[str, str] | None = None,
    options: ClientOptions | None = None,
    config_path: Path | None = None,
) -> Descriptor:
    """Attach an artifact to an image in an OCI registry

    :param image_name: The image name, `registry/path`.
    :param subject_digest: Digest of the image manifest to attach to.
    :param artifact: The artifact payload.
    :param media_type: Media type of the artifact.
    :param annotations: Annotations to set on the referrer manifest.
    :param options: Settings for the HTTP transport.
    :param config_path: Alternative Docker credential file.

    """
    image = parse_image_name(image_name)
    creds = get_registry_credentials(image.registry, config_path=config_path)

    logger.info("Attaching %s to %s@%s", media_type, image, subject_digest)

    with Client(
        registry=image.registry,
        repository=image.path,
        username=creds.username,
        password=creds.password,
        options=options,
    ) as client:
        return OCIImage(client=client, credentials=creds).add_artifact(
            subject_digest=subject_digest,
            artifact=artifact,
            media_type=media_type,
            annotations=annotations,
        )
