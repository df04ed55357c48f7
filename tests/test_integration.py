"""
ociattach integration tests.
An OCI registry should be running on localhost:5000
for any of these tests to work, enable them by setting OCIATTACH_INTEGRATION.

Note that none of these tests use authentication.
Also, none of these tests should be run in parallel.
"""
import os

import pytest

from ociattach.oci import Client, OCIImage
from ociattach.oci.config import EmptyConfig
from ociattach.oci.descriptor import OCI_INDEX, digest_to_tag
from ociattach.oci.errors import HTTPError
from ociattach.oci.manifest import Manifest

OCI_HOST = "localhost:5000"
REPOSITORY = "test/ociattach"
MEDIA_TYPE = "application/vnd.ociattach.test+json"

pytestmark = pytest.mark.skipif(
    not os.environ.get("OCIATTACH_INTEGRATION"),
    reason="OCIATTACH_INTEGRATION is not set",
)


@pytest.fixture
def client():
    with Client(registry=OCI_HOST, repository=REPOSITORY) as client:
        yield client


@pytest.fixture
def subject(client) -> str:
    """Push a minimal image to attach artifacts to"""
    config = EmptyConfig()
    config.push(client=client)
    manifest = Manifest(config=config, annotations={"test": "subject"})
    return client.upload_manifest(manifest.descriptor.data, reference="latest").digest


def test_version_check(client):
    assert client.version_check() == "registry/2.0"


@pytest.mark.parametrize("artifact", [b"first", b"second"])
def test_add_artifact(client, subject, artifact):
    """Test if we can attach an artifact to an image"""
    descriptor = OCIImage(client=client).add_artifact(
        subject, artifact, MEDIA_TYPE, annotations={"test": "artifact"}
    )
    manifest = client.get_manifest(descriptor.digest).body
    assert manifest["layers"][0]["size"] == len(artifact)

    try:
        index = client.get_manifest(digest_to_tag(subject))
    except HTTPError as e:
        # Registry implements the referrers API
        assert e.status_code == 404
    else:
        assert index.media_type == OCI_INDEX
        assert descriptor.digest in [m["digest"] for m in index.body["manifests"]]
