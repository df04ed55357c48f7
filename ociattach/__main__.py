import logging
from pathlib import Path

import click
import httpx

import ociattach.oci
from ociattach.oci.descriptor import DIGEST_RE
from ociattach.oci.errors import (
    CredentialFileNotFound,
    NoCredentialsForRegistry,
    OCIError,
)
from ociattach.oci.name import ImageName


def _setup_logging(debug: bool):
    if debug:
        logging.basicConfig(level=logging.DEBUG)


def _validate_digest(ctx, param, value: str) -> str:
    if not DIGEST_RE.fullmatch(value):
        raise click.BadParameter(f"'{value}' is not a valid digest")
    return value


def _parse_annotations(ctx, param, values: tuple[str, ...]) -> dict[str, str] | None:
    annotations = {}
    for value in values:
        key, sep, item = value.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"'{value}' should be formatted as key=value")
        annotations[key] = item
    return annotations or None


def _parse_image(ctx, param, value: str) -> ImageName:
    try:
        return ociattach.oci.parse_image_name(value)
    except ValueError as e:
        raise click.BadParameter(str(e)) from e


@click.group()
@click.version_option(ociattach.__version__)
def cli():
    pass


@cli.command()
@click.argument("image", callback=_parse_image)
@click.argument("artifact", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "-s",
    "--subject-digest",
    help="Digest of the image to attach to",
    required=True,
    callback=_validate_digest,
)
@click.option("-m", "--media-type", help="Media type of the artifact", required=True)
@click.option(
    "-a",
    "--annotation",
    "annotations",
    help="Manifest annotation as key=value",
    multiple=True,
    callback=_parse_annotations,
)
@click.option("--timeout", help="HTTP timeout in seconds", type=float, default=30.0)
@click.option("--retries", help="HTTP connection retries", type=int, default=0)
@click.option("-d", "--debug", help="Debug output", is_flag=True)
def attach(
    image: ImageName,
    artifact: Path,
    subject_digest: str,
    media_type: str,
    annotations: dict[str, str] | None,
    timeout: float,
    retries: int,
    debug: bool,
):
    """Attach an ARTIFACT file to IMAGE as an OCI referrer."""
    _setup_logging(debug)
    try:
        descriptor = ociattach.oci.attach_artifact_to_image(
            image_name=str(image),
            subject_digest=subject_digest,
            artifact=artifact.read_bytes(),
            media_type=media_type,
            annotations=annotations,
            options=ociattach.oci.ClientOptions(timeout=timeout, retries=retries),
        )
    except (OCIError, httpx.HTTPError) as e:
        raise click.ClickException(str(e)) from e
    click.echo(descriptor.model_dump_json(exclude_none=True))


@cli.command()
@click.argument("image", callback=_parse_image)
@click.option("--timeout", help="HTTP timeout in seconds", type=float, default=30.0)
@click.option("-d", "--debug", help="Debug output", is_flag=True)
def ping(image: ImageName, timeout: float, debug: bool):
    """Print the distribution API version of the registry hosting IMAGE."""
    _setup_logging(debug)
    try:
        creds = ociattach.oci.get_registry_credentials(image.registry)
    except (CredentialFileNotFound, NoCredentialsForRegistry):
        creds = None

    with ociattach.oci.Client(
        registry=image.registry,
        repository=image.path,
        username=creds.username if creds else None,
        password=creds.password if creds else None,
        options=ociattach.oci.ClientOptions(timeout=timeout),
    ) as client:
        try:
            if creds is not None:
                client.sign_in()
            version = client.version_check()
        except (OCIError, httpx.HTTPError) as e:
            raise click.ClickException(str(e)) from e
    click.echo(version or "unknown")


if __name__ == "__main__":
    cli()
