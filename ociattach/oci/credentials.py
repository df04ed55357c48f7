"""Registry credentials from the Docker credential file

ref: https://docs.docker.com/reference/cli/docker/#configuration-files
"""
import base64
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlsplit

from ociattach.oci.errors import CredentialFileNotFound, NoCredentialsForRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Credentials:
    username: str
    password: str

    def __repr__(self):
        return f"Credentials(username={self.username!r}, password='***')"


def docker_config_path() -> Path:
    """Return the location of the Docker credential file"""
    if config_dir := os.environ.get("DOCKER_CONFIG"):
        return Path(config_dir) / "config.json"
    return Path.home() / ".docker" / "config.json"


def to_basic_auth(creds: Credentials) -> str:
    """Encode the username and password as base64-encoded basicauth value"""
    return base64.b64encode(
        f"{creds.username}:{creds.password}".encode("utf-8")
    ).decode("ascii")


def from_basic_auth(auth: str) -> Credentials:
    """Decode the base64-encoded basicauth value"""
    # Passwords may contain ':', only split on the first one
    username, _, password = (
        base64.b64decode(auth.encode("ascii")).decode("utf-8").partition(":")
    )
    return Credentials(username=username, password=password)


def _key_host(key: str) -> str:
    """Host part of an `auths` key, which may be a full URL"""
    if "://" not in key:
        key = f"//{key}"
    return urlsplit(key).netloc


def _find_key(auths: dict, registry: str) -> str | None:
    """Pick the `auths` key for registry

    An exact key wins, then a key whose host equals the registry, then the
    longest key containing the registry. Equal lengths go to sorted order.
    """
    if registry in auths:
        return registry
    candidates = sorted(key for key in auths if registry in key)
    for key in candidates:
        if _key_host(key) == registry:
            return key
    if len(candidates) > 1:
        logger.debug("Multiple credential entries match %s: %s", registry, candidates)
    return max(candidates, key=len, default=None)


def get_registry_credentials(
    registry: str, config_path: Path | None = None
) -> Credentials:
    """Return the credentials for `registry` from the Docker credential file"""
    if config_path is None:
        config_path = docker_config_path()

    try:
        docker_config = json.loads(config_path.read_text("utf-8"))
    except (OSError, ValueError) as e:
        raise CredentialFileNotFound(
            f"No credential file found at {config_path}"
        ) from e

    auths = docker_config.get("auths") if isinstance(docker_config, dict) else None
    key = _find_key(auths or {}, registry)
    entry = auths[key] if key is not None else None
    if not entry or not entry.get("auth"):
        raise NoCredentialsForRegistry(f"No credentials found for registry {registry}")

    logger.debug("Using credentials '%s' for %s", key, registry)
    creds = from_basic_auth(entry["auth"])
    if token := entry.get("identitytoken"):
        # Rotating identity tokens replace the static password
        creds = Credentials(username=creds.username, password=token)
    return creds
