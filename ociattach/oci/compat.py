"""Which registries accept the `subject` and `artifactType` manifest fields"""
from dataclasses import dataclass

# Registries that reject or ignore `subject`/`artifactType` on image manifests
LIMITED_REFERRERS_REGISTRIES = ("docker.io", "amazonaws.com")


@dataclass(frozen=True, slots=True)
class RegistryClassifier:
    """Decide from the registry host whether it supports OCI referrers.

    A host matches when it contains any of `hosts` as a substring.
    """

    hosts: tuple[str, ...] = LIMITED_REFERRERS_REGISTRIES

    def __call__(self, registry: str) -> bool:
        return not any(host in registry for host in self.hosts)


supports_referrers = RegistryClassifier()
