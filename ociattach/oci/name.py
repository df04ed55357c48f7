from dataclasses import dataclass

from ociattach.oci.errors import MalformedReference


@dataclass(frozen=True, slots=True)
class ImageName:
    """Registry and repository path of an image

    ref: https://github.com/distribution/reference/blob/main/reference.go
    """

    registry: str
    path: str

    def __str__(self):
        return f"{self.registry}/{self.path}"

    @classmethod
    def from_string(cls, value: str) -> "ImageName":
        """Split `value` into registry host (with optional port) and path.

        The first segment is only taken as the registry when it looks like a
        host (contains a '.' or ':', or is 'localhost'), or when there are at
        least 3 segments. A bare 'namespace/repo' is ambiguous and rejected.
        """
        if not value:
            raise MalformedReference("Image name is empty")
        registry, sep, path = value.partition("/")
        if not sep:
            raise MalformedReference(f"Image name '{value}' has no registry")
        if not registry or not path or "" in path.split("/"):
            raise MalformedReference(f"Image name '{value}' has an empty segment")
        if not (
            "." in registry
            or ":" in registry
            or registry == "localhost"
            or "/" in path
        ):
            raise MalformedReference(
                f"Can not determine the registry of image name '{value}'"
            )
        return cls(registry=registry, path=path)


def parse_image_name(value: str) -> ImageName:
    return ImageName.from_string(value)
