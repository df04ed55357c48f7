"""Errors raised by the OCI client library"""
import httpx


class OCIError(Exception):
    """Base class for all ociattach errors."""


class MalformedReference(OCIError, ValueError):
    """Raised when an image reference can not be split into registry and path."""


class CredentialFileNotFound(OCIError):
    """Raised when the credential file is missing or unreadable."""


class NoCredentialsForRegistry(OCIError):
    """Raised when the credential file holds no entry for the registry."""


class AuthenticationError(OCIError):
    """Raised when authentication fails."""


class MissingUploadLocation(OCIError):
    """Raised when a blob upload session is started without a Location."""


class InvalidManifest(OCIError):
    """Raised when a fetched manifest is not valid JSON."""


class UnsupportedIndexMediaType(OCIError):
    """Raised when the referrer tag points to something other than an index."""


class HTTPError(OCIError, httpx.HTTPStatusError):
    """Non-success response from the registry.

    Callers distinguish failures by `status_code`, not by the response body.
    """

    def __init__(self, message: str, *, response: httpx.Response):
        super().__init__(
            f"({response.status_code}) {message}",
            request=response.request,
            response=response,
        )

    @property
    def status_code(self) -> int:
        return self.response.status_code


class UnexpectedStatus(HTTPError):
    """Raised when a 2xx status other than the documented one is returned."""


class IndexConflict(HTTPError):
    """Raised when a conditional index write loses against a concurrent writer."""


def check_status(response: httpx.Response) -> None:
    """Raise an HTTPError if the response is not 2xx"""
    if response.is_success:
        return
    raise HTTPError(f"OCI API: {response.reason_phrase}", response=response)
