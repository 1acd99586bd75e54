"""
Exceptions raised by credential stores and the rotation layer.
"""


class CredentialStoreError(Exception):
    """Base class for credential storage failures."""

    pass


class CredentialNotFoundError(CredentialStoreError):
    """The credential does not exist or has been deleted."""

    def __init__(self, credential_id: int):
        super().__init__(f"Credential {credential_id} does not exist")
        self.credential_id = credential_id


class InvalidCredentialError(CredentialStoreError):
    """Credential material is missing, malformed or was rejected."""

    pass


class UpstreamServiceError(CredentialStoreError):
    """The upstream service or the network to it failed."""

    pass


class PaginationError(ValueError):
    """Page or page size is not a positive integer."""

    pass
