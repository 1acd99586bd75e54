"""
Credential storage module.
"""
from src.config.settings import get_settings
from src.credentials.base import CredentialStore
from src.credentials.local import FileCredentialStore


def get_credential_store() -> CredentialStore:
    """Get the configured credential store."""
    settings = get_settings()

    if settings.credential_backend == "database":
        from src.credentials.database import DatabaseCredentialStore

        return DatabaseCredentialStore()

    return FileCredentialStore(settings.credential_path)
