"""
Relational credential storage via SQLAlchemy.
"""
import logging

from sqlalchemy.orm import Session, sessionmaker

from src.credentials.base import CredentialStore
from src.credentials.errors import CredentialNotFoundError
from src.credentials.models import (
    CreateCredential,
    CredentialRecord,
    PaginatedResult,
    UpdateCredential,
    validate_page,
)
from src.db.connection import get_db_session
from src.db.repositories.credential import CredentialRepository

logger = logging.getLogger(__name__)


class DatabaseCredentialStore(CredentialStore):
    """
    Stores credential records in the ``credentials`` table.

    Soft delete sets ``deleted_at``; every query filters on
    ``Credential.is_active``. Each operation runs in its own session.
    """

    def __init__(self, session_factory: sessionmaker[Session] | None = None):
        self._session_factory = session_factory

    async def list_page(self, page: int, page_size: int) -> PaginatedResult[CredentialRecord]:
        """Get one page of credentials (pages are 1-indexed)."""
        validate_page(page, page_size)
        with get_db_session(self._session_factory) as session:
            repo = CredentialRepository(session)
            total = repo.count()
            rows = repo.get_all(limit=page_size, offset=(page - 1) * page_size)
            items = [CredentialRecord.model_validate(row) for row in rows]
        return PaginatedResult.build(items=items, total=total, page=page, page_size=page_size)

    async def list_all(self) -> list[CredentialRecord]:
        """Get all credentials ordered by priority (lowest first)."""
        with get_db_session(self._session_factory) as session:
            rows = CredentialRepository(session).get_all()
            return [CredentialRecord.model_validate(row) for row in rows]

    async def get(self, credential_id: int) -> CredentialRecord | None:
        """Get a credential by ID."""
        with get_db_session(self._session_factory) as session:
            row = CredentialRepository(session).get_by_id(credential_id)
            return CredentialRecord.model_validate(row) if row else None

    async def create(self, spec: CreateCredential) -> int:
        """Create a credential and return its new ID."""
        spec.validate_for_create()
        with get_db_session(self._session_factory) as session:
            credential = CredentialRepository(session).create(**spec.to_storage_dict())
            credential_id = credential.id
        logger.info(f"Created credential {credential_id}")
        return credential_id

    async def update(self, credential_id: int, fields: UpdateCredential) -> None:
        """Apply the explicitly supplied ``fields``."""
        with get_db_session(self._session_factory) as session:
            if not CredentialRepository(session).update_fields(credential_id, fields.changes()):
                raise CredentialNotFoundError(credential_id)

    async def delete(self, credential_id: int) -> None:
        """Soft-delete a credential."""
        with get_db_session(self._session_factory) as session:
            if not CredentialRepository(session).soft_delete(credential_id):
                raise CredentialNotFoundError(credential_id)
        logger.info(f"Deleted credential {credential_id}")
