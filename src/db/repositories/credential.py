"""
Credential repository for database operations.
"""
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from src.credentials.models import next_timestamp
from src.db.models import Credential

credentials_table = Credential.__table__


class CredentialRepository:
    """Repository for Credential CRUD operations. Never removes rows."""

    def __init__(self, session: Session):
        self.session = session

    def _active(self):
        return select(Credential).where(Credential.is_active)

    def get_by_id(self, credential_id: int) -> Credential | None:
        """Get a live credential by ID."""
        stmt = self._active().where(Credential.id == credential_id)
        return self.session.execute(stmt).scalar_one_or_none()

    def get_all(self, limit: int | None = None, offset: int = 0) -> list[Credential]:
        """Get live credentials ordered by priority, then ID."""
        stmt = self._active().order_by(Credential.priority.asc(), Credential.id.asc())
        if limit is not None:
            stmt = stmt.offset(offset).limit(limit)
        return list(self.session.execute(stmt).scalars().all())

    def count(self) -> int:
        """Count live credentials."""
        stmt = select(func.count()).select_from(Credential).where(Credential.is_active)
        return self.session.execute(stmt).scalar_one()

    def create(self, **fields: Any) -> Credential:
        """Insert a new credential row."""
        now = next_timestamp()
        credential = Credential(created_at=now, updated_at=now, **fields)
        self.session.add(credential)
        self.session.flush()
        return credential

    def _next_updated_at(self, credential_id: int):
        stmt = select(Credential.updated_at).where(
            Credential.id == credential_id, Credential.is_active
        )
        return next_timestamp(self.session.execute(stmt).scalar_one_or_none())

    def update_fields(self, credential_id: int, changes: list[tuple[str, Any]]) -> bool:
        """
        Apply ordered (column, value) pairs to a live credential.

        The SET clause and its bound parameters are both rendered from the
        same ordered list. Returns False if no live row matched.
        """
        assignments = [(credentials_table.c.updated_at, self._next_updated_at(credential_id))]
        assignments.extend((credentials_table.c[column], value) for column, value in changes)

        stmt = (
            update(credentials_table)
            .where(Credential.id == credential_id, Credential.is_active)
            .ordered_values(*assignments)
        )
        return self.session.execute(stmt).rowcount > 0

    def soft_delete(self, credential_id: int) -> bool:
        """Set the tombstone on a live credential. Returns False if none matched."""
        now = self._next_updated_at(credential_id)
        stmt = (
            update(credentials_table)
            .where(Credential.id == credential_id, Credential.is_active)
            .values(deleted_at=now, updated_at=now)
        )
        return self.session.execute(stmt).rowcount > 0
