"""
SQLAlchemy ORM models for the credential pool database.
"""
from datetime import datetime

from sqlalchemy import BigInteger, Boolean, DateTime, Index, Integer, String, Text, text
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# SQLite only auto-increments INTEGER PRIMARY KEY columns
CredentialId = BigInteger().with_variant(Integer, "sqlite")

ACTIVE_ROWS = text("deleted_at IS NULL")


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class Credential(Base):
    """Upstream-service credential with pool-management metadata."""

    __tablename__ = "credentials"
    __table_args__ = (
        Index(
            "idx_credentials_priority",
            "priority",
            postgresql_where=ACTIVE_ROWS,
            sqlite_where=ACTIVE_ROWS,
        ),
        Index(
            "idx_credentials_disabled",
            "disabled",
            postgresql_where=ACTIVE_ROWS,
            sqlite_where=ACTIVE_ROWS,
        ),
    )

    id: Mapped[int] = mapped_column(CredentialId, primary_key=True, autoincrement=True)
    refresh_token: Mapped[str] = mapped_column(Text, nullable=False)
    access_token: Mapped[str | None] = mapped_column(Text)
    profile_arn: Mapped[str | None] = mapped_column(Text)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    auth_method: Mapped[str] = mapped_column(String(20), nullable=False, default="social")
    client_id: Mapped[str | None] = mapped_column(Text)
    client_secret: Mapped[str | None] = mapped_column(Text)
    # Lower = served first; ties broken by id
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    region: Mapped[str | None] = mapped_column(String(50))
    machine_id: Mapped[str | None] = mapped_column(String(128))
    failure_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    disabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    # Tombstone: set means logically deleted
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    @hybrid_property
    def is_active(self) -> bool:
        return self.deleted_at is None

    @is_active.inplace.expression
    @classmethod
    def _is_active_expression(cls):
        return cls.deleted_at.is_(None)

    def __repr__(self) -> str:
        return f"<Credential {self.id} (priority={self.priority}, disabled={self.disabled})>"
