"""Pytest configuration and shared fixtures."""

import asyncio

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from src.admin import AdminService
from src.credentials.database import DatabaseCredentialStore
from src.credentials.errors import CredentialNotFoundError
from src.credentials.local import FileCredentialStore
from src.credentials.models import CreateCredential, CredentialRecord, utcnow
from src.db.connection import init_db
from src.rotation import LiveEntry, LiveSnapshot, RotationManager, UsageInfo


class FakeRotationManager(RotationManager):
    """
    In-memory pool standing in for the external Rotation Manager.

    Lookups by ID fail with plain RuntimeError messages (as an untyped
    external component would), except where noted.
    """

    def __init__(self):
        self.records: dict[int, CredentialRecord] = {}
        self.current_id = 0
        self._next_id = 1
        self.switch_calls = 0
        self.switch_error: Exception | None = None
        self.usage: dict[int, UsageInfo | Exception] = {}
        self.usage_gate: asyncio.Event | None = None
        self.add_errors: dict[str, Exception] = {}
        self.delete_requires_disabled = False

    def seed(self, priority: int = 0, disabled: bool = False, failure_count: int = 0, **fields) -> int:
        credential_id = self._next_id
        self._next_id += 1
        now = utcnow()
        self.records[credential_id] = CredentialRecord(
            id=credential_id,
            refresh_token=fields.pop("refresh_token", f"refresh-{credential_id}"),
            priority=priority,
            disabled=disabled,
            failure_count=failure_count,
            created_at=now,
            updated_at=now,
            **fields,
        )
        if not self.current_id and not disabled:
            self.current_id = credential_id
        return credential_id

    def _require(self, credential_id: int) -> CredentialRecord:
        if credential_id not in self.records:
            raise RuntimeError(f"Credential {credential_id} does not exist")
        return self.records[credential_id]

    def _replace(self, credential_id: int, **changes) -> None:
        record = self._require(credential_id)
        self.records[credential_id] = record.model_copy(update=changes)

    def snapshot(self) -> LiveSnapshot:
        entries = [
            LiveEntry(
                id=r.id,
                priority=r.priority,
                disabled=r.disabled,
                failure_count=r.failure_count,
                expires_at=r.expires_at,
                auth_method=r.auth_method,
                has_profile_arn=r.profile_arn is not None,
            )
            for r in self.records.values()
        ]
        available = sum(1 for r in self.records.values() if not r.disabled)
        return LiveSnapshot(entries=entries, current_id=self.current_id, available=available)

    def snapshot_full(self) -> list[CredentialRecord]:
        return [self.records[i] for i in sorted(self.records)]

    def set_disabled(self, credential_id: int, disabled: bool) -> None:
        self._replace(credential_id, disabled=disabled)

    def set_priority(self, credential_id: int, priority: int) -> None:
        if credential_id not in self.records:
            raise CredentialNotFoundError(credential_id)
        self._replace(credential_id, priority=priority)

    def reset_and_enable(self, credential_id: int) -> None:
        self._replace(credential_id, failure_count=0, disabled=False)

    def switch_to_next(self) -> bool:
        self.switch_calls += 1
        if self.switch_error is not None:
            raise self.switch_error
        candidates = sorted(
            (r for r in self.records.values() if not r.disabled and r.id != self.current_id),
            key=lambda r: r.sort_key,
        )
        if not candidates:
            raise RuntimeError("No available credentials to switch to")
        self.current_id = candidates[0].id
        return True

    async def get_usage_limits_for(self, credential_id: int) -> UsageInfo:
        self._require(credential_id)
        if self.usage_gate is not None:
            await self.usage_gate.wait()
        if credential_id not in self.records:
            raise CredentialNotFoundError(credential_id)
        usage = self.usage[credential_id]
        if isinstance(usage, Exception):
            raise usage
        return usage

    async def add_credential(self, spec: CreateCredential) -> int:
        spec.validate_for_create()
        token = spec.refresh_token.get_secret_value()
        if token in self.add_errors:
            raise self.add_errors[token]
        return self.seed(**spec.to_storage_dict())

    def delete_credential(self, credential_id: int) -> None:
        record = self._require(credential_id)
        if self.delete_requires_disabled and not record.disabled:
            raise RuntimeError("Only disabled credentials can be deleted")
        del self.records[credential_id]


@pytest.fixture
def rotation_manager():
    return FakeRotationManager()


@pytest.fixture
def admin_service(rotation_manager):
    return AdminService(rotation_manager)


@pytest.fixture
def make_spec():
    """Factory for creation specs with a unique refresh token."""
    counter = iter(range(1, 10_000))

    def _make(**overrides) -> CreateCredential:
        fields = {"refresh_token": f"refresh-token-{next(counter)}"}
        fields.update(overrides)
        return CreateCredential(**fields)

    return _make


@pytest.fixture
def db_engine():
    """In-memory SQLite shared across connections."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def database_store(db_engine):
    return DatabaseCredentialStore(sessionmaker(bind=db_engine, expire_on_commit=False))


@pytest.fixture
def file_store(tmp_path):
    return FileCredentialStore(str(tmp_path / "credentials"))


@pytest.fixture(params=["file", "database"])
def store(request):
    """Each contract test runs against both backends."""
    return request.getfixturevalue(f"{request.param}_store")
