"""
Local file-based credential storage.
Credentials stored encrypted in data/credentials/ directory.
"""
import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any

from cryptography.fernet import Fernet, InvalidToken

from src.credentials.base import CredentialStore
from src.credentials.errors import CredentialNotFoundError, CredentialStoreError
from src.credentials.models import (
    CreateCredential,
    CredentialRecord,
    PaginatedResult,
    UpdateCredential,
    next_timestamp,
    paginate,
)

logger = logging.getLogger(__name__)

# One lock per resolved directory, shared by every instance in the process
_path_locks: dict[Path, threading.RLock] = {}
_path_locks_guard = threading.Lock()


def _lock_for(path: Path) -> threading.RLock:
    with _path_locks_guard:
        return _path_locks.setdefault(path.resolve(), threading.RLock())


def _atomic_write(path: Path, data: bytes) -> None:
    """Write to a temp file in the same directory, then swap it into place."""
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


class FileCredentialStore(CredentialStore):
    """
    Stores credential records in a single encrypted JSON document.

    Structure:
    data/credentials/
    ├── .key                  # Encryption key (gitignored)
    └── credentials.json.enc  # {"next_id": int, "records": [...]}

    Deleted records stay in the document with ``deleted_at`` set, and
    ``next_id`` only grows, so IDs are never reused.
    """

    def __init__(self, base_path: str = "data/credentials"):
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)
        self._key_file = self.base_path / ".key"
        self._records_file = self.base_path / "credentials.json.enc"
        self._fernet: Fernet | None = None
        self._lock = _lock_for(self.base_path)

    def _get_fernet(self) -> Fernet:
        """Get or create Fernet encryption instance."""
        if self._fernet is None:
            if self._key_file.exists():
                key = self._key_file.read_bytes()
            else:
                key = Fernet.generate_key()
                _atomic_write(self._key_file, key)
            self._fernet = Fernet(key)
        return self._fernet

    def _load_state(self) -> dict[str, Any]:
        """Load and decrypt the document."""
        if not self._records_file.exists():
            return {"next_id": 1, "records": []}
        try:
            decrypted = self._get_fernet().decrypt(self._records_file.read_bytes())
        except InvalidToken as e:
            raise CredentialStoreError(
                f"Credential file {self._records_file} could not be decrypted"
            ) from e
        return json.loads(decrypted)

    def _save_state(self, state: dict[str, Any]) -> None:
        """Encrypt and save the document."""
        data = json.dumps(state, indent=2).encode()
        _atomic_write(self._records_file, self._get_fernet().encrypt(data))

    def _active_records(self, state: dict[str, Any]) -> list[CredentialRecord]:
        records = [CredentialRecord.model_validate(data) for data in state["records"]]
        return sorted((r for r in records if r.is_active), key=lambda r: r.sort_key)

    def _find_active(self, state: dict[str, Any], credential_id: int) -> tuple[int, CredentialRecord]:
        """Return (position, record) of a live record or raise NotFound."""
        for position, data in enumerate(state["records"]):
            if data["id"] == credential_id:
                record = CredentialRecord.model_validate(data)
                if record.is_active:
                    return position, record
                break
        raise CredentialNotFoundError(credential_id)

    async def list_page(self, page: int, page_size: int) -> PaginatedResult[CredentialRecord]:
        """Get one page of credentials (pages are 1-indexed)."""
        with self._lock:
            records = self._active_records(self._load_state())
        return paginate(records, page, page_size)

    async def list_all(self) -> list[CredentialRecord]:
        """Get all credentials ordered by priority (lowest first)."""
        with self._lock:
            return self._active_records(self._load_state())

    async def get(self, credential_id: int) -> CredentialRecord | None:
        """Get a credential by ID."""
        with self._lock:
            state = self._load_state()
            try:
                return self._find_active(state, credential_id)[1]
            except CredentialNotFoundError:
                return None

    async def create(self, spec: CreateCredential) -> int:
        """Create a credential and return its new ID."""
        spec.validate_for_create()
        with self._lock:
            state = self._load_state()
            now = next_timestamp()
            record = CredentialRecord(
                id=state["next_id"],
                created_at=now,
                updated_at=now,
                **spec.to_storage_dict(),
            )
            state["records"].append(record.to_storage_dict())
            state["next_id"] += 1
            self._save_state(state)
        logger.info(f"Created credential {record.id}")
        return record.id

    async def update(self, credential_id: int, fields: UpdateCredential) -> None:
        """Apply the explicitly supplied ``fields``."""
        with self._lock:
            state = self._load_state()
            position, record = self._find_active(state, credential_id)
            data = record.to_storage_dict()
            for column, value in fields.changes():
                data[column] = value
            data["updated_at"] = next_timestamp(record.updated_at)
            state["records"][position] = CredentialRecord.model_validate(data).to_storage_dict()
            self._save_state(state)

    async def delete(self, credential_id: int) -> None:
        """Soft-delete a credential."""
        with self._lock:
            state = self._load_state()
            position, record = self._find_active(state, credential_id)
            now = next_timestamp(record.updated_at)
            deleted = record.model_copy(update={"deleted_at": now, "updated_at": now})
            state["records"][position] = deleted.to_storage_dict()
            self._save_state(state)
        logger.info(f"Deleted credential {credential_id}")
