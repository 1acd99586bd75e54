"""Tests specific to the encrypted file store."""

import asyncio
import threading

import pytest
from cryptography.fernet import Fernet

from src.credentials import get_credential_store
from src.credentials.errors import CredentialStoreError
from src.credentials.local import FileCredentialStore
from src.credentials.models import CreateCredential
from src.config.settings import get_settings


@pytest.mark.asyncio
async def test_secrets_not_stored_in_plaintext(file_store, make_spec):
    await file_store.create(make_spec(refresh_token="very-secret-refresh-token"))

    raw = (file_store.base_path / "credentials.json.enc").read_bytes()

    assert b"very-secret-refresh-token" not in raw


@pytest.mark.asyncio
async def test_records_persist_across_instances(tmp_path, make_spec):
    path = str(tmp_path / "creds")
    first = FileCredentialStore(path)
    credential_id = await first.create(make_spec(refresh_token="rt-persist", priority=4))

    second = FileCredentialStore(path)
    record = await second.get(credential_id)

    assert record.refresh_token.get_secret_value() == "rt-persist"
    assert record.priority == 4


@pytest.mark.asyncio
async def test_tombstone_kept_in_document(file_store, make_spec):
    credential_id = await file_store.create(make_spec())
    await file_store.delete(credential_id)

    state = file_store._load_state()

    assert len(state["records"]) == 1
    assert state["records"][0]["deleted_at"] is not None
    assert state["next_id"] == credential_id + 1


@pytest.mark.asyncio
async def test_wrong_key_raises_instead_of_emptying(tmp_path, make_spec):
    path = tmp_path / "creds"
    store = FileCredentialStore(str(path))
    await store.create(make_spec())

    (path / ".key").write_bytes(Fernet.generate_key())
    reopened = FileCredentialStore(str(path))

    with pytest.raises(CredentialStoreError):
        await reopened.list_all()


def test_factory_returns_file_store_by_default(tmp_path, monkeypatch):
    monkeypatch.delenv("CREDENTIAL_BACKEND", raising=False)
    monkeypatch.setenv("CREDENTIAL_PATH", str(tmp_path / "factory"))
    get_settings.cache_clear()
    try:
        store = get_credential_store()
    finally:
        get_settings.cache_clear()

    assert isinstance(store, FileCredentialStore)
    assert store.base_path == tmp_path / "factory"


def test_instances_on_one_path_share_a_lock(tmp_path):
    first = FileCredentialStore(str(tmp_path / "shared"))
    second = FileCredentialStore(str(tmp_path / "shared" / ".." / "shared"))

    assert first._lock is second._lock


def test_concurrent_instances_never_reuse_ids(tmp_path):
    path = str(tmp_path / "shared")
    FileCredentialStore(path)._get_fernet()
    failures = []

    def create_many(prefix: str):
        store = FileCredentialStore(path)
        for n in range(25):
            try:
                asyncio.run(store.create(CreateCredential(refresh_token=f"{prefix}-{n}")))
            except Exception as e:
                failures.append(e)

    threads = [threading.Thread(target=create_many, args=(prefix,)) for prefix in ("a", "b")]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    records = asyncio.run(FileCredentialStore(path).list_all())
    ids = [record.id for record in records]
    assert failures == []
    assert len(ids) == 50
    assert len(set(ids)) == 50


@pytest.mark.asyncio
async def test_writes_leave_no_temp_files(file_store, make_spec):
    credential_id = await file_store.create(make_spec())
    await file_store.delete(credential_id)

    assert list(file_store.base_path.glob("*.tmp")) == []
    assert sorted(p.name for p in file_store.base_path.iterdir()) == [".key", "credentials.json.enc"]
