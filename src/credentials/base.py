"""
Abstract base class for credential stores.
"""
import logging
from abc import ABC, abstractmethod

from src.credentials.models import (
    BatchDeleteResult,
    BatchImportResult,
    CreateCredential,
    CredentialRecord,
    PaginatedResult,
    UpdateCredential,
)

logger = logging.getLogger(__name__)


class CredentialStore(ABC):
    """
    Storage-agnostic interface for credential records.

    Every read excludes soft-deleted records and orders by
    (priority asc, id asc). Mutating a deleted or unknown id raises
    CredentialNotFoundError.
    """

    @abstractmethod
    async def list_page(self, page: int, page_size: int) -> PaginatedResult[CredentialRecord]:
        """Get one page of credentials (pages are 1-indexed)."""
        pass

    @abstractmethod
    async def list_all(self) -> list[CredentialRecord]:
        """Get all credentials ordered by priority (lowest first)."""
        pass

    @abstractmethod
    async def get(self, credential_id: int) -> CredentialRecord | None:
        """Get a credential by ID."""
        pass

    @abstractmethod
    async def create(self, spec: CreateCredential) -> int:
        """Create a credential and return its new ID."""
        pass

    @abstractmethod
    async def update(self, credential_id: int, fields: UpdateCredential) -> None:
        """Apply the explicitly supplied ``fields``."""
        pass

    @abstractmethod
    async def delete(self, credential_id: int) -> None:
        """Soft-delete a credential."""
        pass

    async def batch_create(self, specs: list[CreateCredential]) -> BatchImportResult:
        """Create each spec in order; failures do not affect other items."""
        result = BatchImportResult()
        for index, spec in enumerate(specs):
            try:
                await self.create(spec)
            except Exception as e:
                logger.warning(f"Batch create item {index} failed: {e}")
                result.record_failure(index, str(e))
            else:
                result.imported += 1
        return result

    async def batch_delete(self, credential_ids: list[int]) -> BatchDeleteResult:
        """Delete each ID in order; failures do not affect other items."""
        result = BatchDeleteResult()
        for credential_id in credential_ids:
            try:
                await self.delete(credential_id)
            except Exception as e:
                logger.warning(f"Batch delete of credential {credential_id} failed: {e}")
                result.record_failure(credential_id, str(e))
            else:
                result.deleted += 1
        return result

    async def export_all(self) -> list[CredentialRecord]:
        """Get every live credential for export."""
        return await self.list_all()
