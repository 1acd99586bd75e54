"""
Admin service - administrative operations over the credential pool.

Reads come from the Rotation Manager's live state rather than the store,
and every failure leaving this module is an AdminServiceError.
"""
import logging
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import ValidationError

from src.admin.errors import classify_error
from src.admin.models import (
    AddCredentialResponse,
    BalanceResponse,
    CredentialExportItem,
    CredentialsStatusResponse,
    CredentialStatusItem,
    DisableResult,
)
from src.credentials.models import (
    BatchDeleteResult,
    BatchImportResult,
    CreateCredential,
    paginate,
)
from src.rotation import RotationManager

logger = logging.getLogger(__name__)


def compute_usage(current_usage: float, usage_limit: float) -> tuple[float, float]:
    """
    Return (remaining, usage_percentage).

    Remaining never goes negative; the percentage is 0 without a positive
    limit and capped at 100 when upstream reports usage above the limit.
    """
    remaining = max(usage_limit - current_usage, 0.0)
    if usage_limit > 0:
        usage_percentage = min(current_usage / usage_limit * 100, 100.0)
    else:
        usage_percentage = 0.0
    return remaining, usage_percentage


class AdminService:
    """Bridges administrative requests to the Rotation Manager."""

    def __init__(self, rotation_manager: RotationManager):
        self.rotation_manager = rotation_manager

    def get_all_credentials(self, page: int = 1, page_size: int = 20) -> CredentialsStatusResponse:
        """
        Paginated status of every pooled credential, lowest priority first.

        Raises:
            PaginationError: if page or page_size is not positive
        """
        try:
            snapshot = self.rotation_manager.snapshot()
        except Exception as e:
            raise classify_error(e) from e
        credentials = [
            CredentialStatusItem(
                id=entry.id,
                priority=entry.priority,
                disabled=entry.disabled,
                failure_count=entry.failure_count,
                is_current=entry.id == snapshot.current_id,
                expires_at=entry.expires_at,
                auth_method=entry.auth_method,
                has_profile_arn=entry.has_profile_arn,
            )
            for entry in snapshot.entries
        ]
        credentials.sort(key=lambda c: (c.priority, c.id))

        result = paginate(credentials, page, page_size)
        return CredentialsStatusResponse(
            total=result.total,
            available=snapshot.available,
            current_id=snapshot.current_id,
            page=result.page,
            page_size=result.page_size,
            total_pages=result.total_pages,
            credentials=result.items,
        )

    def set_disabled(self, credential_id: int, disabled: bool) -> DisableResult:
        """
        Disable or enable a credential.

        Disabling the current credential also asks the Rotation Manager to
        switch to another one. That switch is best effort: its failure is
        reported in the result, never raised.
        """
        try:
            current_id = self.rotation_manager.snapshot().current_id
            self.rotation_manager.set_disabled(credential_id, disabled)
        except Exception as e:
            raise classify_error(e, credential_id) from e
        logger.info(f"Credential {credential_id} {'disabled' if disabled else 'enabled'}")

        if not (disabled and credential_id == current_id):
            return DisableResult(id=credential_id, disabled=disabled)

        try:
            switched = self.rotation_manager.switch_to_next()
        except Exception as e:
            logger.warning(f"Failover after disabling current credential {credential_id} failed: {e}")
            return DisableResult(
                id=credential_id,
                disabled=disabled,
                switch_attempted=True,
                switch_error=str(e),
            )
        return DisableResult(
            id=credential_id, disabled=disabled, switch_attempted=True, switched=switched
        )

    def set_priority(self, credential_id: int, priority: int) -> None:
        try:
            self.rotation_manager.set_priority(credential_id, priority)
        except Exception as e:
            raise classify_error(e, credential_id) from e
        logger.info(f"Credential {credential_id} priority set to {priority}")

    def reset_and_enable(self, credential_id: int) -> None:
        """Zero the failure count and re-enable the credential."""
        try:
            self.rotation_manager.reset_and_enable(credential_id)
        except Exception as e:
            raise classify_error(e, credential_id) from e
        logger.info(f"Credential {credential_id} failure count reset and enabled")

    async def get_balance(self, credential_id: int) -> BalanceResponse:
        """
        Query upstream usage for a credential.

        May refresh the token first and wait on the network. Not retried:
        a deleted credential gives NotFound, network trouble UpstreamError.
        """
        try:
            usage = await self.rotation_manager.get_usage_limits_for(credential_id)
        except Exception as e:
            raise classify_error(e, credential_id) from e

        remaining, usage_percentage = compute_usage(usage.current_usage, usage.usage_limit)
        return BalanceResponse(
            id=credential_id,
            subscription_title=usage.subscription_title,
            current_usage=usage.current_usage,
            usage_limit=usage.usage_limit,
            remaining=remaining,
            usage_percentage=usage_percentage,
            next_reset_at=usage.next_reset_at,
        )

    async def add_credential(self, spec: CreateCredential) -> AddCredentialResponse:
        try:
            spec.validate_for_create()
            credential_id = await self.rotation_manager.add_credential(spec)
        except Exception as e:
            raise classify_error(e, validating=True) from e
        logger.info(f"Added credential {credential_id}")
        return AddCredentialResponse(
            message=f"Credential added, ID: {credential_id}",
            credential_id=credential_id,
        )

    def delete_credential(self, credential_id: int) -> None:
        try:
            self.rotation_manager.delete_credential(credential_id)
        except Exception as e:
            raise classify_error(e, credential_id) from e
        logger.info(f"Deleted credential {credential_id}")

    async def batch_import(
        self, items: Iterable[CreateCredential | Mapping[str, Any]]
    ) -> BatchImportResult:
        """
        Add credentials one at a time, in order.

        Never raises: each failing item (including one that does not
        validate) is reported under its input index.
        """
        result = BatchImportResult()
        for index, item in enumerate(items):
            try:
                spec = item if isinstance(item, CreateCredential) else CreateCredential.model_validate(item)
                spec.validate_for_create()
                await self.rotation_manager.add_credential(spec)
            except ValidationError as e:
                message = "; ".join(f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in e.errors())
                result.record_failure(index, message)
            except Exception as e:
                result.record_failure(index, classify_error(e, validating=True).message)
            else:
                result.imported += 1

        if result.failed:
            logger.warning(f"Batch import: {result.imported} imported, {result.failed} failed")
        return result

    def batch_delete(self, credential_ids: Iterable[int]) -> BatchDeleteResult:
        """Delete credentials one at a time, in order. Never raises."""
        result = BatchDeleteResult()
        for credential_id in credential_ids:
            try:
                self.rotation_manager.delete_credential(credential_id)
            except Exception as e:
                result.record_failure(credential_id, classify_error(e, credential_id).message)
            else:
                result.deleted += 1

        if result.failed:
            logger.warning(f"Batch delete: {result.deleted} deleted, {result.failed} failed")
        return result

    def export_all(self) -> list[CredentialExportItem]:
        """Every credential with its live failure count and disabled flag."""
        try:
            records = self.rotation_manager.snapshot_full()
        except Exception as e:
            raise classify_error(e) from e
        return [CredentialExportItem.from_record(record) for record in records]
