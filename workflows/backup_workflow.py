"""Cloud backup flows.

sync_to_cloud: export the Store and upload it as the remote backup file,
updating the remembered file in place when there is one.

restore_from_cloud: download the remote backup and run a restore with it.

Both require a live Drive credential before they start. When the transport
reports the credential as rejected, the stored credential is cleared and
ReconnectRequired is raised so the caller can ask the user to sign in again.
"""

import time
from contextlib import asynccontextmanager
from typing import Optional

from connectors.blob_base import BlobNotFoundError, BlobTransport, CredentialExpiredError, TransportError
from connectors.store_base import StoreError
from core.models.records import BusinessProfile, TaxSettings
from core.models.refs import ExportReport, ImportReport
from core.observability.logging import (
    get_logger,
    log_operation_complete,
    log_operation_error,
    log_operation_start,
    with_correlation,
)
from tabular.codec import XLSX_CONTENT_TYPE, StructuralError
from workflows import import_workflow
from workflows.context import OperationContext
from workflows.export_workflow import BACKUP, build_workbook, collect, export_file_name

logger = get_logger(__name__)


class ReconnectRequired(Exception):
    """The Drive credential is missing, expired or was rejected."""
    pass


@asynccontextmanager
async def _transport(ctx: OperationContext):
    """The context's transport, or a Drive client for the session's credential."""
    if ctx.session is None:
        raise ReconnectRequired("No Drive account is connected")

    token = await ctx.session.access_token()
    if token is None:
        raise ReconnectRequired("Drive credential expired. Please reconnect.")

    if ctx.transport is not None:
        yield ctx.transport
        return

    client = ctx.session.client(token, ctx.settings)
    try:
        yield client
    finally:
        await client.close()


async def _expired(ctx: OperationContext, error: CredentialExpiredError) -> ReconnectRequired:
    await ctx.session.invalidate()
    return ReconnectRequired(f"Drive rejected the credential: {error}")


async def _upload(ctx: OperationContext, transport: BlobTransport, data: bytes, file_name: str) -> str:
    file_id = await ctx.session.backup_file_id()
    if file_id:
        try:
            await transport.upload_update(file_id, data)
            logger.info("Updated remote backup", extra_fields={"file_id": file_id})
            return file_id
        except BlobNotFoundError:
            logger.warning("Remembered backup file is gone; uploading a new one", extra_fields={"file_id": file_id})

    file_id = await transport.upload_new(data, {"name": file_name, "mimeType": XLSX_CONTENT_TYPE})
    await ctx.session.remember_backup_file(file_id)
    logger.info("Created remote backup", extra_fields={"file_id": file_id, "file_name": file_name})
    return file_id


async def sync_to_cloud(
    ctx: OperationContext,
    business: Optional[BusinessProfile] = None,
    tax: Optional[TaxSettings] = None,
) -> ExportReport:
    """Export the Store and upload it as the backup file.

    Raises:
        ReconnectRequired: No usable credential, or the transport rejected it
        TransportError: Upload failed for another reason
        StoreError: A collection could not be read
    """
    operation = "sync_to_cloud"
    start_time = time.time()
    file_name = export_file_name(ctx.settings.dataset_name, BACKUP)

    with with_correlation(operation_id=ctx.operation_id, operation=operation):
        log_operation_start(operation, file_name=file_name)
        ctx.progress.start()
        try:
            async with _transport(ctx) as transport:
                tables = await collect(ctx)
                ctx.progress.advance(25)
                data, counts, sheet_names = build_workbook(tables, business=business, tax=tax)
                ctx.progress.advance(50)
                try:
                    file_id = await _upload(ctx, transport, data, file_name)
                except CredentialExpiredError as e:
                    raise await _expired(ctx, e) from e
        except (ReconnectRequired, TransportError, StoreError, StructuralError) as e:
            log_operation_error(operation, str(e))
            ctx.progress.schedule_reset()
            raise

        ctx.progress.finish()
        log_operation_complete(
            operation,
            duration_ms=(time.time() - start_time) * 1000,
            file_id=file_id,
            size_bytes=len(data),
        )
    return ExportReport(
        operation_id=ctx.operation_id,
        file_name=file_name,
        counts=counts,
        sheet_names=sheet_names,
        remote_file_id=file_id,
    )


async def restore_from_cloud(ctx: OperationContext, confirmed: bool = False) -> ImportReport:
    """Download the backup file and restore the Store from it.

    The remembered backup file id is used; without one, today's backup file
    name is looked up on the transport.

    Raises:
        ConfirmationRequired: ``confirmed`` is not True
        ReconnectRequired: No usable credential, or the transport rejected it
        BlobNotFoundError: No backup file exists
    """
    operation = "restore_from_cloud"
    ctx.require_confirmation(confirmed, "restore")

    with with_correlation(operation_id=ctx.operation_id, operation=operation):
        log_operation_start(operation)
        try:
            async with _transport(ctx) as transport:
                try:
                    file_id = await ctx.session.backup_file_id()
                    if not file_id:
                        file_id = await transport.find_by_name(
                            export_file_name(ctx.settings.dataset_name, BACKUP)
                        )
                    if not file_id:
                        raise BlobNotFoundError("No backup found in Drive", 404)
                    data = await transport.download(file_id)
                except CredentialExpiredError as e:
                    raise await _expired(ctx, e) from e
        except (ReconnectRequired, TransportError) as e:
            log_operation_error(operation, str(e))
            raise

        logger.info("Downloaded remote backup", extra_fields={"file_id": file_id, "size_bytes": len(data)})
        report = await import_workflow.restore(ctx, data, confirmed=True)
        log_operation_complete(operation, status=report.status.value)
    return report
