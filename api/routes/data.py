"""Ledger data endpoints.

Workbook export (whole ledger or selected record kinds), import, restore,
clear, and the Drive cloud backup.
Workbooks are exchanged as raw request/response bodies.

Destructive endpoints (restore, clear, cloud restore) require
``?confirm=true``.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Query, Request, Response
from pydantic import BaseModel, Field

from connectors.blob_base import BlobNotFoundError, TransportError
from connectors.store_base import StoreError
from core.models.records import RecordKind
from core.observability.logging import get_logger
from tabular.codec import CSV_CONTENT_TYPE, XLSX_CONTENT_TYPE, StructuralError
from workflows import backup_workflow, export_workflow, import_workflow
from workflows.backup_workflow import ReconnectRequired
from workflows.context import ConfirmationRequired, OperationContext

logger = get_logger(__name__)

router = APIRouter()


class ConnectRequest(BaseModel):
    """Bearer credential obtained from the Drive OAuth flow."""
    access_token: str = Field(..., min_length=1)
    expires_in: Optional[int] = Field(None, description="Lifetime in seconds")


def _context(request: Request) -> OperationContext:
    state = request.app.state
    return OperationContext.create(state.store, settings=state.settings, session=state.session)


def _http_error(error: Exception) -> HTTPException:
    """Map an engine exception onto an HTTP error."""
    if isinstance(error, ConfirmationRequired):
        return HTTPException(status_code=409, detail=str(error))
    if isinstance(error, ReconnectRequired):
        return HTTPException(status_code=401, detail=str(error))
    if isinstance(error, StructuralError):
        return HTTPException(status_code=400, detail=str(error))
    if isinstance(error, BlobNotFoundError):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, (StoreError, TransportError)):
        return HTTPException(status_code=502, detail=str(error))
    return HTTPException(status_code=500, detail=str(error))


_ENGINE_ERRORS = (
    ConfirmationRequired,
    ReconnectRequired,
    StructuralError,
    StoreError,
    TransportError,
)


async def _workbook(request: Request) -> bytes:
    body = await request.body()
    if not body:
        raise HTTPException(status_code=400, detail="Request body must be an .xlsx workbook")
    return body


@router.get("/export")
async def export_workbook(request: Request) -> Response:
    """Download the whole ledger as a workbook."""
    ctx = _context(request)
    try:
        report, data = await export_workflow.export_all(
            ctx, business=request.app.state.business, tax=request.app.state.tax, write=False
        )
    except _ENGINE_ERRORS as e:
        raise _http_error(e)

    return Response(
        content=data,
        media_type=XLSX_CONTENT_TYPE,
        headers={
            "Content-Disposition": f'attachment; filename="{report.file_name}"',
            "X-Operation-Id": report.operation_id,
        },
    )


@router.get("/export/kinds")
async def export_selected(
    request: Request,
    kind: List[str] = Query(..., description="Record kinds to export, e.g. kind=invoices&kind=bills"),
    file_format: str = Query("xlsx", alias="format"),
) -> Response:
    """Download only the chosen record kinds (CSV for a single kind)."""
    try:
        report, data = await export_workflow.export_kinds(
            _context(request), kind, write=False, file_format=file_format
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except _ENGINE_ERRORS as e:
        raise _http_error(e)

    return Response(
        content=data,
        media_type=CSV_CONTENT_TYPE if file_format == export_workflow.CSV else XLSX_CONTENT_TYPE,
        headers={
            "Content-Disposition": f'attachment; filename="{report.file_name}"',
            "X-Operation-Id": report.operation_id,
        },
    )


@router.post("/import")
async def import_workbook(request: Request) -> Dict[str, Any]:
    """Import every record kind in the workbook without clearing."""
    data = await _workbook(request)
    try:
        report = await import_workflow.import_all(_context(request), data)
    except _ENGINE_ERRORS as e:
        raise _http_error(e)
    return report.to_dict()


@router.post("/import/{kind}")
async def import_one_kind(kind: str, request: Request) -> Dict[str, Any]:
    """Import a single record kind (products, customers, invoices, bills, exchange_bills)."""
    try:
        record_kind = RecordKind(kind)
    except ValueError:
        raise HTTPException(
            status_code=404,
            detail=f"Unknown record kind '{kind}'. Available: {[k.value for k in RecordKind]}",
        )

    data = await _workbook(request)
    try:
        report = await import_workflow.import_kind(_context(request), data, record_kind)
    except _ENGINE_ERRORS as e:
        raise _http_error(e)
    return report.to_dict()


@router.post("/restore")
async def restore_workbook(request: Request, confirm: bool = False) -> Dict[str, Any]:
    """Replace all ledger data with the workbook's contents."""
    data = await _workbook(request)
    try:
        report = await import_workflow.restore(_context(request), data, confirmed=confirm)
    except _ENGINE_ERRORS as e:
        raise _http_error(e)
    return report.to_dict()


@router.post("/clear")
async def clear_data(request: Request, confirm: bool = False) -> Dict[str, Any]:
    """Delete all ledger data."""
    try:
        report = await import_workflow.clear_all(_context(request), confirmed=confirm)
    except _ENGINE_ERRORS as e:
        raise _http_error(e)
    return report.model_dump()


# =============================================================================
# Cloud backup
# =============================================================================

@router.post("/cloud/connect")
async def connect_drive(body: ConnectRequest, request: Request) -> Dict[str, Any]:
    """Store a Drive bearer credential for the cloud endpoints."""
    session = request.app.state.session
    await session.connect(body.access_token, expires_in=body.expires_in)
    return {"connected": True, "backup_file_id": await session.backup_file_id()}


@router.get("/cloud/status")
async def drive_status(request: Request) -> Dict[str, Any]:
    session = request.app.state.session
    return {
        "connected": await session.is_connected(),
        "backup_file_id": await session.backup_file_id(),
    }


@router.post("/cloud/sync")
async def sync_to_drive(request: Request) -> Dict[str, Any]:
    """Upload the ledger as the Drive backup file."""
    try:
        report = await backup_workflow.sync_to_cloud(
            _context(request), business=request.app.state.business, tax=request.app.state.tax
        )
    except _ENGINE_ERRORS as e:
        raise _http_error(e)
    return {**report.model_dump(mode="json"), "summary": report.summary()}


@router.post("/cloud/restore")
async def restore_from_drive(request: Request, confirm: bool = False) -> Dict[str, Any]:
    """Replace all ledger data with the Drive backup."""
    try:
        report = await backup_workflow.restore_from_cloud(_context(request), confirmed=confirm)
    except _ENGINE_ERRORS as e:
        raise _http_error(e)
    return report.to_dict()
