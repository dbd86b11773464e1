"""Data reference and operation report models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class DataReference(BaseModel):
    """Reference to a stored artifact with metadata for retrieval and verification.

    Attributes:
        storage_uri: Absolute file path (or transport file id) of the artifact
        content_hash: SHA256 hash of the content for integrity verification
        content_type: MIME type
        size_bytes: Size of the artifact in bytes
        stored_at: Timestamp when the artifact was stored
    """
    storage_uri: str = Field(..., description="Absolute file path or remote file id")
    content_hash: str = Field(..., description="SHA256 hash of content")
    content_type: str = Field(
        default="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        description="MIME type",
    )
    size_bytes: int = Field(..., description="Size in bytes")
    stored_at: datetime = Field(default_factory=datetime.utcnow, description="Storage timestamp")


# =============================================================================
# Operation Reports
# =============================================================================

class ImportStatus(str, Enum):
    SUCCESS = "SUCCESS"
    PARTIAL = "PARTIAL"
    FAILED = "FAILED"


class KindTally(BaseModel):
    """Counts for one record kind within an import.

    Attributes:
        imported: Records the Store accepted
        rejected: Rows dropped by validation (missing fields, weight <= 0, ...)
        failed: Records the Store or the customer resolver refused
        sentinels: Empty-sheet placeholder rows skipped
    """
    imported: int = 0
    rejected: int = 0
    failed: int = 0
    sentinels: int = 0

    @property
    def total(self) -> int:
        return self.imported + self.rejected + self.failed

    @property
    def errors(self) -> int:
        return self.rejected + self.failed


class ImportReport(BaseModel):
    """Outcome of a selective import, full import or restore."""
    operation: str = Field(..., description="import_kind, import_all or restore")
    operation_id: str = Field(..., description="Correlation id of the run")
    kinds: Dict[str, KindTally] = Field(default_factory=dict)
    cleared: Dict[str, int] = Field(default_factory=dict, description="Records deleted before import")
    failures: List[str] = Field(default_factory=list, description="Persistence failure messages")

    def tally(self, kind: str) -> KindTally:
        if kind not in self.kinds:
            self.kinds[kind] = KindTally()
        return self.kinds[kind]

    @property
    def imported(self) -> int:
        return sum(t.imported for t in self.kinds.values())

    @property
    def total(self) -> int:
        return sum(t.total for t in self.kinds.values())

    @property
    def errors(self) -> int:
        return sum(t.errors for t in self.kinds.values())

    @property
    def status(self) -> ImportStatus:
        if self.errors == 0:
            return ImportStatus.SUCCESS
        if self.imported > 0:
            return ImportStatus.PARTIAL
        return ImportStatus.FAILED

    def summary(self) -> str:
        if self.total == 0:
            return "No records found to import"
        if self.errors == 0:
            return f"Imported {self.imported} records successfully"
        return f"Imported {self.imported} out of {self.total} records ({self.errors} errors)"

    def to_dict(self) -> dict:
        return {
            "operation": self.operation,
            "operation_id": self.operation_id,
            "status": self.status.value,
            "imported": self.imported,
            "total": self.total,
            "errors": self.errors,
            "summary": self.summary(),
            "kinds": {k: {**t.model_dump(), "total": t.total} for k, t in self.kinds.items()},
            "cleared": dict(self.cleared),
            "failures": list(self.failures),
        }


class ExportReport(BaseModel):
    """Outcome of an export or cloud sync."""
    operation_id: str
    file_name: str
    counts: Dict[str, int] = Field(default_factory=dict)
    sheet_names: List[str] = Field(default_factory=list)
    artifact: Optional[DataReference] = None
    remote_file_id: Optional[str] = None

    def summary(self) -> str:
        return f"All data exported successfully! {len(self.sheet_names)} sheets created."


class ClearReport(BaseModel):
    """Outcome of deleting all ledger data."""
    operation_id: str
    deleted: Dict[str, int] = Field(default_factory=dict)
    failures: List[str] = Field(default_factory=list)

    @property
    def total_deleted(self) -> int:
        return sum(self.deleted.values())
