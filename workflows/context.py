"""Per-operation context.

Every export, import, restore or sync receives an explicitly constructed
OperationContext holding its collaborators. Nothing is looked up from
module-level singletons.
"""

import uuid
from dataclasses import dataclass, field
from typing import Optional

from connectors.blob_base import BlobTransport
from connectors.drive.session import DriveSession
from connectors.store_base import Store
from core.config import Settings
from core.storage.artifacts import ArtifactStore
from workflows.progress import ProgressListener, ProgressTracker


class ConfirmationRequired(Exception):
    """A destructive operation was invoked without explicit confirmation."""
    def __init__(self, operation: str):
        super().__init__(
            f"{operation} deletes all existing ledger data and must be explicitly confirmed"
        )
        self.operation = operation


def new_operation_id() -> str:
    return f"op-{uuid.uuid4().hex[:12]}"


@dataclass
class OperationContext:
    """Collaborators and state for one operation.

    Attributes:
        store: Ledger Store to read from / write to
        settings: Runtime configuration
        session: Drive credential session (cloud flows only)
        transport: Blob transport; built from ``session`` when omitted
        artifacts: Where exported workbooks are written; from settings when omitted
        progress: Progress tracker for this operation
        operation_id: Correlation id used in logs and reports
    """
    store: Store
    settings: Settings = field(default_factory=Settings)
    session: Optional[DriveSession] = None
    transport: Optional[BlobTransport] = None
    artifacts: Optional[ArtifactStore] = None
    progress: Optional[ProgressTracker] = None
    operation_id: str = field(default_factory=new_operation_id)

    def __post_init__(self):
        if self.progress is None:
            self.progress = ProgressTracker(reset_delay=self.settings.progress_reset_delay)

    @classmethod
    def create(
        cls,
        store: Store,
        settings: Optional[Settings] = None,
        listener: Optional[ProgressListener] = None,
        **kwargs,
    ) -> "OperationContext":
        settings = settings or Settings()
        progress = ProgressTracker(reset_delay=settings.progress_reset_delay, listener=listener)
        return cls(store=store, settings=settings, progress=progress, **kwargs)

    def artifact_store(self) -> ArtifactStore:
        if self.artifacts is None:
            self.artifacts = ArtifactStore(self.settings.export_dir)
        return self.artifacts

    def require_confirmation(self, confirmed: bool, operation: str) -> None:
        """Raise ConfirmationRequired unless ``confirmed`` is exactly True."""
        if confirmed is not True:
            raise ConfirmationRequired(operation)
